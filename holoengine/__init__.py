from .engine import HolographicEngine
from .exceptions import (
    CapacityError,
    HologramError,
    InvalidParameterError,
    InvalidShapeError,
)
from .service import HolographicService
from .types import (
    Algorithm,
    Channel,
    Colormap,
    ComplexValue,
    FilterType,
    HologramField,
    Normalization,
    PixelBuffer,
    ReconstructionConfig,
    VisualizationConfig,
    WAVELENGTH_PRESETS,
)


__all__ = [
    "Algorithm",
    "CapacityError",
    "Channel",
    "Colormap",
    "ComplexValue",
    "FilterType",
    "HologramError",
    "HologramField",
    "HolographicEngine",
    "HolographicService",
    "InvalidParameterError",
    "InvalidShapeError",
    "Normalization",
    "PixelBuffer",
    "ReconstructionConfig",
    "VisualizationConfig",
    "WAVELENGTH_PRESETS",
]
