"""
Request/response boundary of the engine.

Every operation takes a plain (JSON-like) mapping with camelCase keys and
returns ``{"success": True, "data": ...}`` or
``{"success": False, "error": "..."}``. Arrays are flat, row-major lists.
"""
from functools import wraps
import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .engine import HolographicEngine
from .exceptions import HologramError
from .hologram import (
    Opportunity,
    encode_opportunities,
    encode_price_series,
    generate_synthetic_hologram,
)
from .types import (
    Algorithm,
    Channel,
    Colormap,
    FilterType,
    HologramField,
    Normalization,
    VisualizationConfig,
    WAVELENGTH_PRESETS,
)


logger = logging.getLogger(__name__)


SYNTHETIC_DEFAULT_SIZE = 256
SYNTHETIC_DEFAULT_WAVELENGTH = WAVELENGTH_PRESETS["green"]
SYNTHETIC_DEFAULT_PIXEL_SIZE = 10e-6
SYNTHETIC_MAX_SIZE = 4096


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SeriesRequest(_Request):
    prices: list[float]
    volumes: list[float]
    time_labels: list[str] = Field(default_factory=list, alias="timeLabels")


class OpportunityRecord(_Request):
    profit: float
    confidence: float
    risk_score: float = Field(alias="riskScore")
    time_window: float = Field(default=0.0, alias="timeWindow")

    def to_opportunity(self) -> Opportunity:
        return Opportunity(self.profit, self.confidence, self.risk_score, self.time_window)


class OpportunitiesRequest(_Request):
    opportunities: list[OpportunityRecord]


class SyntheticRequest(_Request):
    width: int = Field(default=SYNTHETIC_DEFAULT_SIZE, gt=0, le=SYNTHETIC_MAX_SIZE)
    height: int = Field(default=SYNTHETIC_DEFAULT_SIZE, gt=0, le=SYNTHETIC_MAX_SIZE)
    wavelength: float = Field(default=SYNTHETIC_DEFAULT_WAVELENGTH, gt=0)
    pixel_size: float = Field(default=SYNTHETIC_DEFAULT_PIXEL_SIZE, gt=0, alias="pixelSize")


class ConfigUpdateRequest(_Request):
    algorithm: Algorithm | None = Field(
        default=None, validation_alias=AliasChoices("algorithm", "reconstruction"),
    )
    propagation_distance: float | None = Field(
        default=None, validation_alias=AliasChoices("propagationDistance", "propagation_distance"),
    )
    wavelength: float | None = None
    pixel_pitch: float | None = Field(
        default=None, validation_alias=AliasChoices("pixelPitch", "pixel_pitch"),
    )
    filter: FilterType | None = Field(
        default=None, validation_alias=AliasChoices("filter", "filterType", "filter_type"),
    )
    phase_unwrapping: bool | None = Field(
        default=None, validation_alias=AliasChoices("phaseUnwrapping", "phase_unwrapping"),
    )
    noise_reduction: bool | None = Field(
        default=None, validation_alias=AliasChoices("noiseReduction", "noise_reduction"),
    )
    filter_cutoff: float | None = Field(
        default=None, validation_alias=AliasChoices("filterCutoff", "filter_cutoff"),
    )
    butterworth_order: int | None = Field(
        default=None, validation_alias=AliasChoices("butterworthOrder", "butterworth_order"),
    )
    fresnel_max_samples: int | None = Field(
        default=None, validation_alias=AliasChoices("fresnelMaxSamples", "fresnel_max_samples"),
    )
    fresnel_fallback: bool | None = Field(
        default=None, validation_alias=AliasChoices("fresnelFallback", "fresnel_fallback"),
    )


class MarketData(_Request):
    prices: list[float] = Field(default_factory=list)
    volumes: list[float] = Field(default_factory=list)
    timestamps: list[Any] = Field(default_factory=list)
    opportunities: list[OpportunityRecord] = Field(default_factory=list)


class MarketVisualizationRequest(_Request):
    market_data: MarketData = Field(alias="marketData")
    visualization_type: str | None = Field(default=None, alias="visualizationType")
    intensity: float | None = Field(default=None, ge=0)


class HologramPayload(_Request):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    amplitude: list[float] = Field(alias="amplitudeData")
    phase: list[float] = Field(alias="phaseData")
    wavelength: float = SYNTHETIC_DEFAULT_WAVELENGTH
    pixel_size: float = Field(default=SYNTHETIC_DEFAULT_PIXEL_SIZE, alias="pixelSize")

    def to_field(self) -> HologramField:
        return HologramField(
            width=self.width,
            height=self.height,
            wavelength=self.wavelength,
            pixel_size=self.pixel_size,
            amplitude=self.amplitude,
            phase=self.phase,
        )


class VisualizationPayload(_Request):
    channel: Channel = Field(default=Channel.AMPLITUDE, validation_alias=AliasChoices("channel", "type"))
    colormap: Colormap = Colormap.GRAY
    normalization: Normalization = Normalization.LINEAR
    contrast_enhancement: bool = Field(
        default=False, validation_alias=AliasChoices("contrastEnhancement", "contrast_enhancement"),
    )


class RenderRequest(_Request):
    hologram: HologramPayload
    visualization: VisualizationPayload = Field(default_factory=VisualizationPayload)


def endpoint(failure_message: str):
    """
    Wrap a service method in the ``{success, data, error}`` envelope.

    Validation failures are reported with their reason; anything else is
    logged with its traceback and reported as `failure_message`.
    """
    def decorator(method):
        @wraps(method)
        def wrapper(self, payload: dict | None = None) -> dict:
            try:
                data = method(self, payload if payload is not None else {})
            except (HologramError, ValidationError) as e:
                logger.warning("%s: %s", failure_message, e)
                return {"success": False, "error": str(e)}
            except Exception:
                logger.exception(failure_message)
                return {"success": False, "error": failure_message}
            return {"success": True, "data": data}
        return wrapper
    return decorator


class HolographicService:
    """
    Operations exposed to the surrounding application.

    Parameters
    ----------
    engine : HolographicEngine, optional
        The engine to drive; a default engine is created when omitted.
    """

    def __init__(self, engine: HolographicEngine | None = None):
        self.engine = engine if engine is not None else HolographicEngine()

    @endpoint("Failed to generate financial hologram")
    def reconstruct_from_series(self, payload: dict) -> dict:
        request = SeriesRequest.model_validate(payload)
        hologram = encode_price_series(request.prices, request.volumes, request.time_labels)
        config = self.engine.config
        reconstructed = self.engine.reconstruct(hologram, config)
        return {
            "hologram": reconstructed.to_dict(),
            "config": config.to_dict(),
            "reconstruction": config.algorithm.value,
        }

    @endpoint("Failed to generate arbitrage hologram")
    def reconstruct_from_opportunities(self, payload: dict) -> dict:
        request = OpportunitiesRequest.model_validate(payload)
        hologram = encode_opportunities(
            record.to_opportunity() for record in request.opportunities
        )
        config = self.engine.config
        reconstructed = self.engine.reconstruct(hologram, config)
        return {
            "hologram": reconstructed.to_dict(),
            "config": config.to_dict(),
            "opportunities": len(request.opportunities),
        }

    @endpoint("Failed to generate synthetic hologram")
    def synthetic_test(self, payload: dict) -> dict:
        request = SyntheticRequest.model_validate(payload)
        hologram = generate_synthetic_hologram(
            request.width, request.height, request.wavelength, request.pixel_size,
        )
        config = self.engine.config
        reconstructed = self.engine.reconstruct(hologram, config)
        return {
            "hologram": reconstructed.to_dict(),
            "type": "synthetic",
            "reconstruction": config.algorithm.value,
        }

    @endpoint("Failed to read configuration")
    def get_config(self, payload: dict) -> dict:
        return {
            "config": self.engine.config.to_dict(),
            "availableAlgorithms": [algorithm.value for algorithm in Algorithm],
            "availableFilters": [filter_type.value for filter_type in FilterType],
            "supportedWavelengths": dict(WAVELENGTH_PRESETS),
        }

    @endpoint("Failed to update configuration")
    def set_config(self, payload: dict) -> dict:
        request = ConfigUpdateRequest.model_validate(payload)
        changes = request.model_dump(exclude_none=True)
        config = self.engine.update_config(**changes)
        return {
            "config": config.to_dict(),
            "message": "Holographic configuration updated",
        }

    @endpoint("Failed to create market visualization")
    def market_visualization(self, payload: dict) -> dict:
        request = MarketVisualizationRequest.model_validate(payload)
        market_data = request.market_data

        if request.visualization_type == "price_flow":
            hologram = encode_price_series(
                market_data.prices,
                market_data.volumes,
                [str(timestamp) for timestamp in market_data.timestamps],
            )
        elif request.visualization_type == "arbitrage_opportunities":
            hologram = encode_opportunities(
                record.to_opportunity() for record in market_data.opportunities
            )
        else:
            hologram = generate_synthetic_hologram(
                SYNTHETIC_DEFAULT_SIZE,
                SYNTHETIC_DEFAULT_SIZE,
                SYNTHETIC_DEFAULT_WAVELENGTH,
                SYNTHETIC_DEFAULT_PIXEL_SIZE,
            )

        intensity = request.intensity
        if intensity and intensity != 1.0:
            hologram = hologram.with_amplitude(hologram.amplitude * intensity)

        reconstructed = self.engine.reconstruct(hologram)
        return {
            "width": reconstructed.width,
            "height": reconstructed.height,
            "amplitudeData": reconstructed.amplitude.tolist(),
            "phaseData": reconstructed.phase.tolist(),
            "type": request.visualization_type,
            "intensity": intensity or 1.0,
        }

    @endpoint("Failed to render hologram")
    def render(self, payload: dict) -> dict:
        request = RenderRequest.model_validate(payload)
        visualization = VisualizationConfig(**request.visualization.model_dump())
        pixels = self.engine.visualize(request.hologram.to_field(), visualization)
        return {
            "width": pixels.width,
            "height": pixels.height,
            "rgba": pixels.rgba.tolist(),
        }
