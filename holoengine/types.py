from dataclasses import dataclass, fields
from enum import Enum
import math
import numbers
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

from .exceptions import InvalidParameterError, InvalidShapeError


WAVELENGTH_PRESETS = {
    "red": 632e-9,
    "green": 532e-9,
    "blue": 488e-9,
}


class Algorithm(str, Enum):
    """Enumeration of supported reconstruction algorithms."""
    FRESNEL = 'fresnel'
    ANGULAR_SPECTRUM = 'angular_spectrum'
    CONVOLUTION = 'convolution'


class FilterType(str, Enum):
    """Enumeration of supported spectral filters."""
    NONE = 'none'
    GAUSSIAN = 'gaussian'
    BUTTERWORTH = 'butterworth'


class Channel(str, Enum):
    """Enumeration of the scalar fields that can be rendered."""
    AMPLITUDE = 'amplitude'
    PHASE = 'phase'
    INTENSITY = 'intensity'
    COMPLEX = 'complex'


class Colormap(str, Enum):
    """Enumeration of supported colormaps."""
    GRAY = 'gray'
    HOT = 'hot'
    JET = 'jet'
    VIRIDIS = 'viridis'


class Normalization(str, Enum):
    """Enumeration of supported normalization curves."""
    LINEAR = 'linear'
    LOG = 'log'
    SQRT = 'sqrt'


def _coerce_enum(enum_type: type[Enum], value, name: str):
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise InvalidParameterError(
            f"Unsupported {name}: {value!r} (expected one of {choices})"
        ) from None


def _require_positive(name: str, value: float) -> None:
    if not (isinstance(value, (int, float, np.floating)) and math.isfinite(value) and value > 0):
        raise InvalidParameterError(f"{name} must be a positive finite number, got {value!r}")


class ComplexValue(NamedTuple):
    """
    Complex number stored as its real and imaginary parts.

    Every operation is elementwise, so `real` and `imag` may be plain floats
    or numpy arrays of the same shape.
    """
    real: float | npt.NDArray[np.float64]
    imag: float | npt.NDArray[np.float64]

    @classmethod
    def from_polar(cls, magnitude, phase) -> "ComplexValue":
        return cls(magnitude * np.cos(phase), magnitude * np.sin(phase))

    def magnitude(self):
        return np.sqrt(self.real * self.real + self.imag * self.imag)

    def phase(self):
        # atan2(0, 0) == 0, so a zero magnitude yields a zero phase.
        return np.arctan2(self.imag, self.real)

    def multiply(self, other: "ComplexValue") -> "ComplexValue":
        return ComplexValue(
            self.real * other.real - self.imag * other.imag,
            self.real * other.imag + self.imag * other.real,
        )

    def add(self, other: "ComplexValue") -> "ComplexValue":
        return ComplexValue(self.real + other.real, self.imag + other.imag)

    def conjugate(self) -> "ComplexValue":
        return ComplexValue(self.real, -self.imag)

    # Operators act on the complex value, never on the underlying tuple
    def __add__(self, other):
        other = _as_complex_value(other)
        if other is None:
            return NotImplemented
        return self.add(other)

    __radd__ = __add__

    def __mul__(self, other):
        other = _as_complex_value(other)
        if other is None:
            return NotImplemented
        return self.multiply(other)

    __rmul__ = __mul__

    def as_complex(self):
        """Return the value as a Python complex or a numpy complex128 array."""
        if np.ndim(self.real) == 0 and np.ndim(self.imag) == 0:
            return complex(self.real, self.imag)
        return np.asarray(self.real, dtype=np.float64) + 1j * np.asarray(self.imag, dtype=np.float64)

    @classmethod
    def from_complex(cls, value) -> "ComplexValue":
        return cls(np.real(value), np.imag(value))


def _as_complex_value(value) -> ComplexValue | None:
    if isinstance(value, ComplexValue):
        return value
    if isinstance(value, numbers.Number):
        return ComplexValue.from_complex(value)
    return None


@dataclass(frozen=True, kw_only=True, eq=False)
class HologramField:
    """
    A sampled complex optical field stored as parallel amplitude and phase arrays.

    Attributes
    ----------
    width : int
        Number of samples per row.
    height : int
        Number of rows.
    wavelength : float
        Wavelength of the light in meters.
    pixel_size : float
        Sample spacing in meters.
    amplitude : npt.NDArray[np.float32]
        Flat row-major amplitude samples, ``width * height`` long.
    phase : npt.NDArray[np.float32]
        Flat row-major phase samples in radians. Unwrapped phases may leave
        the [-pi, pi] interval.
    """
    width: int
    height: int
    wavelength: float
    pixel_size: float
    amplitude: npt.NDArray[np.float32]
    phase: npt.NDArray[np.float32]

    def __post_init__(self):
        object.__setattr__(self, "amplitude", np.asarray(self.amplitude, dtype=np.float32).ravel())
        object.__setattr__(self, "phase", np.asarray(self.phase, dtype=np.float32).ravel())
        self.validate()

    def validate(self) -> None:
        """Raise if the arrays or optics describe an impossible field."""
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise InvalidShapeError(
                f"Field dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.amplitude.size != self.phase.size:
            raise InvalidShapeError(
                f"Amplitude has {self.amplitude.size} samples but phase has {self.phase.size}"
            )
        if self.amplitude.size != self.width * self.height:
            raise InvalidShapeError(
                f"Expected {self.width * self.height} samples for a "
                f"{self.width}x{self.height} field, got {self.amplitude.size}"
            )
        _require_positive("wavelength", self.wavelength)
        _require_positive("pixel_size", self.pixel_size)

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    @property
    def intensity(self) -> npt.NDArray[np.float32]:
        return self.amplitude * self.amplitude

    def complex_field(self) -> npt.NDArray[np.complex128]:
        """Return the field as a ``(height, width)`` complex128 array."""
        value = ComplexValue.from_polar(
            self.amplitude.astype(np.float64),
            self.phase.astype(np.float64),
        )
        return value.as_complex().reshape(self.shape)

    @classmethod
    def from_complex(
        cls,
        field: npt.NDArray[np.complexfloating],
        wavelength: float,
        pixel_size: float,
    ) -> "HologramField":
        """Build a field from a 2D complex array."""
        field = np.asarray(field)
        if field.ndim != 2:
            raise InvalidShapeError(f"Expected a 2D complex array, got {field.ndim} dimensions")
        value = ComplexValue.from_complex(field)
        height, width = field.shape
        return cls(
            width=width,
            height=height,
            wavelength=wavelength,
            pixel_size=pixel_size,
            amplitude=value.magnitude(),
            phase=value.phase(),
        )

    def sample(self, x: int, y: int) -> ComplexValue:
        """Return the complex sample at column `x`, row `y`."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) is outside a {self.width}x{self.height} field")
        idx = y * self.width + x
        return ComplexValue.from_polar(float(self.amplitude[idx]), float(self.phase[idx]))

    def with_amplitude(self, amplitude: npt.ArrayLike) -> "HologramField":
        return HologramField(
            width=self.width,
            height=self.height,
            wavelength=self.wavelength,
            pixel_size=self.pixel_size,
            amplitude=np.array(amplitude, dtype=np.float32),
            phase=self.phase.copy(),
        )

    def with_phase(self, phase: npt.ArrayLike) -> "HologramField":
        return HologramField(
            width=self.width,
            height=self.height,
            wavelength=self.wavelength,
            pixel_size=self.pixel_size,
            amplitude=self.amplitude.copy(),
            phase=np.array(phase, dtype=np.float32),
        )

    def to_dict(self) -> dict:
        return {
            "width": int(self.width),
            "height": int(self.height),
            "amplitudeData": self.amplitude.tolist(),
            "phaseData": self.phase.tolist(),
            "wavelength": float(self.wavelength),
            "pixelSize": float(self.pixel_size),
        }


@dataclass(frozen=True, kw_only=True)
class ReconstructionConfig:
    """
    Parameters for hologram reconstruction.

    Instances are immutable; use `dataclasses.replace` (or
    `HolographicEngine.update_config`) to derive a new configuration.

    Attributes
    ----------
    algorithm : Algorithm, default Algorithm.ANGULAR_SPECTRUM
        Diffraction algorithm used to propagate the field.
    propagation_distance : float, default 0.1
        Propagation distance `z` in meters.
    wavelength : float, default 532e-9
        Default wavelength in meters for generated holograms.
    pixel_pitch : float, default 10e-6
        Default sample spacing in meters for generated holograms.
    filter : FilterType, default FilterType.NONE
        Low-pass filter applied to the spectrum of the propagated field.
        Not applied to convolution results.
    phase_unwrapping : bool, default True
        Unwrap the reconstructed phase row-wise then column-wise.
    noise_reduction : bool, default True
        Smooth the reconstructed amplitude with a 5x5 Gaussian kernel.
    filter_cutoff : float, default 0.5
        Filter cutoff radius as a fraction of the Nyquist radius.
    butterworth_order : int, default 2
        Order of the Butterworth filter.
    fresnel_max_samples : int, default 4096
        Largest field (``width * height``) accepted by the direct Fresnel sum.
    fresnel_fallback : bool, default False
        If set, oversized Fresnel requests run with the angular spectrum
        method instead of being rejected.
    workers : int, default 1
        Number of worker processes (Fresnel) or FFT threads.
    use_cuda : bool, default False
        Run the Fresnel sum on a CUDA device when one is available.
    show_progress : bool, default False
        Display a progress bar during the Fresnel sum.
    """
    algorithm: Algorithm = Algorithm.ANGULAR_SPECTRUM
    propagation_distance: float = 0.1     # 10 cm
    wavelength: float = 532e-9            # green laser
    pixel_pitch: float = 10e-6            # 10 micrometers
    filter: FilterType = FilterType.NONE
    phase_unwrapping: bool = True
    noise_reduction: bool = True
    filter_cutoff: float = 0.5
    butterworth_order: int = 2
    fresnel_max_samples: int = 64 * 64
    fresnel_fallback: bool = False
    workers: int = 1
    use_cuda: bool = False
    show_progress: bool = False

    def __post_init__(self):
        object.__setattr__(self, "algorithm", _coerce_enum(Algorithm, self.algorithm, "algorithm"))
        object.__setattr__(self, "filter", _coerce_enum(FilterType, self.filter, "filter"))

        _require_positive("propagation_distance", self.propagation_distance)
        _require_positive("wavelength", self.wavelength)
        _require_positive("pixel_pitch", self.pixel_pitch)
        _require_positive("filter_cutoff", self.filter_cutoff)
        if self.filter_cutoff > 1:
            raise InvalidParameterError(
                f"filter_cutoff must not exceed 1 (the Nyquist radius), got {self.filter_cutoff}"
            )
        for name in ("butterworth_order", "fresnel_max_samples", "workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}")

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm.value,
            "propagationDistance": self.propagation_distance,
            "wavelength": self.wavelength,
            "pixelPitch": self.pixel_pitch,
            "filter": self.filter.value,
            "phaseUnwrapping": self.phase_unwrapping,
            "noiseReduction": self.noise_reduction,
            "filterCutoff": self.filter_cutoff,
            "butterworthOrder": self.butterworth_order,
            "fresnelMaxSamples": self.fresnel_max_samples,
            "fresnelFallback": self.fresnel_fallback,
            "workers": self.workers,
            "useCuda": self.use_cuda,
        }

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}


@dataclass(frozen=True, kw_only=True)
class VisualizationConfig:
    """How a field is turned into pixels."""
    channel: Channel = Channel.AMPLITUDE
    colormap: Colormap = Colormap.GRAY
    normalization: Normalization = Normalization.LINEAR
    contrast_enhancement: bool = False

    def __post_init__(self):
        object.__setattr__(self, "channel", _coerce_enum(Channel, self.channel, "channel"))
        object.__setattr__(self, "colormap", _coerce_enum(Colormap, self.colormap, "colormap"))
        object.__setattr__(
            self, "normalization", _coerce_enum(Normalization, self.normalization, "normalization"),
        )


@dataclass(frozen=True, kw_only=True, eq=False)
class PixelBuffer:
    """Rendered RGBA image, row-major, four bytes per pixel."""
    width: int
    height: int
    rgba: npt.NDArray[np.uint8]

    def __post_init__(self):
        object.__setattr__(self, "rgba", np.asarray(self.rgba, dtype=np.uint8).ravel())
        if self.rgba.size != self.width * self.height * 4:
            raise InvalidShapeError(
                f"Expected {self.width * self.height * 4} bytes for a "
                f"{self.width}x{self.height} RGBA image, got {self.rgba.size}"
            )

    def as_array(self) -> npt.NDArray[np.uint8]:
        """Return the pixels as a ``(height, width, 4)`` array."""
        return self.rgba.reshape(self.height, self.width, 4)
