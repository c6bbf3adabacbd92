import logging

import numpy as np
import numpy.typing as npt
from scipy import signal

from .exceptions import InvalidParameterError
from .fresnel import fresnel_propagate
from .transform import fft2, frequency_grid, ifft2, shift_spectrum, unshift_spectrum
from .types import Algorithm, FilterType, HologramField, ReconstructionConfig


logger = logging.getLogger(__name__)


CONVOLUTION_KERNEL_SIZE = 21


def fresnel_reconstruction(
    field: HologramField,
    config: ReconstructionConfig,
) -> npt.NDArray[np.complex128]:
    """
    Propagate a field with the direct Fresnel diffraction sum.

    Parameters
    ----------
    field : HologramField
        Input field; its wavelength and pixel size are used.
    config : ReconstructionConfig
        Supplies the propagation distance and the execution options
        (`workers`, `use_cuda`, `show_progress`).

    Returns
    -------
    npt.NDArray[np.complex128]
        The propagated ``(height, width)`` complex field.
    """
    return fresnel_propagate(
        field.complex_field(),
        wavelength=field.wavelength,
        pixel_size=field.pixel_size,
        distance=config.propagation_distance,
        num_processes=config.workers,
        use_cuda=config.use_cuda,
        show_progress=config.show_progress,
    )


def angular_spectrum_transfer(
    height: int,
    width: int,
    wavelength: float,
    pixel_size: float,
    distance: float,
) -> tuple[npt.NDArray[np.complex128], npt.NDArray[np.bool_]]:
    """
    Angular spectrum transfer function on the centred frequency grid.

    Parameters
    ----------
    height, width : int
        Field dimensions.
    wavelength : float
        Wavelength in meters.
    pixel_size : float
        Sample spacing in meters.
    distance : float
        Propagation distance in meters.

    Returns
    -------
    tuple[npt.NDArray[np.complex128], npt.NDArray[np.bool_]]
        The transfer function ``exp(i kz z)`` and the mask of propagating
        bins. Evanescent bins (``kz^2 <= 0``) are exactly zero.
    """
    k = 2 * np.pi / wavelength
    FX, FY = frequency_grid(height, width, pixel_size)
    kz_squared = k ** 2 - (2 * np.pi * FX) ** 2 - (2 * np.pi * FY) ** 2

    propagating = kz_squared > 0
    transfer = np.zeros((height, width), dtype=np.complex128)
    kz = np.sqrt(kz_squared[propagating])
    transfer[propagating] = np.exp(1j * kz * distance)
    return transfer, propagating


def propagate_spectrum(
    field: npt.NDArray[np.complex128],
    wavelength: float,
    pixel_size: float,
    distance: float,
    workers: int = 1,
) -> npt.NDArray[np.complex128]:
    """
    Return the centred spectrum of `field` multiplied by the transfer function.

    This is the angular spectrum method up to, but not including, the
    inverse transform.
    """
    height, width = field.shape
    spectrum = shift_spectrum(fft2(field, workers=workers))
    transfer, _ = angular_spectrum_transfer(height, width, wavelength, pixel_size, distance)
    return spectrum * transfer


def angular_spectrum_reconstruction(
    field: HologramField,
    config: ReconstructionConfig,
) -> npt.NDArray[np.complex128]:
    """
    Propagate a field with the angular spectrum method.

    The field is transformed to the frequency domain, every propagating
    frequency is advanced by ``exp(i kz z)``, evanescent frequencies are
    discarded, and the result is transformed back.
    """
    propagated = propagate_spectrum(
        field.complex_field(),
        field.wavelength,
        field.pixel_size,
        config.propagation_distance,
        workers=config.workers,
    )
    return ifft2(unshift_spectrum(propagated), workers=config.workers)


def create_convolution_kernel(
    wavelength: float,
    pixel_size: float,
    distance: float,
    size: int = CONVOLUTION_KERNEL_SIZE,
) -> npt.NDArray[np.complex128]:
    """
    Create a square spatial propagation kernel.

    Each tap is ``exp(-i k r) / size^2``, so the tap magnitudes sum to one.

    Parameters
    ----------
    wavelength : float
        Wavelength in meters.
    pixel_size : float
        Sample spacing in meters.
    distance : float
        Propagation distance in meters.
    size : int, default 21
        Kernel side length; must be odd so the kernel has a centre tap.

    Returns
    -------
    npt.NDArray[np.complex128]
        Kernel of shape ``(size, size)``.
    """
    if size < 1 or size % 2 == 0:
        raise InvalidParameterError(f"Kernel size must be a positive odd integer, got {size}")
    k = 2 * np.pi / wavelength
    center = size // 2
    offsets = (np.arange(size, dtype=np.float64) - center) * pixel_size
    DX, DY = np.meshgrid(offsets, offsets, indexing="xy")
    r = np.sqrt(DX ** 2 + DY ** 2 + distance ** 2)
    return np.exp(-1j * k * r) / (size * size)


def convolution_reconstruction(
    field: HologramField,
    config: ReconstructionConfig,
) -> npt.NDArray[np.complex128]:
    """
    Propagate a field by direct convolution with a finite spatial kernel.

    Samples outside the field contribute nothing (zero fill); there is no
    wrap-around or reflection.
    """
    kernel = create_convolution_kernel(
        field.wavelength,
        field.pixel_size,
        config.propagation_distance,
    )
    # The kernel is point symmetric, so convolution equals correlation here
    return signal.convolve2d(
        field.complex_field(),
        kernel,
        mode="same",
        boundary="fill",
        fillvalue=0,
    )


def spectral_filter_mask(
    height: int,
    width: int,
    filter_type: FilterType,
    cutoff: float = 0.5,
    order: int = 2,
) -> npt.NDArray[np.float64]:
    """
    Low-pass mask on the centred frequency grid.

    The radius is measured in units of the Nyquist frequency, so ``cutoff=1``
    places the cutoff on the Nyquist circle. The DC gain is always one.
    """
    FX, FY = frequency_grid(height, width, 1.0)
    # Nyquist is 0.5 cycles per sample
    rho = np.sqrt(FX ** 2 + FY ** 2) / 0.5

    if filter_type == FilterType.NONE:
        return np.ones((height, width), dtype=np.float64)
    elif filter_type == FilterType.GAUSSIAN:
        return np.exp(-0.5 * (rho / cutoff) ** 2)
    elif filter_type == FilterType.BUTTERWORTH:
        return 1 / (1 + (rho / cutoff) ** (2 * order))
    else:
        raise InvalidParameterError(f"Unsupported filter: {filter_type}")


def apply_spectral_filter(
    field: npt.NDArray[np.complex128],
    config: ReconstructionConfig,
) -> npt.NDArray[np.complex128]:
    """
    Low-pass filter a complex field as selected by `config.filter`.

    The filter works on the FFT spectrum and is therefore circular. A
    convolution result has zero-filled borders that must not wrap, so it is
    returned unfiltered.
    """
    if config.filter == FilterType.NONE:
        return field
    if config.algorithm == Algorithm.CONVOLUTION:
        logger.warning(
            "The %s filter is not applied to convolution results", config.filter.value,
        )
        return field
    height, width = field.shape
    mask = spectral_filter_mask(
        height, width, config.filter, config.filter_cutoff, config.butterworth_order,
    )
    spectrum = shift_spectrum(fft2(field, workers=config.workers))
    return ifft2(unshift_spectrum(spectrum * mask), workers=config.workers)


ALGORITHMS = {
    Algorithm.FRESNEL: fresnel_reconstruction,
    Algorithm.ANGULAR_SPECTRUM: angular_spectrum_reconstruction,
    Algorithm.CONVOLUTION: convolution_reconstruction,
}


def reconstruct_field(
    field: HologramField,
    config: ReconstructionConfig,
) -> npt.NDArray[np.complex128]:
    """
    Propagate `field` with the algorithm selected in `config`.

    Parameters
    ----------
    field : HologramField
        The hologram to propagate.
    config : ReconstructionConfig
        Reconstruction parameters.

    Returns
    -------
    npt.NDArray[np.complex128]
        The propagated ``(height, width)`` complex field, before any spectral
        filter or post-processing.
    """
    try:
        algorithm = ALGORITHMS[config.algorithm]
    except KeyError:
        raise InvalidParameterError(f"Unsupported algorithm: {config.algorithm}") from None
    logger.debug(
        "Reconstructing %dx%d field with %s over %g m",
        field.width, field.height, config.algorithm.value, config.propagation_distance,
    )
    return algorithm(field, config)
