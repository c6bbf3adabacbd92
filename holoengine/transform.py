"""
Separable 2D discrete Fourier transforms.

The 2D transforms are built from the 1D `scipy.fft` primitive: every row is
transformed first, then every column of the row-transformed result. Power of
two sizes are the fastest; other sizes are accepted and transformed exactly,
only more slowly.
"""
import numpy as np
import numpy.typing as npt
from scipy import fft as sp_fft


def fft2(field: npt.ArrayLike, workers: int = 1) -> npt.NDArray[np.complex128]:
    """
    Forward 2D transform of a ``(height, width)`` complex field.

    Parameters
    ----------
    field : npt.ArrayLike
        2D array of complex samples.
    workers : int, default 1
        Number of threads `scipy.fft` may use.

    Returns
    -------
    npt.NDArray[np.complex128]
        The transformed field, same shape as the input, zero frequency at
        index ``(0, 0)``.
    """
    field = np.asarray(field, dtype=np.complex128)
    rows = sp_fft.fft(field, axis=1, workers=workers)
    return sp_fft.fft(rows, axis=0, workers=workers)


def ifft2(spectrum: npt.ArrayLike, workers: int = 1) -> npt.NDArray[np.complex128]:
    """
    Inverse 2D transform, the exact inverse of `fft2`.

    Parameters
    ----------
    spectrum : npt.ArrayLike
        2D array of complex frequency samples, zero frequency at ``(0, 0)``.
    workers : int, default 1
        Number of threads `scipy.fft` may use.

    Returns
    -------
    npt.NDArray[np.complex128]
        The spatial-domain field.
    """
    spectrum = np.asarray(spectrum, dtype=np.complex128)
    rows = sp_fft.ifft(spectrum, axis=1, workers=workers)
    return sp_fft.ifft(rows, axis=0, workers=workers)


def centered_frequencies(n: int, pixel_size: float) -> npt.NDArray[np.float64]:
    """Spatial frequencies ``(i - n // 2) / (n * pixel_size)`` for a centred spectrum."""
    return (np.arange(n, dtype=np.float64) - n // 2) / (n * pixel_size)


def frequency_grid(
    height: int,
    width: int,
    pixel_size: float,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Create the centred frequency meshgrid matching `shift_spectrum`.

    Returns
    -------
    tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]
        ``(FX, FY)``, each of shape ``(height, width)``.
    """
    fx = centered_frequencies(width, pixel_size)
    fy = centered_frequencies(height, pixel_size)
    return np.meshgrid(fx, fy, indexing="xy")


def shift_spectrum(spectrum: npt.NDArray) -> npt.NDArray:
    """Move the zero frequency to index ``(height // 2, width // 2)``."""
    return sp_fft.fftshift(spectrum)


def unshift_spectrum(spectrum: npt.NDArray) -> npt.NDArray:
    """Undo `shift_spectrum`."""
    return sp_fft.ifftshift(spectrum)
