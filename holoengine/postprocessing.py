"""
Post-processing of reconstructed fields.

Phase unwrapping here is a simple path-following heuristic: rows are
unwrapped left to right, then columns top to bottom on the row-corrected
result. It does not detect phase singularities, so noisy fields with phase
vortices leave streaks along the scan direction. Callers rely on this exact
behaviour; do not replace it with a globally optimal unwrapper.
"""
import numpy as np
import numpy.typing as npt
from scipy import signal


TWO_PI = 2 * np.pi


def wrap_difference(diff: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Bring phase differences into ``[-pi, pi]`` by whole turns.

    Values above ``pi`` lose ``2 pi`` until they are at most ``pi``; values
    below ``-pi`` gain ``2 pi`` until they are at least ``-pi``. Values
    already inside the interval, including ``+-pi`` themselves, are unchanged.
    """
    diff = np.asarray(diff, dtype=np.float64)
    turns = np.zeros_like(diff)
    above = diff > np.pi
    below = diff < -np.pi
    turns[above] = -np.ceil((diff[above] - np.pi) / TWO_PI)
    turns[below] = np.ceil((-np.pi - diff[below]) / TWO_PI)
    return diff + turns * TWO_PI


def _unwrap_columns_in_order(phase: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    # Walks axis 1 in order; every row is handled at once
    unwrapped = phase.copy()
    for x in range(1, unwrapped.shape[1]):
        diff = unwrapped[:, x] - unwrapped[:, x - 1]
        unwrapped[:, x] = unwrapped[:, x - 1] + wrap_difference(diff)
    return unwrapped


def unwrap_phase(
    phase: npt.ArrayLike,
    width: int,
    height: int,
) -> npt.NDArray[np.float32]:
    """
    Remove ``2 pi`` discontinuities from a row-major phase map.

    Parameters
    ----------
    phase : npt.ArrayLike
        Flat row-major phase samples in radians.
    width : int
        Samples per row.
    height : int
        Number of rows.

    Returns
    -------
    npt.NDArray[np.float32]
        Flat unwrapped phase. The input is not modified.
    """
    grid = np.asarray(phase, dtype=np.float64).reshape(height, width)

    # Pass 1: along each row
    grid = _unwrap_columns_in_order(grid)

    # Pass 2: along each column, on the row-corrected phases
    grid = _unwrap_columns_in_order(grid.T).T

    return grid.astype(np.float32).ravel()


def gaussian_kernel(size: int = 5, sigma: float = 1.0) -> npt.NDArray[np.float64]:
    """
    Create an unnormalised square Gaussian kernel.

    Parameters
    ----------
    size : int, default 5
        Kernel side length.
    sigma : float, default 1.0
        Standard deviation in samples.

    Returns
    -------
    npt.NDArray[np.float64]
        Kernel of shape ``(size, size)`` with a centre weight of one.
    """
    center = size // 2
    offsets = np.arange(size, dtype=np.float64) - center
    DX, DY = np.meshgrid(offsets, offsets, indexing="xy")
    return np.exp(-(DX ** 2 + DY ** 2) / (2 * sigma * sigma))


def reduce_noise(
    amplitude: npt.ArrayLike,
    width: int,
    height: int,
    size: int = 5,
    sigma: float = 1.0,
) -> npt.NDArray[np.float32]:
    """
    Smooth a row-major amplitude map with a 2D Gaussian kernel.

    Kernel taps that fall outside the field are skipped and every output is
    divided by the sum of the weights that were actually used, so the edges
    are not darkened.

    Parameters
    ----------
    amplitude : npt.ArrayLike
        Flat row-major amplitude samples.
    width : int
        Samples per row.
    height : int
        Number of rows.
    size : int, default 5
        Kernel side length.
    sigma : float, default 1.0
        Kernel standard deviation in samples.

    Returns
    -------
    npt.NDArray[np.float32]
        Flat smoothed amplitude. The input is not modified.
    """
    grid = np.asarray(amplitude, dtype=np.float64).reshape(height, width)
    kernel = gaussian_kernel(size, sigma)

    weighted = signal.convolve2d(grid, kernel, mode="same", boundary="fill", fillvalue=0)
    weights = signal.convolve2d(
        np.ones_like(grid), kernel, mode="same", boundary="fill", fillvalue=0,
    )
    return (weighted / weights).astype(np.float32).ravel()
