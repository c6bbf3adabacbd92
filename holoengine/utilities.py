from datetime import datetime, timedelta
from functools import lru_cache
import logging

import matplotlib.pyplot as plt
from numba import cuda
import numpy as np
import numpy.typing as npt

from .types import HologramField


logger = logging.getLogger(__name__)


class Timer:
    """
    A context manager that records the duration of the execution of the body.

    Parameters
    ----------
    msg : str, default ""
        If non-empty, logs the string on exit followed by the duration.
    level : int, default logging.DEBUG
        Log level used for the message.
    """

    def __init__(self, msg="", level=logging.DEBUG):  # type: ignore reportMissingSuperCall
        self._msg = msg
        self._level = level
        self._start = None
        self.duration = timedelta(0)

    def __enter__(self) -> "Timer":
        self._start = datetime.now()
        return self

    def __exit__(self, *args):
        self.duration: timedelta = datetime.now() - self._start
        if self._msg:
            logger.log(self._level, "%s %s", self._msg, self.duration)


@lru_cache
def create_grid(
    width: int,
    height: int,
    pixel_size: float,
    origin: tuple[float, float] | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Create a 2D grid of physical sample coordinates.

    Parameters
    ----------
    width : int
        Number of samples per row.
    height : int
        Number of rows.
    pixel_size : float
        Sample spacing in meters.
    origin : tuple[float, float], optional
        Sample index ``(x, y)`` that maps to coordinate zero. Defaults to
        ``(width / 2, height / 2)``.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        Read-only ``(X, Y)`` meshgrids of shape ``(height, width)`` in meters.
    """
    if origin is None:
        origin = width / 2, height / 2
    x = (np.arange(width, dtype=np.float64) - origin[0]) * pixel_size
    y = (np.arange(height, dtype=np.float64) - origin[1]) * pixel_size
    X, Y = np.meshgrid(x, y, indexing="xy")

    # Cached arrays are shared between callers
    X.flags.writeable = False
    Y.flags.writeable = False
    return X, Y


def estimate_fresnel_cost(width: int, height: int) -> dict[str, int]:
    """
    Estimate the work done by the direct Fresnel sum.

    Returns
    -------
    dict[str, int]
        ``samples``: field size, ``operations``: number of complex
        multiply-adds, ``row_bytes``: size of the per-row kernel block that
        `compute_rows` materialises.
    """
    samples = width * height
    return {
        "samples": samples,
        "operations": samples * samples,
        "row_bytes": height * width * width * np.dtype(np.complex128).itemsize,
    }


def show_fresnel_requirements(width: int, height: int) -> None:
    cost = estimate_fresnel_cost(width, height)
    logger.info(
        "Fresnel sum over %dx%d requires %s multiply-adds, %s bytes per row (%.3f MB)",
        width, height, f"{cost['operations']:,d}", f"{cost['row_bytes']:,d}",
        cost["row_bytes"] / 1024 ** 2,
    )


def plot_field(field: HologramField, title: str = "") -> None:
    """
    Visualize components of a complex field.

    Parameters
    ----------
    field : HologramField
        The field to show.
    title : str, default ""
        Figure title.
    """
    complex_field = field.complex_field()
    extent = (
        -field.width * field.pixel_size / 2, field.width * field.pixel_size / 2,
        -field.height * field.pixel_size / 2, field.height * field.pixel_size / 2,
    )

    plt.figure(figsize=(10, 8))
    if title:
        plt.suptitle(title)

    # Amplitude
    plt.subplot(2, 2, 1)
    plt.title("Amplitude")
    plt.imshow(field.amplitude.reshape(field.shape), cmap="viridis", extent=extent)
    plt.colorbar(label="Amplitude")

    # Phase
    plt.subplot(2, 2, 2)
    plt.title("Phase")
    plt.imshow(field.phase.reshape(field.shape), cmap="twilight", extent=extent)
    plt.colorbar(label="Phase (radians)")

    # Real Part
    plt.subplot(2, 2, 3)
    plt.title("Real Part")
    plt.imshow(np.real(complex_field), cmap="coolwarm", extent=extent)
    plt.colorbar(label="Real Part")

    # Imaginary Part
    plt.subplot(2, 2, 4)
    plt.title("Imaginary Part")
    plt.imshow(np.imag(complex_field), cmap="coolwarm", extent=extent)
    plt.colorbar(label="Imaginary Part")

    plt.tight_layout()
    plt.show()


def normalized_cross_correlation(a: npt.ArrayLike, b: npt.ArrayLike) -> float:
    """Pearson correlation of two equally-shaped arrays; 0 when either is constant."""
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()
    a = a - a.mean()
    b = b - b.mean()
    denominator = np.sqrt(np.sum(a * a) * np.sum(b * b))
    if denominator == 0:
        return 0.0
    return float(np.sum(a * b) / denominator)


@lru_cache
def is_cuda_available() -> bool:
    try:
        # Check if CUDA is available
        cuda.get_current_device()
        return True
    except cuda.CudaSupportError:
        return False
