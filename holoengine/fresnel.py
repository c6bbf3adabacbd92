"""
Direct Fresnel diffraction sum.

Every output sample is the sum over every input sample of
``U(xp, yp) * exp(-i k r) / r``. The cost is O(N^2) per output sample and
O(N^4) for an N x N field, so this is only practical for small fields; it is
the reference the faster methods are checked against.
"""
from concurrent.futures import ProcessPoolExecutor, as_completed
from contextlib import nullcontext
from functools import partial
import logging
import math

from numba import cuda
import numpy as np
import numpy.typing as npt
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from .utilities import is_cuda_available


logger = logging.getLogger(__name__)


def _progress() -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )


def fresnel_kernel_table(
    height: int,
    width: int,
    wavelength: float,
    pixel_size: float,
    distance: float,
) -> npt.NDArray[np.complex128]:
    """
    Tabulate the Fresnel kernel for every possible sample offset.

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
    npt.NDArray[np.complex128]
        Array of shape ``(2 * height - 1, 2 * width - 1)``; entry
        ``[dy + height - 1, dx + width - 1]`` is ``exp(-i k r) / r`` for the
        offset ``(dx, dy)`` in samples.
    """
    k = 2 * np.pi / wavelength
    dx = np.arange(-(width - 1), width, dtype=np.float64) * pixel_size
    dy = np.arange(-(height - 1), height, dtype=np.float64) * pixel_size
    DX, DY = np.meshgrid(dx, dy, indexing="xy")
    r = np.sqrt(DX ** 2 + DY ** 2 + distance ** 2)
    return np.exp(-1j * k * r) / r


def compute_rows(
    rows: range | list[int],
    field: npt.NDArray[np.complex128],
    kernel: npt.NDArray[np.complex128],
) -> tuple[list[int], npt.NDArray[np.complex128]]:
    """
    Compute the Fresnel sum for a subset of output rows.

    Parameters
    ----------
    rows : range | list[int]
        Output row indices to compute.
    field : npt.NDArray[np.complex128]
        The ``(height, width)`` input field.
    kernel : npt.NDArray[np.complex128]
        Offset table from `fresnel_kernel_table`.

    Returns
    -------
    tuple[list[int], npt.NDArray[np.complex128]]
        The row indices and the ``(len(rows), width)`` block of output rows.
    """
    height, width = field.shape
    yp = np.arange(height)
    x = np.arange(width)
    # Column offsets x - xp, shifted to table indices: [x, xp]
    column_index = x[:, None] - x[None, :] + (width - 1)

    rows = list(rows)
    block = np.empty((len(rows), width), dtype=np.complex128)
    for i, y in enumerate(rows):
        # kernel_rows[yp, :] holds the offsets for dy = y - yp
        kernel_rows = kernel[y - yp + (height - 1)]
        # weights[yp, x, xp] = kernel(x - xp, y - yp)
        weights = kernel_rows[:, column_index]
        block[i] = np.einsum("pj,pij->i", field, weights)
    return rows, block


def fresnel_propagate_cpu(
    field: npt.NDArray[np.complex128],
    wavelength: float,
    pixel_size: float,
    distance: float,
    num_processes: int = 1,
    show_progress: bool = False,
) -> npt.NDArray[np.complex128]:
    """
    Compute the direct Fresnel sum on the CPU.

    With ``num_processes > 1`` the output rows are split into chunks that are
    computed in a process pool. Every output row depends only on the input
    field, so the result is identical to the serial computation.
    """
    field = np.asarray(field, dtype=np.complex128)
    height, width = field.shape
    kernel = fresnel_kernel_table(height, width, wavelength, pixel_size, distance)
    result = np.empty((height, width), dtype=np.complex128)

    if num_processes == 1:
        ContextManager = _progress() if show_progress else nullcontext()
        with ContextManager as progress:
            if show_progress:
                task = progress.add_task("Fresnel sum", total=height)
            for y in range(height):
                _, block = compute_rows([y], field, kernel)
                result[y] = block[0]
                if show_progress:
                    progress.update(task, advance=1)
        return result

    # Determine chunk size
    chunk_size = max(1, min(16, (height + num_processes - 1) // num_processes))
    chunks = [range(i, min(i + chunk_size, height)) for i in range(0, height, chunk_size)]
    logger.debug("Fresnel sum split into %d chunks over %d processes", len(chunks), num_processes)

    partial_compute = partial(compute_rows, field=field, kernel=kernel)
    ContextManager = _progress() if show_progress else nullcontext()
    with (
        ProcessPoolExecutor(max_workers=num_processes) as pool,
        ContextManager as progress,
    ):
        if show_progress:
            task = progress.add_task("Fresnel sum (chunked)", total=len(chunks))
        futures = [pool.submit(partial_compute, chunk) for chunk in chunks]
        for future in as_completed(futures):
            rows, block = future.result()
            result[rows] = block
            if show_progress:
                progress.update(task, advance=1)

    return result


def fresnel_propagate_cuda(
    field: npt.NDArray[np.complex128],
    wavelength: float,
    pixel_size: float,
    distance: float,
) -> npt.NDArray[np.complex128]:
    """
    Driver function to launch the CUDA kernel for the Fresnel sum.
    """
    field = np.ascontiguousarray(field, dtype=np.complex128)
    height, width = field.shape
    k = 2 * np.pi / wavelength

    # Transfer data to GPU
    field_device = cuda.to_device(field)
    result_device = cuda.device_array((height, width), dtype=np.complex128)

    # Define CUDA grid and block sizes
    threads_per_block = (16, 16)
    blocks_per_grid = (
        (height + threads_per_block[0] - 1) // threads_per_block[0],
        (width + threads_per_block[1] - 1) // threads_per_block[1],
    )

    fresnel_kernel_cuda[blocks_per_grid, threads_per_block](
        field_device, result_device, k, pixel_size, distance,
    )

    # Transfer result back to CPU
    return result_device.copy_to_host()


@cuda.jit
def fresnel_kernel_cuda(field, result, k, pixel_size, distance):
    """
    CUDA kernel for the Fresnel sum.
    Each thread computes a single output sample.
    """
    y, x = cuda.grid(2)
    height, width = field.shape

    if y < height and x < width:
        real = 0.0
        imag = 0.0
        for yp in range(height):
            dy = (y - yp) * pixel_size
            for xp in range(width):
                dx = (x - xp) * pixel_size
                r = math.sqrt(dx * dx + dy * dy + distance * distance)
                phase = -k * r
                kernel_real = math.cos(phase) / r
                kernel_imag = math.sin(phase) / r
                sample = field[yp, xp]
                real += sample.real * kernel_real - sample.imag * kernel_imag
                imag += sample.real * kernel_imag + sample.imag * kernel_real
        result[y, x] = complex(real, imag)


def fresnel_propagate(
    field: npt.NDArray[np.complex128],
    wavelength: float,
    pixel_size: float,
    distance: float,
    num_processes: int = 1,
    use_cuda: bool = False,
    show_progress: bool = False,
) -> npt.NDArray[np.complex128]:
    """
    Use the best method to compute the Fresnel sum.
    """
    if use_cuda and is_cuda_available():
        return fresnel_propagate_cuda(field, wavelength, pixel_size, distance)
    if use_cuda:
        logger.warning("CUDA requested but no device is available; using the CPU")
    return fresnel_propagate_cpu(
        field,
        wavelength,
        pixel_size,
        distance,
        num_processes=num_processes,
        show_progress=show_progress,
    )
