from collections.abc import Iterable, Sequence
import logging
from typing import NamedTuple

import numpy as np

from .exceptions import InvalidParameterError, InvalidShapeError
from .types import HologramField, WAVELENGTH_PRESETS
from .utilities import create_grid


logger = logging.getLogger(__name__)


SERIES_MAX_WIDTH = 256
SERIES_HEIGHT = 256
SERIES_WAVELENGTH = WAVELENGTH_PRESETS["green"]
SERIES_PIXEL_SIZE = 10e-6

OPPORTUNITY_GRID = 256
OPPORTUNITY_CELL = 16
OPPORTUNITY_MAX_RADIUS = 8
OPPORTUNITY_PROFIT_SCALE = 1000.0
OPPORTUNITY_WAVELENGTH = WAVELENGTH_PRESETS["red"]
OPPORTUNITY_PIXEL_SIZE = 8e-6


class Opportunity(NamedTuple):
    """One arbitrage opportunity supplied by the caller."""
    profit: float
    confidence: float
    risk_score: float
    time_window: float = 0.0


def generate_synthetic_hologram(
    width: int,
    height: int,
    wavelength: float,
    pixel_size: float,
    reference_scale: float = 0.1,
) -> HologramField:
    """
    Simulate the interference of a point-source object wave with a plane reference wave.

    Parameters
    ----------
    width, height : int
        Field dimensions in samples.
    wavelength : float
        Wavelength of coherent light in meters.
    pixel_size : float
        Sample spacing in meters.
    reference_scale : float, default 0.1
        Tilt of the reference wave; its phase is
        ``k * x * pixel_size * reference_scale``.

    Returns
    -------
    HologramField
        Amplitude ``1 + 0.5 cos(phase)`` and the combined phase reduced
        modulo ``2 pi``.
    """
    if width <= 0 or height <= 0:
        raise InvalidShapeError(f"Field dimensions must be positive, got {width}x{height}")
    if not (wavelength > 0 and pixel_size > 0):
        raise InvalidParameterError("wavelength and pixel_size must be positive")

    k = 2 * np.pi / wavelength
    X, Y = create_grid(width, height, pixel_size)

    # Object wave (point source at the field centre)
    object_phase = k * np.sqrt(X ** 2 + Y ** 2)

    # Reference wave (plane wave tilted along x)
    columns = np.arange(width, dtype=np.float64)[None, :]
    reference_phase = k * columns * pixel_size * reference_scale

    total_phase = object_phase + reference_phase
    amplitude = 1 + 0.5 * np.cos(total_phase)
    phase = np.mod(total_phase, 2 * np.pi)

    return HologramField(
        width=width,
        height=height,
        wavelength=wavelength,
        pixel_size=pixel_size,
        amplitude=amplitude,
        phase=phase,
    )


def _scale_by_max(values: np.ndarray) -> np.ndarray:
    peak = np.max(values)
    if peak <= 0:
        return np.zeros_like(values)
    return values / peak


def encode_price_series(
    prices: Sequence[float],
    volumes: Sequence[float],
    time_labels: Sequence[str] | None = None,
) -> HologramField:
    """
    Encode a price/volume series as a hologram.

    Each of the first ``min(len(prices), 256)`` samples becomes one column of
    a 256 row field: price (scaled by the maximum price) sets the amplitude,
    volume (scaled by the maximum volume) sets the phase as a fraction of a
    full turn. Amplitudes cannot be negative, so negative prices encode as
    zero amplitude.

    Parameters
    ----------
    prices : Sequence[float]
        Price series.
    volumes : Sequence[float]
        Volume series, at least as long as the encoded part of `prices`.
    time_labels : Sequence[str], optional
        Labels for the samples; accepted for symmetry with the caller's data
        and not encoded.

    Returns
    -------
    HologramField
        A 256 row field at 532 nm with 10 um samples.
    """
    prices = np.asarray(prices, dtype=np.float64)
    volumes = np.asarray(volumes, dtype=np.float64)
    if prices.ndim != 1 or prices.size == 0:
        raise InvalidShapeError("Price series must be a non-empty list of numbers")

    width = min(prices.size, SERIES_MAX_WIDTH)
    if volumes.ndim != 1 or volumes.size < width:
        raise InvalidShapeError(
            f"Volume series has {volumes.size} samples but {width} are needed"
        )
    if not (np.all(np.isfinite(prices[:width])) and np.all(np.isfinite(volumes[:width]))):
        raise InvalidParameterError("Price and volume series must be finite")
    if time_labels is not None and 0 < len(time_labels) < width:
        logger.debug("Only %d time labels for %d samples", len(time_labels), width)

    if np.any(prices[:width] < 0):
        logger.debug("Negative prices are encoded as zero amplitude")
    # Normalize over the full series, as the caller sees it
    normalized_price = np.clip(_scale_by_max(prices)[:width], 0, None)
    normalized_volume = _scale_by_max(volumes)[:width]

    amplitude = np.tile(normalized_price, (SERIES_HEIGHT, 1))
    phase = np.tile(normalized_volume * 2 * np.pi, (SERIES_HEIGHT, 1))

    return HologramField(
        width=width,
        height=SERIES_HEIGHT,
        wavelength=SERIES_WAVELENGTH,
        pixel_size=SERIES_PIXEL_SIZE,
        amplitude=amplitude,
        phase=phase,
    )


def encode_opportunities(opportunities: Iterable[Opportunity]) -> HologramField:
    """
    Encode arbitrage opportunities as discs on a 256 x 256 field.

    Opportunity ``i`` is stamped in cell ``(i mod 16, i div 16)`` of a 16 x 16
    grid of 16 pixel cells, as a disc of radius ``floor(confidence * 8)``.
    Inside the disc the amplitude becomes the larger of its current value and
    ``profit / 1000`` and the phase becomes ``risk_score * 2 pi``. Parts of a
    disc that fall outside the field are dropped.

    Returns
    -------
    HologramField
        A 256 x 256 field at 632 nm with 8 um samples; all zero when there are
        no opportunities.
    """
    size = OPPORTUNITY_GRID
    amplitude = np.zeros((size, size), dtype=np.float64)
    phase = np.zeros((size, size), dtype=np.float64)
    rows, columns = np.mgrid[0:size, 0:size]
    cells_per_row = size // OPPORTUNITY_CELL

    count = 0
    for index, opportunity in enumerate(opportunities):
        count += 1
        opportunity = Opportunity(*opportunity)
        center_x = (index % cells_per_row) * OPPORTUNITY_CELL + OPPORTUNITY_CELL // 2
        center_y = (index // cells_per_row) * OPPORTUNITY_CELL + OPPORTUNITY_CELL // 2
        radius = int(np.floor(opportunity.confidence * OPPORTUNITY_MAX_RADIUS))
        if radius < 0:
            continue

        disc = (columns - center_x) ** 2 + (rows - center_y) ** 2 <= radius ** 2
        amplitude[disc] = np.maximum(amplitude[disc], opportunity.profit / OPPORTUNITY_PROFIT_SCALE)
        phase[disc] = opportunity.risk_score * 2 * np.pi

    if count > cells_per_row * cells_per_row:
        logger.warning(
            "%d opportunities exceed the %d cells of the grid; the rest are not shown",
            count, cells_per_row * cells_per_row,
        )

    return HologramField(
        width=size,
        height=size,
        wavelength=OPPORTUNITY_WAVELENGTH,
        pixel_size=OPPORTUNITY_PIXEL_SIZE,
        amplitude=amplitude,
        phase=phase,
    )
