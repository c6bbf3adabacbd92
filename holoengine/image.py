from pathlib import Path

import matplotlib
from matplotlib.colors import hsv_to_rgb
import numpy as np
import numpy.typing as npt
from PIL import Image

from .exceptions import InvalidParameterError
from .types import (
    Channel,
    Colormap,
    HologramField,
    Normalization,
    PixelBuffer,
    VisualizationConfig,
)


CONTRAST_PERCENTILES = (1.0, 99.0)


def select_channel(field: HologramField, channel: Channel) -> npt.NDArray[np.float64]:
    """
    Pick the scalar samples to render.

    The complex channel is rendered with amplitude as brightness, so its
    scalar values are the amplitude.
    """
    if channel in (Channel.AMPLITUDE, Channel.COMPLEX):
        values = field.amplitude
    elif channel == Channel.PHASE:
        values = field.phase
    elif channel == Channel.INTENSITY:
        values = field.intensity
    else:
        raise InvalidParameterError(f"Unsupported channel: {channel}")
    return np.asarray(values, dtype=np.float64)


def normalize_values(
    values: npt.ArrayLike,
    normalization: Normalization = Normalization.LINEAR,
    contrast_enhancement: bool = False,
) -> npt.NDArray[np.float64]:
    """
    Map values into ``[0, 1]``.

    Parameters
    ----------
    values : npt.ArrayLike
        Samples to normalize.
    normalization : Normalization, optional
        Curve applied after min/max scaling:
        - 'linear': identity
        - 'log': ``log(1 + 9x) / log(10)``
        - 'sqrt': square root
    contrast_enhancement : bool, default False
        Stretch the result between its 1st and 99th percentiles.

    Returns
    -------
    npt.NDArray[np.float64]
        Normalized samples. A constant input maps to all zeros.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return values

    value_min = np.min(values)
    value_max = np.max(values)
    if value_max > value_min:  # Avoid division by zero
        normalized = (values - value_min) / (value_max - value_min)
    else:
        normalized = np.zeros_like(values)

    if normalization == Normalization.LOG:
        normalized = np.log1p(9 * normalized) / np.log(10)
    elif normalization == Normalization.SQRT:
        normalized = np.sqrt(normalized)
    elif normalization != Normalization.LINEAR:
        raise InvalidParameterError(f"Unsupported normalization: {normalization}")

    if contrast_enhancement:
        low, high = np.percentile(normalized, CONTRAST_PERCENTILES)
        if high > low:
            normalized = (normalized - low) / (high - low)

    # Rounding in the curves can leave values a hair outside the interval
    return np.clip(normalized, 0.0, 1.0)


def apply_colormap(values: npt.ArrayLike, colormap: Colormap) -> npt.NDArray[np.uint8]:
    """
    Map normalized values through a matplotlib colormap.

    Returns
    -------
    npt.NDArray[np.uint8]
        Array of shape ``values.shape + (4,)``; alpha is always 255.
    """
    try:
        cmap = matplotlib.colormaps[Colormap(colormap).value]
    except (KeyError, ValueError):
        raise InvalidParameterError(f"Unsupported colormap: {colormap}") from None
    rgba = cmap(np.asarray(values, dtype=np.float64), bytes=True)
    rgba[..., 3] = 255
    return rgba


def complex_to_rgba(
    brightness: npt.NDArray[np.float64],
    phase: npt.NDArray[np.float64],
) -> npt.NDArray[np.uint8]:
    """Domain colouring: hue follows phase, value follows brightness."""
    hue = np.mod(phase, 2 * np.pi) / (2 * np.pi)
    hsv = np.stack([hue, np.ones_like(hue), brightness], axis=-1)
    rgb = np.round(hsv_to_rgb(hsv) * 255).astype(np.uint8)
    alpha = np.full(rgb.shape[:-1] + (1,), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=-1)


def render_field(
    field: HologramField,
    visualization: VisualizationConfig | None = None,
) -> PixelBuffer:
    """
    Render a field as an RGBA image.

    Parameters
    ----------
    field : HologramField
        The field to render.
    visualization : VisualizationConfig, optional
        Channel, normalization, colormap and contrast settings.

    Returns
    -------
    PixelBuffer
        Opaque RGBA pixels in row-major order.
    """
    if visualization is None:
        visualization = VisualizationConfig()
    values = select_channel(field, visualization.channel)
    normalized = normalize_values(
        values,
        visualization.normalization,
        visualization.contrast_enhancement,
    )

    if visualization.channel == Channel.COMPLEX:
        rgba = complex_to_rgba(normalized, field.phase.astype(np.float64))
    else:
        rgba = apply_colormap(normalized, visualization.colormap)

    return PixelBuffer(width=field.width, height=field.height, rgba=rgba)


def save_pixel_buffer(buffer: PixelBuffer, output_path: Path | str) -> Path:
    """
    Save a pixel buffer as an RGBA PNG.

    Returns
    -------
    Path
        The path written.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.fromarray(buffer.as_array())
    img.save(output_path, format='PNG')
    return output_path
