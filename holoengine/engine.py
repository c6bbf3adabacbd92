from dataclasses import replace
import logging
import threading

import numpy as np

from .exceptions import CapacityError, InvalidParameterError
from .hologram import generate_synthetic_hologram
from .image import render_field
from .postprocessing import reduce_noise, unwrap_phase
from .reconstruction import apply_spectral_filter, reconstruct_field
from .types import (
    Algorithm,
    HologramField,
    PixelBuffer,
    ReconstructionConfig,
    VisualizationConfig,
)
from .utilities import Timer


logger = logging.getLogger(__name__)


class HolographicEngine:
    """
    Reconstructs and renders holograms with a shared configuration.

    The configuration is an immutable `ReconstructionConfig`. Updates build a
    complete new configuration and swap it in under a lock, and every
    `reconstruct` call reads the configuration exactly once, so a call sees
    either the old or the new configuration and never a mixture.

    Parameters
    ----------
    config : ReconstructionConfig, optional
        Initial configuration; defaults to `ReconstructionConfig()`.
    """

    def __init__(self, config: ReconstructionConfig | None = None):
        self._lock = threading.Lock()
        self._config = config if config is not None else ReconstructionConfig()

    @property
    def config(self) -> ReconstructionConfig:
        with self._lock:
            return self._config

    def update_config(self, **changes) -> ReconstructionConfig:
        """
        Replace the configuration with a copy carrying `changes`.

        Raises
        ------
        InvalidParameterError
            If a change names an unknown setting or the merged configuration
            is invalid. The current configuration is then left untouched.
        """
        unknown = set(changes) - ReconstructionConfig.field_names()
        if unknown:
            raise InvalidParameterError(f"Unknown configuration settings: {', '.join(sorted(unknown))}")
        with self._lock:
            new_config = replace(self._config, **changes)
            self._config = new_config
        logger.info("Reconstruction configuration updated: %s", new_config)
        return new_config

    def reset_config(self) -> ReconstructionConfig:
        with self._lock:
            self._config = ReconstructionConfig()
            return self._config

    def _effective_config(self, field: HologramField, config: ReconstructionConfig) -> ReconstructionConfig:
        if config.algorithm != Algorithm.FRESNEL:
            return config
        samples = field.width * field.height
        if samples <= config.fresnel_max_samples:
            return config
        if config.fresnel_fallback:
            logger.warning(
                "Fresnel sum over %dx%d exceeds %d samples; using the angular spectrum method",
                field.width, field.height, config.fresnel_max_samples,
            )
            return replace(config, algorithm=Algorithm.ANGULAR_SPECTRUM)
        raise CapacityError(
            f"Fresnel reconstruction of a {field.width}x{field.height} field "
            f"({samples} samples) exceeds the limit of {config.fresnel_max_samples} samples; "
            "use the angular spectrum method or raise fresnel_max_samples"
        )

    def reconstruct(
        self,
        field: HologramField,
        config: ReconstructionConfig | None = None,
    ) -> HologramField:
        """
        Propagate a hologram and post-process the result.

        Parameters
        ----------
        field : HologramField
            The hologram to reconstruct. It is never modified.
        config : ReconstructionConfig, optional
            Snapshot to use instead of the engine configuration.

        Returns
        -------
        HologramField
            A new field with the same dimensions and optics as `field`.

        Raises
        ------
        InvalidShapeError
            If the field's arrays do not match its dimensions.
        InvalidParameterError
            If the field's optics are not physical.
        CapacityError
            If a Fresnel reconstruction is too large and no fallback is allowed.
        """
        if config is None:
            config = self.config
        field.validate()
        config = self._effective_config(field, config)

        with Timer(f"Reconstruction ({config.algorithm.value}, {field.width}x{field.height}):"):
            propagated = reconstruct_field(field, config)
            propagated = apply_spectral_filter(propagated, config)
            result = HologramField.from_complex(propagated, field.wavelength, field.pixel_size)

            if config.phase_unwrapping:
                result = result.with_phase(unwrap_phase(result.phase, result.width, result.height))

            if config.noise_reduction:
                result = result.with_amplitude(reduce_noise(result.amplitude, result.width, result.height))

        if not np.all(np.isfinite(result.amplitude)):
            logger.warning("Reconstruction produced non-finite amplitudes")
        return result

    def visualize(
        self,
        field: HologramField,
        visualization: VisualizationConfig | None = None,
    ) -> PixelBuffer:
        """Render `field` as an RGBA pixel buffer."""
        field.validate()
        return render_field(field, visualization)

    def generate_synthetic(
        self,
        width: int = 256,
        height: int = 256,
        wavelength: float | None = None,
        pixel_size: float | None = None,
    ) -> HologramField:
        """Synthetic test hologram; optics default to the configured ones."""
        config = self.config
        return generate_synthetic_hologram(
            width,
            height,
            wavelength if wavelength is not None else config.wavelength,
            pixel_size if pixel_size is not None else config.pixel_pitch,
        )
