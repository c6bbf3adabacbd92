class HologramError(ValueError):
    """Base class for every error raised while validating or processing a hologram."""


class InvalidShapeError(HologramError):
    """Amplitude/phase arrays do not match each other or the grid dimensions."""


class InvalidParameterError(HologramError):
    """A physical or configuration parameter is out of range."""


class CapacityError(HologramError):
    """The requested computation is too large to run with the current limits."""
