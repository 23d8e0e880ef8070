"""Error types raised by the background removal engine."""


class BackgroundRemovalError(Exception):
    """Base class for failures surfaced by the engine."""


class DecodeError(BackgroundRemovalError, ValueError):
    """The source image could not be read or rasterised."""


class EncodeError(BackgroundRemovalError):
    """The composited image could not be serialised."""
