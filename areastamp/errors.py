from __future__ import annotations


class StartupError(RuntimeError):
    """Raised when configuration, images or databases cannot be loaded at startup."""


class RenderError(RuntimeError):
    """Raised when a single advert render fails."""


class TextTooWideError(RenderError):
    pass


class EncodeError(RenderError):
    pass
