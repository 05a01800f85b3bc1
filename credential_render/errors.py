"""Exception types raised by the rendering engine.

Image-format and dimension problems are fatal and surface as
InvalidInputFormat / UnsupportedFormat / CorruptImage. Everything else
that goes wrong while drawing is wrapped once at the compositor boundary
as RenderFailure. Font acquisition problems never raise; they degrade to
a fallback font.
"""

from __future__ import annotations


class CredentialRenderError(Exception):
    """Base class for all rendering engine errors."""


class InvalidInputFormat(CredentialRenderError):
    """The source image is not a well-formed base64 data URI."""


class UnsupportedFormat(InvalidInputFormat):
    """The data URI declares a MIME type that cannot be rasterized (e.g. PDF)."""

    def __init__(self, mime_type: str, message: str | None = None):
        self.mime_type = mime_type
        super().__init__(message or f"Unsupported template format: {mime_type}")


class CorruptImage(CredentialRenderError):
    """The payload decoded but is not a usable raster image."""


class InvalidTemplate(CredentialRenderError):
    """A template's placeholder list violates the authoring rules."""


class RenderFailure(CredentialRenderError):
    """Normalized error for anything unexpected during decode/draw/encode.

    Attributes:
        field_name: Placeholder being drawn when the failure happened, if any.
        font_family: Font family in use at the time, if any.
    """

    def __init__(self, message: str, field_name: str | None = None,
                 font_family: str | None = None):
        self.field_name = field_name
        self.font_family = font_family
        super().__init__(message)
