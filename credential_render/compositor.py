"""Public entry point: render a certificate or badge from a template.

The compositor runs one render end to end:

    1. decode the template data URI
    2. collect the distinct (family, weight, italic) specs of placeholders
       that have coordinates and resolve them concurrently
    3. draw the background and every placeholder on a RenderingSurface,
       handing it the fonts resolved in step 2
    4. encode the canvas and return a RenderResult

It keeps no state between renders apart from the shared FontResolver. It
never writes to durable storage; persisting the result is the caller's
job.

Callers that need a value derived from a record identifier (e.g. a
verification URL in a QR field) create the record first, render with
``qr_overrides``, then patch the record with the result, deleting it if
either later step fails.

Example:
    Render a certificate::

        compositor = Compositor()
        result = compositor.render_certificate(RenderRequest(
            source_image=template.certificate_image,
            placeholders=template.placeholders,
            field_values={'Name': 'Jane Doe'},
        ))
        credential.certificate_image = result.data_uri
"""

from __future__ import annotations

import logging

from .config import RenderConfig
from .errors import CorruptImage, InvalidInputFormat, RenderFailure
from .font_resolver import FontResolver, FontSpec
from .image_codec import decode_data_uri
from .models import Placeholder, RenderRequest, RenderResult
from .surface import RenderingSurface

logger = logging.getLogger(__name__)


def font_specs(placeholders: list[Placeholder]) -> list[FontSpec]:
    """Distinct font specs needed to draw the placeholders, in first-use order."""
    specs = (
        (p.font_family, p.weight, p.italic)
        for p in placeholders
        if p.has_coordinates and not p.is_qr
    )
    return list(dict.fromkeys(specs))


class Compositor:
    """Render template images with field values drawn on them.

    Attributes:
        resolver: FontResolver shared by every render of this compositor.
        config: RenderConfig for the output format.
        surface_factory: Callable building the drawing surface.
    """

    def __init__(self, resolver: FontResolver | None = None,
                 config: RenderConfig | None = None,
                 surface_factory=RenderingSurface):
        if config is None:
            config = resolver.config if resolver is not None else RenderConfig()
        self.config = config
        self.resolver = resolver or FontResolver(config=config)
        self.surface_factory = surface_factory

    def render(self, request: RenderRequest, label: str = 'certificate') -> RenderResult:
        """Render a request to an encoded image.

        Args:
            request: Template image, placeholders and values.
            label: Name used in log messages ('certificate' or 'badge').

        Returns:
            RenderResult with the encoded image and its dimensions.

        Raises:
            InvalidInputFormat: Malformed data URI or unsupported MIME type.
            CorruptImage: Unreadable image or zero dimensions.
            RenderFailure: Any other error during decode, draw or encode.
        """
        surface = None
        try:
            decoded = decode_data_uri(request.source_image)
            logger.info("Rendering %s: %dx%d %s, %d placeholders", label,
                        decoded.width, decoded.height, decoded.mime_type,
                        len(request.placeholders))

            values = request.effective_values()

            resolved = self.resolver.resolve_many(font_specs(request.placeholders))
            missing = [spec[0] for spec, font in resolved.items() if not font.available]
            if missing:
                logger.warning("Rendering %s with fallback font for: %s", label, ', '.join(missing))

            surface = self.surface_factory(decoded, self.resolver)
            surface.draw_background()
            surface.draw_placeholders(request.placeholders, values, fonts=resolved)
            data = surface.to_bytes(self.config.output_format)

        except (InvalidInputFormat, CorruptImage):
            raise
        except Exception as e:
            field_name = surface.current_field if surface is not None else None
            family = surface.current_family if surface is not None else None
            logger.exception("Failed to render %s (field=%s, font=%s)", label, field_name, family)
            raise RenderFailure(f"Failed to generate {label}: {e}",
                                field_name=field_name, font_family=family) from e

        logger.debug("Rendered %s: %d bytes", label, len(data))
        return RenderResult(
            image_bytes=data,
            mime_type=self.config.output_mime,
            width=decoded.width,
            height=decoded.height,
        )

    def render_certificate(self, request: RenderRequest) -> RenderResult:
        return self.render(request, label='certificate')

    def render_badge(self, request: RenderRequest) -> RenderResult:
        return self.render(request, label='badge')
