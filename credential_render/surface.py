"""Drawing surface that composites field text over a template image.

The surface is exactly the size of the decoded template. Nothing is
scaled, so placeholder coordinates map 1:1 onto template pixels.

Placeholders are drawn in the order given; a later placeholder paints
over an earlier one where they overlap. For each placeholder:

    - no coordinates -> skipped (e.g. an email field kept for identity)
    - no value        -> skipped
    - text fields     -> single line, anchored so (x, y) is the vertical
                         middle of the text and the left edge, center or
                         right edge depending on ``align``
    - qr fields       -> QR code of the value, top-left corner at (x, y),
                         sized max(width, height)

Text is never wrapped or truncated. A value wider than the space meant
for it overflows.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import qrcode
from PIL import Image, ImageColor, ImageDraw, ImageFont

from .config import DEFAULT_ALIGN, DEFAULT_COLOR, FALLBACK_FAMILY, OUTPUT_FORMAT
from .font_resolver import FontResolver, FontSpec
from .image_codec import CANONICAL_MODE, DecodedImage, encode_image
from .models import Placeholder, ResolvedFont

logger = logging.getLogger(__name__)

# Horizontal anchor per alignment; vertical is always middle
ANCHORS = {
    'left': 'lm',
    'center': 'mm',
    'right': 'rm',
}

# Line breaks and tabs draw as spaces, as on an HTML canvas
_WHITESPACE = re.compile(r'[\t\n\v\f\r]')

QR_BORDER = 1


@dataclass
class DrawOperation:
    """Record of one field drawn on the surface."""
    field_name: str
    text: str
    font_family: str
    position: tuple[float, float]


def parse_color(color: str | None) -> tuple[int, int, int, int]:
    """Convert a CSS-style color string to RGBA, black if it cannot be parsed."""
    try:
        return ImageColor.getcolor(color or DEFAULT_COLOR, 'RGBA')
    except ValueError:
        logger.warning("Invalid color %r, using %s", color, DEFAULT_COLOR)
        return ImageColor.getcolor(DEFAULT_COLOR, 'RGBA')


class RenderingSurface:
    """In-memory canvas for one render.

    Attributes:
        width: Canvas width (equals the template width).
        height: Canvas height (equals the template height).
        canvas: RGBA Pillow image being drawn on.
        operations: Fields drawn so far, in paint order.
        fonts: Resolved fonts by (family, weight, italic), each spec
            resolved at most once per surface.
        current_field: Placeholder being drawn, for error context.
        current_family: Font family in use, for error context.
    """

    def __init__(self, background: DecodedImage, resolver: FontResolver):
        self.background = background
        self.resolver = resolver
        self.width = background.width
        self.height = background.height
        self.canvas = Image.new(CANONICAL_MODE, (self.width, self.height), (0, 0, 0, 0))
        self.draw = ImageDraw.Draw(self.canvas)
        self.operations: list[DrawOperation] = []
        self.fonts: dict[FontSpec, ResolvedFont] = {}
        self.current_field: str | None = None
        self.current_family: str | None = None

    def draw_background(self) -> None:
        """Paint the template over the full canvas."""
        self.canvas.alpha_composite(self.background.image)

    def draw_placeholders(self, placeholders: list[Placeholder], values: dict[str, str],
                          fonts: dict[FontSpec, ResolvedFont] | None = None) -> None:
        """Draw every placeholder that has coordinates and a value.

        Args:
            placeholders: Fields in stacking order.
            values: Field name -> value.
            fonts: Fonts already resolved for this render, keyed by
                (family, weight, italic). Specs missing from it are
                resolved on demand.
        """
        if fonts:
            self.fonts.update(fonts)

        for placeholder in placeholders:
            if not placeholder.has_coordinates:
                continue

            value = values.get(placeholder.field_name)
            if value is None or value == '':
                continue

            self.current_field = placeholder.field_name
            if placeholder.is_qr:
                self.draw_qr(placeholder, str(value))
            else:
                self.draw_text(placeholder, str(value))

        self.current_field = None
        self.current_family = None

    def pick_font(self, placeholder: Placeholder) -> tuple[ImageFont.FreeTypeFont | ImageFont.ImageFont, str]:
        """Return the font for a placeholder and the family it came from."""
        spec = (placeholder.font_family, placeholder.weight, placeholder.italic)
        resolved = self.fonts.get(spec)
        if resolved is None:
            resolved = self.resolver.resolve(*spec)
            self.fonts[spec] = resolved
        font = self.resolver.load_font(resolved, placeholder.font_size)
        if font is not None:
            return font, resolved.effective_family
        return self.resolver.fallback_font(placeholder.font_size), FALLBACK_FAMILY

    def draw_text(self, placeholder: Placeholder, value: str) -> None:
        """Draw one line of text centered vertically on (x, y)."""
        font, family = self.pick_font(placeholder)
        self.current_family = family

        text = _WHITESPACE.sub(' ', value)
        fill = parse_color(placeholder.color)
        align = placeholder.align or DEFAULT_ALIGN
        x, y = placeholder.x, placeholder.y

        if isinstance(font, ImageFont.FreeTypeFont):
            self.draw.text((x, y), text, font=font, fill=fill, anchor=ANCHORS[align])
        else:
            # Bitmap fonts have no anchor support; offset by the text box
            left, top, right, bottom = self.draw.textbbox((0, 0), text, font=font)
            if align == 'left':
                origin_x = x - left
            elif align == 'right':
                origin_x = x - right
            else:
                origin_x = x - (left + right) / 2
            origin_y = y - (top + bottom) / 2
            self.draw.text((origin_x, origin_y), text, font=font, fill=fill)

        logger.debug("Drew %s=%r at (%.1f, %.1f) with %s %.1fpx %s",
                     placeholder.field_name, text, x, y, family, placeholder.font_size, align)
        self.operations.append(DrawOperation(placeholder.field_name, text, family, (x, y)))

    def draw_qr(self, placeholder: Placeholder, value: str) -> None:
        """Paste a QR code of ``value`` with its top-left corner at (x, y)."""
        if not placeholder.width or not placeholder.height:
            logger.debug("QR field %s has no size, skipping", placeholder.field_name)
            return

        size = int(round(max(placeholder.width, placeholder.height)))
        if size <= 0:
            return

        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            border=QR_BORDER,
        )
        qr.add_data(value)
        qr.make(fit=True)
        code = qr.make_image(
            fill_color=placeholder.qr_color,
            back_color=placeholder.qr_background,
        ).get_image().convert(CANONICAL_MODE)
        code = code.resize((size, size), Image.NEAREST)

        position = (int(round(placeholder.x)), int(round(placeholder.y)))
        self.canvas.paste(code, position)

        logger.debug("Drew QR %s at %s, %dpx", placeholder.field_name, position, size)
        self.operations.append(DrawOperation(placeholder.field_name, value, 'qr',
                                             (placeholder.x, placeholder.y)))

    def to_bytes(self, fmt: str = OUTPUT_FORMAT) -> bytes:
        return encode_image(self.canvas, fmt)
