"""Dataclasses for render inputs, outputs and font cache entries.

This module provides the data structures passed across the engine's
boundary:

- Placeholder: a named field position on a template image
- RenderRequest: one unit of rendering work
- RenderResult: the encoded image handed back to the caller
- FontCacheEntry / ResolvedFont: font acquisition bookkeeping
- TemplateRecord: the subset of a stored template this engine reads

Records arrive as JSON documents from the persistence layer, so the
from_dict constructors accept the camelCase keys used there as well as
snake_case.

Typical usage example:

    from credential_render.models import Placeholder, RenderRequest

    name = Placeholder.from_dict({
        'fieldName': 'Name', 'type': 'text', 'x': 300, 'y': 200,
        'fontSize': 24, 'fontFamily': 'Arial', 'align': 'center',
    })
    request = RenderRequest(source_image=data_uri, placeholders=[name],
                            field_values={'Name': 'Jane Doe'})
"""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from typing import Any, Mapping

from .config import (
    BOLD_WEIGHT,
    DEFAULT_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    DEFAULT_WEIGHT,
)
from .errors import InvalidTemplate

FIELD_TYPES = ('text', 'number', 'date', 'email', 'id', 'custom', 'qr')
ALIGNMENTS = ('left', 'center', 'right')
TEMPLATE_TYPES = ('certificate', 'badge', 'both')

# Extensions mimetypes gets wrong or does not know
_MIME_EXTENSIONS = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'image/webp': '.webp',
    'image/svg+xml': '.svg',
}


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in data (camelCase/snake_case lookup)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def extension_for_mime(mime_type: str) -> str:
    """Guess a file extension (with dot) for a MIME type, '.bin' if unknown."""
    mime_type = mime_type.lower()
    if mime_type in _MIME_EXTENSIONS:
        return _MIME_EXTENSIONS[mime_type]
    return mimetypes.guess_extension(mime_type) or '.bin'


@dataclass
class Placeholder:
    """A named field position on a template.

    x and y are the CENTER of the drawn text in source-image pixels. For
    'qr' placeholders they are the top-left corner of the code instead.

    Attributes:
        field_name: Key into the field-value map (case-sensitive).
        field_type: One of FIELD_TYPES.
        x: Horizontal position, or None for a non-rendering field.
        y: Vertical position, or None for a non-rendering field.
        font_size: Font size in pixels.
        font_family: Requested family; system names are substituted.
        color: Any color string Pillow understands ('#000', 'rgb(..)', 'red').
        align: 'left', 'center' or 'right'. None means the renderer
            default ('center').
        bold: Draw with weight 700.
        italic: Draw with the italic variant.
        width: QR code box width.
        height: QR code box height.
        qr_color: QR module color.
        qr_background: QR background color.
    """
    field_name: str
    field_type: str = 'text'
    x: float | None = None
    y: float | None = None
    font_size: float = DEFAULT_FONT_SIZE
    font_family: str = DEFAULT_FONT_FAMILY
    color: str = DEFAULT_COLOR
    align: str | None = None
    bold: bool = False
    italic: bool = False
    width: float | None = None
    height: float | None = None
    qr_color: str = '#000000'
    qr_background: str = '#FFFFFF'

    def __post_init__(self):
        if self.field_type not in FIELD_TYPES:
            raise InvalidTemplate(
                f"Field {self.field_name!r} has unknown type {self.field_type!r}"
            )
        if self.align is not None and self.align not in ALIGNMENTS:
            raise InvalidTemplate(
                f"Field {self.field_name!r} has unknown alignment {self.align!r}"
            )

    @property
    def has_coordinates(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def is_qr(self) -> bool:
        return self.field_type == 'qr'

    @property
    def weight(self) -> int:
        return BOLD_WEIGHT if self.bold else DEFAULT_WEIGHT

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Placeholder:
        """Build a Placeholder from a stored template document.

        Missing or null styling keys fall back to the defaults, the way the
        template store fills them in.
        """
        field_name = _pick(data, 'fieldName', 'field_name', 'name')
        if not field_name:
            raise InvalidTemplate("Placeholder is missing a field name")

        x = _pick(data, 'x')
        y = _pick(data, 'y')
        width = _pick(data, 'width')
        height = _pick(data, 'height')

        return cls(
            field_name=str(field_name),
            field_type=_pick(data, 'type', 'fieldType', 'field_type', default='text'),
            x=float(x) if x is not None else None,
            y=float(y) if y is not None else None,
            font_size=float(_pick(data, 'fontSize', 'font_size', default=DEFAULT_FONT_SIZE)),
            font_family=_pick(data, 'fontFamily', 'font_family', default=DEFAULT_FONT_FAMILY),
            color=_pick(data, 'color', 'fontColor', default=DEFAULT_COLOR),
            align=_pick(data, 'align'),
            bold=bool(_pick(data, 'bold', default=False)),
            italic=bool(_pick(data, 'italic', default=False)),
            width=float(width) if width is not None else None,
            height=float(height) if height is not None else None,
            qr_color=_pick(data, 'qrColor', 'qr_color', default='#000000'),
            qr_background=_pick(data, 'qrBackground', 'qr_background', default='#FFFFFF'),
        )

    def to_dict(self) -> dict:
        """Convert to the camelCase document shape, omitting unset fields."""
        result = {
            'fieldName': self.field_name,
            'type': self.field_type,
            'fontSize': self.font_size,
            'fontFamily': self.font_family,
            'color': self.color,
        }
        if self.has_coordinates:
            result['x'] = self.x
            result['y'] = self.y
        if self.align:
            result['align'] = self.align
        if self.bold:
            result['bold'] = True
        if self.italic:
            result['italic'] = True
        if self.is_qr:
            result['width'] = self.width
            result['height'] = self.height
        return result


def validate_placeholders(placeholders: list[Placeholder]) -> None:
    """Check a template's placeholder list against the authoring rules.

    Raises:
        InvalidTemplate: If no email field exists, a non-email field has
            no coordinates, or a field name repeats.
    """
    if not any(p.field_type == 'email' for p in placeholders):
        raise InvalidTemplate("At least one email field is required")

    seen = set()
    for placeholder in placeholders:
        if placeholder.field_name in seen:
            raise InvalidTemplate(f"Duplicate field name {placeholder.field_name!r}")
        seen.add(placeholder.field_name)

        if placeholder.field_type != 'email' and not placeholder.has_coordinates:
            raise InvalidTemplate(
                f'Field "{placeholder.field_name}" ({placeholder.field_type}) '
                f'must have coordinates'
            )


@dataclass
class TemplateRecord:
    """The parts of a stored template the renderer reads."""
    placeholders: list[Placeholder]
    type: str = 'certificate'
    certificate_image: str | None = None
    badge_image: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TemplateRecord:
        template_type = _pick(data, 'type', default='certificate')
        if template_type not in TEMPLATE_TYPES:
            raise InvalidTemplate(f"Unknown template type {template_type!r}")
        return cls(
            placeholders=[Placeholder.from_dict(p) for p in data.get('placeholders') or []],
            type=template_type,
            certificate_image=_pick(data, 'certificateImageBase64', 'certificateImage',
                                    'certificate_image'),
            badge_image=_pick(data, 'badgeImageBase64', 'badgeImage', 'badge_image'),
        )

    def image_for(self, kind: str) -> str | None:
        """Return the template image for 'certificate' or 'badge', if the type allows it."""
        if kind == 'certificate' and self.type in ('certificate', 'both'):
            return self.certificate_image
        if kind == 'badge' and self.type in ('badge', 'both'):
            return self.badge_image
        return None

    def validate(self) -> None:
        validate_placeholders(self.placeholders)


@dataclass
class RenderRequest:
    """A single rendering job.

    Attributes:
        source_image: Template image as a base64 data URI.
        placeholders: Fields to draw, in stacking order.
        field_values: Field name -> text value.
        qr_overrides: Field name -> value computed after a first persistence
            step (e.g. a verification URL). Wins over field_values.
    """
    source_image: str
    placeholders: list[Placeholder] = field(default_factory=list)
    field_values: dict[str, str] = field(default_factory=dict)
    qr_overrides: dict[str, str] | None = None

    def effective_values(self) -> dict[str, str]:
        """Merge field_values with qr_overrides, overrides taking precedence."""
        values = dict(self.field_values)
        if self.qr_overrides:
            values.update(self.qr_overrides)
        return values

    @classmethod
    def for_template(cls, template: TemplateRecord, kind: str,
                     field_values: dict[str, str],
                     qr_overrides: dict[str, str] | None = None) -> RenderRequest:
        """Build a request for the certificate or badge image of a template.

        Raises:
            InvalidTemplate: If the template has no image for that kind.
        """
        image = template.image_for(kind)
        if not image:
            raise InvalidTemplate(f"Template has no {kind} image")
        return cls(
            source_image=image,
            placeholders=list(template.placeholders),
            field_values=dict(field_values),
            qr_overrides=dict(qr_overrides) if qr_overrides else None,
        )


@dataclass(frozen=True)
class RenderResult:
    """Encoded output of a render. The engine keeps no reference to it."""
    image_bytes: bytes
    mime_type: str
    width: int
    height: int

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode('ascii')
        return f"data:{self.mime_type};base64,{encoded}"

    @property
    def file_extension(self) -> str:
        return extension_for_mime(self.mime_type)


@dataclass(frozen=True)
class FontCacheEntry:
    """Raw font binary for one family/weight/style. Never mutated once cached."""
    family: str
    weight: int
    italic: bool
    data: bytes


@dataclass(frozen=True)
class ResolvedFont:
    """Outcome of resolving a requested family.

    Attributes:
        requested_family: Family name as written on the placeholder.
        effective_family: Family actually acquired (the substitute for
            system fonts, the literal name otherwise).
        weight: Requested weight.
        italic: Requested style.
        available: False when acquisition failed and the caller must fall
            back to a generic sans-serif font.
    """
    requested_family: str
    effective_family: str
    weight: int = DEFAULT_WEIGHT
    italic: bool = False
    available: bool = False
