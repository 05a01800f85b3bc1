"""Template image decoding and output encoding.

Templates reach the renderer as base64 data URIs
(``data:image/png;base64,...``). This module validates the URI, decodes
the payload with Pillow and normalizes it to RGBA so the rendering
surface never branches on the source encoding. It also serializes the
finished canvas back to bytes and a data URI.

Errors:
    InvalidInputFormat: the string is not a base64 data URI.
    UnsupportedFormat: the declared MIME type is PDF or not an image.
    CorruptImage: the payload is not an image Pillow can read, or it has
        a zero dimension.
"""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from .config import OUTPUT_FORMAT, OUTPUT_MIME
from .errors import CorruptImage, InvalidInputFormat, UnsupportedFormat
from .models import extension_for_mime

DATA_URI_PATTERN = re.compile(r'^data:([^;,]+);base64,(.+)$', re.DOTALL)

# Every raster handed to the surface uses this mode
CANONICAL_MODE = 'RGBA'

# Formats that cannot carry an alpha channel
_OPAQUE_FORMATS = ('JPEG', 'BMP')


@dataclass
class DecodedImage:
    """A decoded template image.

    Attributes:
        mime_type: MIME type declared by the data URI.
        width: Width in pixels.
        height: Height in pixels.
        image: RGBA Pillow image of exactly width x height.
    """
    mime_type: str
    width: int
    height: int
    image: Image.Image


def split_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its MIME type and decoded payload.

    Raises:
        InvalidInputFormat: If the prefix, the base64 marker or the payload
            is malformed.
    """
    if not isinstance(uri, str) or not uri.startswith('data:'):
        raise InvalidInputFormat("Template image must be a base64 data URI")

    match = DATA_URI_PATTERN.match(uri.strip())
    if not match:
        raise InvalidInputFormat("Invalid base64 data URI format")

    mime_type = match.group(1).strip().lower()
    payload = re.sub(r'\s+', '', match.group(2))
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputFormat(f"Data URI payload is not valid base64: {e}") from e
    return mime_type, data


def data_uri_mime(uri: str) -> str:
    """MIME type declared by a data URI, without decoding the payload."""
    if not isinstance(uri, str) or not uri.startswith('data:'):
        raise InvalidInputFormat("Not a data URI")
    header = uri[len('data:'):].split(',', 1)[0]
    return header.split(';', 1)[0].strip().lower()


def guess_extension(uri: str) -> str:
    """File extension for a data URI's declared MIME type (e.g. '.png')."""
    return extension_for_mime(data_uri_mime(uri))


def check_mime_type(mime_type: str) -> None:
    """Reject MIME types the renderer cannot rasterize."""
    if mime_type == 'application/pdf':
        raise UnsupportedFormat(
            mime_type,
            "PDF templates are not supported. Please use PNG, JPG, or JPEG images."
        )
    if not mime_type.startswith('image/'):
        raise UnsupportedFormat(mime_type)


def decode_image_bytes(data: bytes, mime_type: str = 'image/png') -> DecodedImage:
    """Decode raw image bytes and normalize them to RGBA.

    No EXIF rotation or resampling is applied; the output has the stored
    pixel dimensions.

    Raises:
        CorruptImage: If Pillow cannot read the bytes or a dimension is zero.
    """
    if not data:
        raise CorruptImage("Image payload is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
            if width == 0 or height == 0:
                raise CorruptImage("Could not determine image dimensions")
            normalized = img.convert(CANONICAL_MODE)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise CorruptImage(f"Could not decode image: {e}") from e

    return DecodedImage(mime_type=mime_type, width=width, height=height, image=normalized)


def decode_data_uri(uri: str) -> DecodedImage:
    """Decode a template data URI into dimensions and an RGBA raster.

    Args:
        uri: ``data:<mime>;base64,<payload>``

    Returns:
        DecodedImage with the source's exact dimensions.

    Raises:
        InvalidInputFormat: Malformed URI or payload.
        UnsupportedFormat: PDF or non-image MIME type.
        CorruptImage: Unreadable image or zero dimensions.
    """
    mime_type, data = split_data_uri(uri)
    check_mime_type(mime_type)
    return decode_image_bytes(data, mime_type)


def encode_image(image: Image.Image, fmt: str = OUTPUT_FORMAT) -> bytes:
    """Serialize a Pillow image to bytes in ``fmt``."""
    if fmt.upper() in _OPAQUE_FORMATS and image.mode != 'RGB':
        image = image.convert('RGB')
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def to_data_uri(data: bytes, mime_type: str = OUTPUT_MIME) -> str:
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{mime_type};base64,{encoded}"
