"""Helpers shared by the unit and integration tests."""

import base64
import io
import threading
import time
import unittest
from functools import lru_cache

from PIL import Image, ImageChops, ImageFont

from credential_render.config import RenderConfig
from credential_render.font_client import FontAcquisitionClient
from credential_render.surface import RenderingSurface

WHITE = (255, 255, 255, 255)


@lru_cache(maxsize=1)
def load_test_font_bytes() -> bytes:
    """TrueType bytes of the font Pillow bundles for load_default()."""
    font = ImageFont.load_default(size=16)
    data = getattr(font, 'font_bytes', None)
    if not isinstance(font, ImageFont.FreeTypeFont) or not data:
        raise unittest.SkipTest("Pillow was built without FreeType support")
    return data


def image_bytes(width=600, height=400, color=WHITE, fmt='PNG', mode='RGBA') -> bytes:
    if mode == 'RGBA':
        fill = color
    elif mode == 'RGB':
        fill = color[:3]
    else:
        fill = color[0]
    image = Image.new(mode, (width, height), fill)
    if fmt == 'JPEG' and image.mode != 'RGB':
        image = image.convert('RGB')
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def png_data_uri(width=600, height=400, color=WHITE, fmt='PNG', mime='image/png',
                 mode='RGBA') -> str:
    """Solid-color image encoded as a data URI."""
    encoded = base64.b64encode(image_bytes(width, height, color, fmt, mode)).decode('ascii')
    return f"data:{mime};base64,{encoded}"


def open_image(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data)).convert('RGBA')


def ink_bbox(data: bytes, background=WHITE):
    """Bounding box of pixels whose color differs from the background.

    Compared in RGB: on RGBA images getbbox() only looks at alpha, which
    is opaque everywhere on an opaque template.
    """
    image = open_image(data).convert('RGB')
    plain = Image.new('RGB', image.size, background[:3])
    return ImageChops.difference(image, plain).getbbox()


class StubFontClient(FontAcquisitionClient):
    """Font client that never touches the network.

    Attributes:
        data: Bytes returned for every request (None to fail).
        calls: (family, weight, italic) for each fetch.
        delay: Seconds each fetch blocks, to widen race windows.
        error: Exception raised by each fetch, if set.
    """

    def __init__(self, data=None, delay=0.0, error=None):
        super().__init__(RenderConfig(scratch_dir=None))
        self.data = data
        self.delay = delay
        self.error = error
        self.calls = []
        self._calls_lock = threading.Lock()

    def fetch_font_binary(self, family, weight=400, italic=False):
        with self._calls_lock:
            self.calls.append((family, weight, italic))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.data


class RecordingSurface(RenderingSurface):
    """RenderingSurface that keeps every instance for later inspection."""

    instances = []

    def __init__(self, background, resolver):
        super().__init__(background, resolver)
        RecordingSurface.instances.append(self)

    @classmethod
    def last(cls):
        return cls.instances[-1]
