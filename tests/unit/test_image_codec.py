"""Unit tests for credential_render.image_codec.

Tests data URI parsing, MIME checks, decoding/normalization and output
encoding.
"""

import base64
import io
import sys
import unittest
from pathlib import Path

from PIL import Image

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

from credential_render.errors import CorruptImage, InvalidInputFormat, UnsupportedFormat
from credential_render.image_codec import (
    decode_data_uri,
    decode_image_bytes,
    encode_image,
    guess_extension,
    split_data_uri,
    to_data_uri,
)
from support import image_bytes, png_data_uri


class TestSplitDataUri(unittest.TestCase):
    """Tests for split_data_uri."""

    def test_valid_uri(self):
        mime, data = split_data_uri('data:image/png;base64,' + base64.b64encode(b'abc').decode())

        self.assertEqual(mime, 'image/png')
        self.assertEqual(data, b'abc')

    def test_missing_data_prefix(self):
        with self.assertRaises(InvalidInputFormat):
            split_data_uri('image/png;base64,YWJj')

    def test_missing_base64_marker(self):
        with self.assertRaises(InvalidInputFormat):
            split_data_uri('data:image/png,YWJj')

    def test_invalid_base64(self):
        with self.assertRaises(InvalidInputFormat):
            split_data_uri('data:image/png;base64,@@@not-base64@@@')

    def test_non_string_input(self):
        with self.assertRaises(InvalidInputFormat):
            split_data_uri(None)

    def test_ignores_line_breaks_in_payload(self):
        _, data = split_data_uri('data:image/png;base64,YWJj\nZGVm')
        self.assertEqual(data, b'abcdef')

    def test_mime_is_lowercased(self):
        mime, _ = split_data_uri('data:IMAGE/PNG;base64,YWJj')
        self.assertEqual(mime, 'image/png')


class TestGuessExtension(unittest.TestCase):
    """Tests for guess_extension."""

    def test_png(self):
        self.assertEqual(guess_extension('data:image/png;base64,AAAA'), '.png')

    def test_jpeg(self):
        self.assertEqual(guess_extension('data:image/jpeg;base64,AAAA'), '.jpg')

    def test_not_a_data_uri(self):
        with self.assertRaises(InvalidInputFormat):
            guess_extension('https://example.com/a.png')


class TestDecodeDataUri(unittest.TestCase):
    """Tests for decode_data_uri."""

    def test_png_dimensions(self):
        decoded = decode_data_uri(png_data_uri(600, 400))

        self.assertEqual((decoded.width, decoded.height), (600, 400))
        self.assertEqual(decoded.image.size, (600, 400))
        self.assertEqual(decoded.mime_type, 'image/png')

    def test_jpeg_is_normalized_to_rgba(self):
        decoded = decode_data_uri(png_data_uri(64, 32, fmt='JPEG', mime='image/jpeg'))

        self.assertEqual(decoded.image.mode, 'RGBA')
        self.assertEqual((decoded.width, decoded.height), (64, 32))

    def test_grayscale_is_normalized_to_rgba(self):
        decoded = decode_data_uri(png_data_uri(10, 10, mode='L'))
        self.assertEqual(decoded.image.mode, 'RGBA')

    def test_pdf_rejected(self):
        uri = 'data:application/pdf;base64,' + base64.b64encode(b'%PDF-1.4').decode()

        with self.assertRaises(UnsupportedFormat) as ctx:
            decode_data_uri(uri)
        self.assertEqual(ctx.exception.mime_type, 'application/pdf')

    def test_pdf_rejection_is_invalid_input(self):
        """UnsupportedFormat is a kind of InvalidInputFormat."""
        uri = 'data:application/pdf;base64,' + base64.b64encode(b'%PDF-1.4').decode()
        with self.assertRaises(InvalidInputFormat):
            decode_data_uri(uri)

    def test_non_image_mime_rejected(self):
        with self.assertRaises(UnsupportedFormat):
            decode_data_uri('data:text/plain;base64,' + base64.b64encode(b'hello').decode())

    def test_pdf_without_prefix_is_invalid_input(self):
        with self.assertRaises(InvalidInputFormat):
            decode_data_uri('application/pdf;base64,JVBERi0xLjQ=')

    def test_garbage_payload_is_corrupt(self):
        uri = 'data:image/png;base64,' + base64.b64encode(b'definitely not a png').decode()
        with self.assertRaises(CorruptImage):
            decode_data_uri(uri)

    def test_mime_mismatch_still_decodes(self):
        """The payload decides the decoder, not the declared MIME type."""
        uri = png_data_uri(20, 10, fmt='JPEG', mime='image/png')
        self.assertEqual(decode_data_uri(uri).width, 20)


class TestDecodeImageBytes(unittest.TestCase):
    """Tests for decode_image_bytes."""

    def test_empty_payload_is_corrupt(self):
        with self.assertRaises(CorruptImage):
            decode_image_bytes(b'')

    def test_keeps_stored_dimensions(self):
        decoded = decode_image_bytes(image_bytes(3, 7))
        self.assertEqual((decoded.width, decoded.height), (3, 7))


class TestEncodeImage(unittest.TestCase):
    """Tests for encode_image and to_data_uri."""

    def test_png_roundtrip_size(self):
        data = encode_image(Image.new('RGBA', (30, 20), (255, 0, 0, 255)))

        self.assertTrue(data.startswith(b'\x89PNG'))
        self.assertEqual(Image.open(io.BytesIO(data)).size, (30, 20))

    def test_jpeg_drops_alpha(self):
        data = encode_image(Image.new('RGBA', (8, 8)), 'JPEG')
        self.assertEqual(Image.open(io.BytesIO(data)).format, 'JPEG')

    def test_to_data_uri(self):
        self.assertEqual(to_data_uri(b'abc'), 'data:image/png;base64,YWJj')
