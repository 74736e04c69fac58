"""
Tests for upload inlining
"""

import base64
import threading
from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from drawtask.errors import ValidationError
from drawtask.uploads import (
    detect_image_format, file_to_data_uri, inline_upload, resolve_mime_type, verify_image
)

from .helpers import run


def image_bytes(fmt="PNG"):
    buffer = BytesIO()
    Image.new("RGB", (4, 4), (0, 128, 255)).save(buffer, format=fmt)
    return buffer.getvalue()


class FakePart:
    """Minimal stand-in for aiohttp's BodyPartReader"""

    def __init__(self, payload, content_type="image/png", filename="a.png", chunk=5):
        self._payload = payload
        self._chunk = chunk
        self.headers = {"Content-Type": content_type}
        self.filename = filename

    async def read_chunk(self, size):
        size = min(size, self._chunk)
        data, self._payload = self._payload[:size], self._payload[size:]
        return data


class TestFormatDetection:

    @pytest.mark.parametrize("fmt,expected", [("PNG", "PNG"), ("JPEG", "JPEG"), ("GIF", "GIF")])
    def test_magic_bytes(self, fmt, expected):
        assert detect_image_format(image_bytes(fmt)) == expected

    def test_unknown(self):
        assert detect_image_format(b"short") is None
        assert detect_image_format(b"not an image at all") is None

    def test_mime_type(self):
        assert resolve_mime_type(image_bytes("JPEG")) == "image/jpeg"
        assert resolve_mime_type(b"????????", declared="image/bmp") == "image/bmp"
        assert resolve_mime_type(b"????????", pil_format="BMP") == "image/bmp"


class TestVerify:

    def test_valid(self):
        assert verify_image(image_bytes()) == "PNG"

    def test_invalid(self):
        with pytest.raises(ValidationError):
            verify_image(b"definitely not pixels")


class TestInlining:

    def test_file_to_data_uri(self, tmp_path):
        path = tmp_path / "upload.png"
        payload = image_bytes()
        path.write_bytes(payload)

        uri = file_to_data_uri(path)
        prefix = "data:image/png;base64,"
        assert uri.startswith(prefix)
        assert base64.b64decode(uri[len(prefix):]) == payload

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        with pytest.raises(ValidationError):
            file_to_data_uri(path)

    def test_inline_upload_removes_file(self, tmp_path):
        uri = run(inline_upload(FakePart(image_bytes()), tmp_path, 1024 * 1024))
        assert uri.startswith("data:image/png;base64,")
        assert list(tmp_path.iterdir()) == []

    def test_oversize_upload_removes_file(self, tmp_path):
        with pytest.raises(ValidationError):
            run(inline_upload(FakePart(image_bytes()), tmp_path, 10))
        assert list(tmp_path.iterdir()) == []

    def test_invalid_upload_removes_file(self, tmp_path):
        with pytest.raises(ValidationError):
            run(inline_upload(FakePart(b"text file contents", "text/plain"), tmp_path, 1024))
        assert list(tmp_path.iterdir()) == []

    def test_decoding_runs_off_the_event_loop(self, tmp_path):
        seen = []
        original = file_to_data_uri

        def recording(*args, **kwargs):
            seen.append(threading.get_ident())
            return original(*args, **kwargs)

        async def scenario():
            with patch("drawtask.uploads.file_to_data_uri", side_effect=recording):
                await inline_upload(FakePart(image_bytes()), tmp_path, 1024 * 1024)
            return threading.get_ident()

        loop_thread = run(scenario())

        assert len(seen) == 1
        assert seen[0] != loop_thread
