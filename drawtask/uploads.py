"""
Image upload handling.

Uploaded files are written to the upload directory, checked to be a
real image, inlined as a ``data:<mime>;base64,...`` URI and deleted.
The temporary file is removed on every exit path.
"""

import asyncio
import base64
import logging
import os
import uuid
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .errors import ValidationError

logger = logging.getLogger("drawtask.uploads")

FORMAT_MIME_TYPES = {
    'PNG': 'image/png',
    'JPEG': 'image/jpeg',
    'WEBP': 'image/webp',
    'GIF': 'image/gif',
}

CHUNK_SIZE = 64 * 1024


def detect_image_format(img_bytes: bytes) -> Optional[str]:
    """
    Detect image format from raw bytes.

    Returns:
        Format string ('PNG', 'JPEG', 'WEBP', 'GIF') or None if unknown
    """
    if len(img_bytes) < 8:
        return None

    # Check magic bytes
    if img_bytes[:8] == b'\x89PNG\r\n\x1a\n':
        return 'PNG'
    elif img_bytes[:2] == b'\xff\xd8':
        return 'JPEG'
    elif img_bytes[:4] == b'RIFF' and img_bytes[8:12] == b'WEBP':
        return 'WEBP'
    elif img_bytes[:6] in (b'GIF87a', b'GIF89a'):
        return 'GIF'

    return None


def verify_image(img_bytes: bytes) -> str:
    """
    Check that the bytes decode as an image.

    Returns:
        The PIL format name (e.g. 'PNG')

    Raises:
        ValidationError: if Pillow cannot identify the data
    """
    try:
        with Image.open(BytesIO(img_bytes)) as img:
            img.verify()
            return img.format or ""
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError("Uploaded file is not a valid image", [str(e)]) from e


def resolve_mime_type(img_bytes: bytes, declared: Optional[str] = None,
                      pil_format: str = "") -> str:
    fmt = detect_image_format(img_bytes) or pil_format.upper()
    if fmt in FORMAT_MIME_TYPES:
        return FORMAT_MIME_TYPES[fmt]
    if declared and declared.startswith("image/"):
        return declared
    return f"image/{fmt.lower()}" if fmt else "application/octet-stream"


def to_data_uri(img_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(img_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def file_to_data_uri(path: Union[str, Path], declared_mime: Optional[str] = None) -> str:
    """Read an uploaded image file and inline it as a data URI"""
    img_bytes = Path(path).read_bytes()
    if not img_bytes:
        raise ValidationError("Uploaded file is empty")
    pil_format = verify_image(img_bytes)
    return to_data_uri(img_bytes, resolve_mime_type(img_bytes, declared_mime, pil_format))


def new_upload_path(upload_dir: Union[str, Path]) -> Path:
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"upload_{uuid.uuid4().hex}"


def remove_quietly(path: Path):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary upload {path}: {e}")


async def inline_upload(part, upload_dir: Union[str, Path], max_bytes: int) -> str:
    """
    Stream a multipart file part to disk and return it as a data URI.

    Args:
        part: aiohttp BodyPartReader for the uploaded file
        upload_dir: Directory for the transient file
        max_bytes: Size limit; larger uploads are rejected

    Raises:
        ValidationError: oversize, empty or non-image upload
    """
    path = await asyncio.to_thread(new_upload_path, upload_dir)
    try:
        size = 0
        f = await asyncio.to_thread(open, path, "wb")
        try:
            while True:
                chunk = await part.read_chunk(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        "Uploaded file is too large",
                        [f"limit is {max_bytes // (1024 * 1024)}MB"]
                    )
                await asyncio.to_thread(f.write, chunk)
        finally:
            await asyncio.to_thread(f.close)

        declared = part.headers.get("Content-Type")
        data_uri = await asyncio.to_thread(file_to_data_uri, path, declared)
        logger.info(f"Inlined upload {getattr(part, 'filename', '') or path.name} ({size} bytes)")
        return data_uri
    finally:
        await asyncio.to_thread(remove_quietly, path)
