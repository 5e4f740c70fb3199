from __future__ import annotations

import io
from pathlib import Path

from PIL import Image, ImageGrab, ImageOps, UnidentifiedImageError

from bgremover.config import settings
from bgremover.domain.errors import DecodeError, EncodeError, NoInputAvailableError
from bgremover.domain.pixel_buffer import PixelBuffer


def validate_image_bytes(image_bytes: bytes, max_pixels: int) -> tuple[int, int, str]:
    if not image_bytes:
        raise DecodeError("Image data is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.verify()
        with Image.open(io.BytesIO(image_bytes)) as image:
            width, height = image.size
            fmt = (image.format or "").upper() or "UNKNOWN"
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"Image too large in pixels. Max allowed is {max_pixels}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError("Invalid or corrupted image file") from exc

    if width <= 0 or height <= 0:
        raise DecodeError("Invalid image dimensions")
    if width * height > max_pixels:
        raise DecodeError(f"Image too large in pixels. Max allowed is {max_pixels}")

    return width, height, fmt


def from_pil_image(image: Image.Image) -> PixelBuffer:
    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    width, height = rgba.size
    return PixelBuffer(width, height, rgba.tobytes())


def to_pil_image(buffer: PixelBuffer) -> Image.Image:
    return Image.frombytes("RGBA", buffer.size, buffer.data)


def decode_image_bytes(image_bytes: bytes, max_pixels: int | None = None) -> PixelBuffer:
    limit = settings.max_image_pixels if max_pixels is None else max_pixels
    if len(image_bytes) > settings.max_image_bytes:
        raise DecodeError(f"Image is too large. Max size is {settings.max_image_bytes // (1024 * 1024)} MB")
    validate_image_bytes(image_bytes, max_pixels=limit)

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            upright = ImageOps.exif_transpose(image)
            return from_pil_image(upright)
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"Image too large in pixels. Max allowed is {limit}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError("Failed to read image") from exc


def read_image_file(path: str | Path) -> PixelBuffer:
    source = Path(path)
    if not source.is_file():
        raise NoInputAvailableError(f"No image file at {source}")
    return decode_image_bytes(source.read_bytes())


def grab_clipboard_image() -> PixelBuffer:
    try:
        content = ImageGrab.grabclipboard()
    except (OSError, NotImplementedError) as exc:
        raise NoInputAvailableError(f"Clipboard is not readable: {exc}") from exc

    if isinstance(content, Image.Image):
        return from_pil_image(content)

    # Copied files arrive as a list of paths.
    if isinstance(content, list):
        for name in content:
            try:
                return read_image_file(name)
            except (DecodeError, NoInputAvailableError):
                continue

    raise NoInputAvailableError("No image found in clipboard")


def encode_png(buffer: PixelBuffer) -> bytes:
    output = io.BytesIO()
    try:
        to_pil_image(buffer).save(output, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError("Failed to encode PNG") from exc
    return output.getvalue()
