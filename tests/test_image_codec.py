from __future__ import annotations

import io

from PIL import Image
import pytest

from bgremover.config import settings
from bgremover.domain.errors import DecodeError, NoInputAvailableError
from bgremover.domain.pixel_buffer import PixelBuffer
from bgremover.infrastructure import image_codec
from bgremover.infrastructure.image_codec import (
    decode_image_bytes,
    encode_png,
    grab_clipboard_image,
    read_image_file,
    validate_image_bytes,
)


def _png_bytes(width: int = 32, height: int = 32, color=(255, 0, 0, 255)) -> bytes:
    img = Image.new('RGBA', (width, height), color)
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def _jpeg_bytes() -> bytes:
    img = Image.new('RGB', (8, 6), (0, 128, 255))
    out = io.BytesIO()
    img.save(out, format='JPEG', quality=100)
    return out.getvalue()


def test_validate_image_bytes_ok() -> None:
    width, height, fmt = validate_image_bytes(_png_bytes(), max_pixels=10_000)
    assert width == 32
    assert height == 32
    assert fmt == 'PNG'


def test_validate_image_bytes_rejects_invalid() -> None:
    with pytest.raises(DecodeError):
        validate_image_bytes(b'not-an-image', max_pixels=10_000)


def test_validate_image_bytes_rejects_empty() -> None:
    with pytest.raises(DecodeError):
        validate_image_bytes(b'', max_pixels=10_000)


def test_validate_image_bytes_rejects_large_pixels() -> None:
    with pytest.raises(DecodeError):
        validate_image_bytes(_png_bytes(200, 200), max_pixels=10_000)


def test_decode_png_keeps_straight_alpha() -> None:
    buffer = decode_image_bytes(_png_bytes(3, 2, (200, 100, 50, 128)))

    assert buffer.size == (3, 2)
    assert buffer.pixel(2, 1) == (200, 100, 50, 128)


def test_decode_jpeg_is_opaque_rgba() -> None:
    buffer = decode_image_bytes(_jpeg_bytes())

    assert buffer.size == (8, 6)
    assert buffer.pixel(0, 0)[3] == 255


def test_decode_rejects_oversized_payload(monkeypatch) -> None:
    monkeypatch.setattr(settings, 'max_image_bytes', 10)
    with pytest.raises(DecodeError):
        decode_image_bytes(_png_bytes())


def test_encode_png_preserves_pixels() -> None:
    buffer = PixelBuffer(2, 1, bytes((1, 2, 3, 255, 0, 0, 0, 0)))

    with Image.open(io.BytesIO(encode_png(buffer))) as image:
        assert image.format == 'PNG'
        assert image.mode == 'RGBA'
        assert image.getpixel((0, 0)) == (1, 2, 3, 255)
        assert image.getpixel((1, 0)) == (0, 0, 0, 0)


def test_read_image_file(tmp_path) -> None:
    path = tmp_path / 'photo.png'
    path.write_bytes(_png_bytes(4, 4))

    assert read_image_file(path).size == (4, 4)


def test_read_image_file_missing(tmp_path) -> None:
    with pytest.raises(NoInputAvailableError):
        read_image_file(tmp_path / 'missing.png')


def test_clipboard_without_image(monkeypatch) -> None:
    monkeypatch.setattr(image_codec.ImageGrab, 'grabclipboard', lambda: None)
    with pytest.raises(NoInputAvailableError, match='No image found in clipboard'):
        grab_clipboard_image()


def test_clipboard_unreadable(monkeypatch) -> None:
    def _boom():
        raise NotImplementedError('no clipboard backend')

    monkeypatch.setattr(image_codec.ImageGrab, 'grabclipboard', _boom)
    with pytest.raises(NoInputAvailableError):
        grab_clipboard_image()


def test_clipboard_image(monkeypatch) -> None:
    monkeypatch.setattr(image_codec.ImageGrab, 'grabclipboard', lambda: Image.new('RGB', (5, 4), 'white'))

    buffer = grab_clipboard_image()

    assert buffer.size == (5, 4)
    assert buffer.pixel(0, 0) == (255, 255, 255, 255)


def test_clipboard_file_list_uses_first_image(monkeypatch, tmp_path) -> None:
    notes = tmp_path / 'notes.txt'
    notes.write_text('hello')
    picture = tmp_path / 'picture.png'
    picture.write_bytes(_png_bytes(6, 2))
    monkeypatch.setattr(image_codec.ImageGrab, 'grabclipboard', lambda: [str(notes), str(picture)])

    assert grab_clipboard_image().size == (6, 2)


def test_decode_maps_pillow_bomb_guard_to_decode_error(monkeypatch) -> None:
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 100)

    with pytest.raises(DecodeError, match='too large in pixels'):
        decode_image_bytes(_png_bytes(32, 32), max_pixels=10_000_000)


def test_validate_maps_pillow_bomb_guard_to_decode_error(monkeypatch) -> None:
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 100)

    with pytest.raises(DecodeError, match='too large in pixels'):
        validate_image_bytes(_png_bytes(32, 32), max_pixels=10_000_000)
