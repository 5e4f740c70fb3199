from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from bgremover.domain.errors import InvalidImageError

BYTES_PER_PIXEL = 4


class Color3(NamedTuple):
    r: float
    g: float
    b: float


@dataclass(frozen=True)
class PixelBuffer:
    """Straight RGBA8 raster, row-major, no row padding."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if isinstance(self.data, (bytearray, memoryview)):
            object.__setattr__(self, "data", bytes(self.data))
        elif not isinstance(self.data, bytes):
            raise InvalidImageError(f"Pixel data must be bytes, got {type(self.data).__name__}")
        if self.width < 1 or self.height < 1:
            raise InvalidImageError(f"Invalid image dimensions {self.width}x{self.height}")
        expected = self.height * self.bytes_per_row
        if len(self.data) != expected:
            raise InvalidImageError(
                f"Buffer length {len(self.data)} does not match {self.width}x{self.height} RGBA ({expected})"
            )

    @property
    def bytes_per_row(self) -> int:
        return self.width * BYTES_PER_PIXEL

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        i = y * self.bytes_per_row + x * BYTES_PER_PIXEL
        r, g, b, a = self.data[i : i + BYTES_PER_PIXEL]
        return r, g, b, a

    def as_array(self) -> np.ndarray:
        # Read-only view; copy before writing.
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, BYTES_PER_PIXEL)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> PixelBuffer:
        if pixels.ndim != 3 or pixels.shape[2] != BYTES_PER_PIXEL:
            raise InvalidImageError(f"Expected an (h, w, 4) array, got shape {pixels.shape}")
        height, width = pixels.shape[:2]
        return cls(width, height, np.ascontiguousarray(pixels, dtype=np.uint8).tobytes())

    @classmethod
    def filled(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> PixelBuffer:
        if width < 1 or height < 1:
            raise InvalidImageError(f"Invalid image dimensions {width}x{height}")
        return cls(width, height, bytes(rgba) * (width * height))
