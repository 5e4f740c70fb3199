from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from bgremover.domain.pixel_buffer import PixelBuffer


class RemovalMode(str, Enum):
    COLOR_KEY = "color"
    AI_SEGMENTATION = "ai"


class BackgroundRemover(ABC):
    @abstractmethod
    def remove(self, image: PixelBuffer, tolerance: float) -> PixelBuffer:
        """Return a same-sized RGBA buffer with the background made transparent."""
