from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from bgremover.config import settings
from bgremover.domain.background_remover import BackgroundRemover, RemovalMode
from bgremover.domain.color_key import ColorKeyRemover, clamp_tolerance
from bgremover.domain.pixel_buffer import PixelBuffer
from bgremover.infrastructure.image_codec import decode_image_bytes, encode_png

RemoverSource = BackgroundRemover | Callable[[], BackgroundRemover]


@dataclass
class RemoveBackgroundOptions:
    mode: RemovalMode = field(default_factory=lambda: RemovalMode(settings.default_mode))
    tolerance: float = settings.default_tolerance

    def __post_init__(self) -> None:
        self.mode = RemovalMode(self.mode)
        self.tolerance = clamp_tolerance(self.tolerance)


class RemoveBackgroundUseCase:
    def __init__(self, removers: Mapping[RemovalMode, RemoverSource]) -> None:
        self._sources = dict(removers)
        self._removers: dict[RemovalMode, BackgroundRemover] = {}

    def remover_for(self, mode: RemovalMode) -> BackgroundRemover:
        mode = RemovalMode(mode)
        if mode not in self._removers:
            if mode not in self._sources:
                raise ValueError(f"No remover configured for mode '{mode.value}'")
            source = self._sources[mode]
            # Factories defer loading heavy models until the mode is first used.
            self._removers[mode] = source if isinstance(source, BackgroundRemover) else source()
        return self._removers[mode]

    def remove(self, image: PixelBuffer, options: RemoveBackgroundOptions | None = None) -> PixelBuffer:
        opts = options or RemoveBackgroundOptions()
        return self.remover_for(opts.mode).remove(image, opts.tolerance)

    def execute(self, image_bytes: bytes, options: RemoveBackgroundOptions | None = None) -> bytes:
        image = decode_image_bytes(image_bytes)
        return encode_png(self.remove(image, options))


def _rembg_factory() -> BackgroundRemover:
    from bgremover.infrastructure.rembg_background_remover import RembgBackgroundRemover

    return RembgBackgroundRemover()


def build_default_use_case() -> RemoveBackgroundUseCase:
    return RemoveBackgroundUseCase(
        {
            RemovalMode.COLOR_KEY: ColorKeyRemover(),
            RemovalMode.AI_SEGMENTATION: _rembg_factory,
        }
    )
