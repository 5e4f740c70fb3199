from __future__ import annotations

from rembg import new_session, remove

from bgremover.config import settings
from bgremover.domain.background_remover import BackgroundRemover
from bgremover.domain.errors import NoSubjectDetectedError, SegmentationError
from bgremover.domain.pixel_buffer import PixelBuffer
from bgremover.infrastructure.image_codec import from_pil_image, to_pil_image


class RembgBackgroundRemover(BackgroundRemover):
    def __init__(self, model_name: str | None = None) -> None:
        # Keep one session alive to avoid reloading the model for every image.
        self._session = new_session(model_name or settings.segmentation_model)

    def remove(self, image: PixelBuffer, tolerance: float) -> PixelBuffer:
        try:
            cutout = remove(to_pil_image(image), session=self._session)
        except Exception as exc:  # noqa: BLE001
            raise SegmentationError(f"Segmentation failed: {exc}") from exc

        cutout = cutout.convert("RGBA")
        if cutout.getchannel("A").getbbox() is None:
            raise NoSubjectDetectedError("No subject detected")
        if cutout.size != image.size:
            cutout = cutout.resize(image.size)
        return from_pil_image(cutout)
