from __future__ import annotations

import os


class Settings:
    default_mode: str = os.getenv("BGREMOVER_DEFAULT_MODE", "color")
    default_tolerance: float = float(os.getenv("BGREMOVER_DEFAULT_TOLERANCE", "30"))
    segmentation_model: str = os.getenv("BGREMOVER_SEGMENTATION_MODEL", "u2net")

    max_image_bytes: int = int(os.getenv("MAX_IMAGE_BYTES", str(12 * 1024 * 1024)))
    max_image_pixels: int = int(os.getenv("MAX_IMAGE_PIXELS", str(20_000_000)))
    max_batch_files: int = int(os.getenv("MAX_BATCH_FILES", "15"))

    output_dir: str = os.getenv("BGREMOVER_OUTPUT_DIR", "output")
    result_filename: str = os.getenv("BGREMOVER_RESULT_FILENAME", "removed-bg.png")
    cleanup_older_than_seconds: int = int(os.getenv("CLEANUP_OLDER_THAN_SECONDS", "86400"))

    log_level: str = os.getenv("BGREMOVER_LOG_LEVEL", "INFO").upper()


settings = Settings()
