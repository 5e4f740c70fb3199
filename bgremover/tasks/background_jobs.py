from __future__ import annotations

import io
import json
import logging
import time
import uuid
import zipfile
from collections.abc import Callable
from pathlib import Path

from bgremover.application.remove_background_use_case import (
    RemoveBackgroundOptions,
    build_default_use_case,
)
from bgremover.config import settings
from bgremover.domain.background_remover import RemovalMode
from bgremover.domain.errors import NoInputAvailableError
from bgremover.infrastructure.metrics import metrics
from bgremover.infrastructure.object_storage import LocalObjectStorage

logger = logging.getLogger("bgremover.jobs")

ProgressCallback = Callable[[dict], None]

use_case = build_default_use_case()
storage = LocalObjectStorage()


def _update_job_meta(job_id: str, progress_cb: ProgressCallback | None, **entries: str | int | float) -> None:
    entries["job_id"] = job_id
    logger.debug(json.dumps(entries))
    if progress_cb is not None:
        progress_cb(dict(entries))


def _safe_stem(name: str, fallback: str) -> str:
    stem = Path(name).stem
    safe = "".join(ch for ch in stem if ch.isalnum() or ch in ("-", "_"))
    return safe or fallback


def _unique_entry_name(stem: str, used: set[str]) -> str:
    candidate = f"{stem}.png"
    suffix = 2
    while candidate in used:
        candidate = f"{stem}-{suffix}.png"
        suffix += 1
    used.add(candidate)
    return candidate


def _new_job_id() -> str:
    return uuid.uuid4().hex


def process_single_image_job(
    image_bytes: bytes,
    original_name: str,
    mode: RemovalMode | str,
    tolerance: float,
    progress: ProgressCallback | None = None,
) -> dict[str, str]:
    job_id = _new_job_id()
    start = time.perf_counter()
    _update_job_meta(job_id, progress, progress=5, stage="prepare")

    try:
        options = RemoveBackgroundOptions(mode=mode, tolerance=tolerance)
        _update_job_meta(job_id, progress, progress=30, stage="remove_background")
        output_png = use_case.execute(image_bytes, options)

        key = f"jobs/{job_id}/{_safe_stem(original_name, 'result')}.png"
        _update_job_meta(job_id, progress, progress=80, stage="store")
        path = storage.put_bytes(key, output_png)
        _update_job_meta(job_id, progress, progress=100, stage="done")
    except Exception as exc:
        metrics.incr("jobs_failed_total")
        logger.exception("job %s failed", job_id)
        _update_job_meta(job_id, progress, progress=0, stage="failed", error=str(exc))
        raise

    metrics.incr("jobs_succeeded_total")
    logger.info(
        json.dumps(
            {
                "job_id": job_id,
                "kind": "single",
                "mode": options.mode.value,
                "tolerance": options.tolerance,
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
            }
        )
    )
    return {
        "job_id": job_id,
        "kind": "single",
        "key": key,
        "path": str(path),
        "filename": Path(key).name,
        "content_type": "image/png",
    }


def process_batch_images_job(
    files_payload: list[dict[str, bytes | str]],
    mode: RemovalMode | str,
    tolerance: float,
    progress: ProgressCallback | None = None,
) -> dict[str, str]:
    if not files_payload:
        raise NoInputAvailableError("No files to process")
    if len(files_payload) > settings.max_batch_files:
        raise ValueError(f"Max {settings.max_batch_files} files per batch")

    job_id = _new_job_id()
    start = time.perf_counter()
    total = len(files_payload)
    _update_job_meta(job_id, progress, progress=3, stage="prepare", total=total, current=0)

    try:
        options = RemoveBackgroundOptions(mode=mode, tolerance=tolerance)
        output_buffer = io.BytesIO()
        used_names: set[str] = set()

        with zipfile.ZipFile(output_buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, payload in enumerate(files_payload, start=1):
                name = str(payload.get("name") or f"image-{index}.png")
                image_bytes = payload["bytes"]
                if not isinstance(image_bytes, bytes):
                    raise ValueError(f"Invalid payload bytes for {name}")

                output_png = use_case.execute(image_bytes, options)
                safe_name = _unique_entry_name(_safe_stem(name, f"image-{index}"), used_names)
                archive.writestr(safe_name, output_png)
                done = int((index / total) * 90)
                _update_job_meta(job_id, progress, progress=done, stage="processing", total=total, current=index)

        key = f"jobs/{job_id}/removed-backgrounds.zip"
        _update_job_meta(job_id, progress, progress=95, stage="store")
        path = storage.put_bytes(key, output_buffer.getvalue())
        _update_job_meta(job_id, progress, progress=100, stage="done")
    except Exception as exc:
        metrics.incr("jobs_failed_total")
        logger.exception("batch job %s failed", job_id)
        _update_job_meta(job_id, progress, progress=0, stage="failed", error=str(exc))
        raise

    metrics.incr("jobs_succeeded_total")
    metrics.set_gauge("batch_last_files", total)
    logger.info(
        json.dumps(
            {
                "job_id": job_id,
                "kind": "batch",
                "files": total,
                "mode": options.mode.value,
                "tolerance": options.tolerance,
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
            }
        )
    )
    return {
        "job_id": job_id,
        "kind": "batch",
        "key": key,
        "path": str(path),
        "filename": "removed-backgrounds.zip",
        "content_type": "application/zip",
    }
