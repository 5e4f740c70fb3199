from __future__ import annotations

import logging
import time

from bgremover.infrastructure.object_storage import LocalObjectStorage

logger = logging.getLogger("bgremover.jobs")

storage = LocalObjectStorage()


def cleanup_expired_outputs_job(older_than_seconds: int) -> dict[str, int]:
    now = int(time.time())
    deleted = 0
    scanned = 0

    for item in storage.iter_job_objects(prefix="jobs/"):
        scanned += 1
        modified_ts = int(item["last_modified"].timestamp())
        if now - modified_ts < older_than_seconds:
            continue
        storage.delete_object(item["key"])
        deleted += 1

    # Job directories left empty by the sweep.
    jobs_root = storage.path_for("jobs/")
    if jobs_root.is_dir():
        for directory in sorted(jobs_root.iterdir()):
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()

    logger.info("cleanup scanned=%s deleted=%s", scanned, deleted)
    return {"scanned": scanned, "deleted": deleted}
