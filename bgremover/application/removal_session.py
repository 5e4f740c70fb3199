from __future__ import annotations

import json
import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import Lock

from bgremover.application.remove_background_use_case import (
    RemoveBackgroundOptions,
    RemoveBackgroundUseCase,
)
from bgremover.config import settings
from bgremover.domain.background_remover import RemovalMode
from bgremover.domain.color_key import clamp_tolerance
from bgremover.domain.errors import BackgroundRemovalError, EncodeError
from bgremover.domain.pixel_buffer import PixelBuffer
from bgremover.infrastructure.image_codec import decode_image_bytes, encode_png
from bgremover.infrastructure.metrics import metrics

logger = logging.getLogger("bgremover.session")


class SessionState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    generation: int
    mode: RemovalMode
    tolerance: float
    original: PixelBuffer | None
    result: PixelBuffer | None
    error: str | None
    show_original: bool

    @property
    def displayed(self) -> PixelBuffer | None:
        if self.show_original or self.result is None:
            return self.original
        return self.result


class RemovalSession:
    """Holds one source image and the latest removal result for it.

    Every run starts from the decoded original, never from an earlier result.
    Runs are numbered; a run that finishes after a newer one was requested is
    dropped. The default executor has a single worker, so runs also complete
    in the order they were requested.
    """

    def __init__(
        self,
        use_case: RemoveBackgroundUseCase,
        executor: Executor | None = None,
        mode: RemovalMode | str | None = None,
        tolerance: float | None = None,
    ) -> None:
        self._use_case = use_case
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="bgremover")
        self._lock = Lock()

        self._mode = RemovalMode(mode or settings.default_mode)
        self._tolerance = clamp_tolerance(settings.default_tolerance if tolerance is None else tolerance)
        self._state = SessionState.IDLE
        self._generation = 0
        self._original: PixelBuffer | None = None
        self._result: PixelBuffer | None = None
        self._error: str | None = None
        self._show_original = True

    def __enter__(self) -> RemovalSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                state=self._state,
                generation=self._generation,
                mode=self._mode,
                tolerance=self._tolerance,
                original=self._original,
                result=self._result,
                error=self._error,
                show_original=self._show_original,
            )

    def load(self, image: PixelBuffer) -> Future | None:
        with self._lock:
            self._original = image
            self._result = None
            self._error = None
            self._show_original = True
        return self._submit()

    def load_bytes(self, image_bytes: bytes) -> Future | None:
        try:
            image = decode_image_bytes(image_bytes)
        except BackgroundRemovalError as exc:
            # Previous image and result stay visible.
            with self._lock:
                self._error = str(exc)
                self._state = SessionState.FAILED
            logger.warning("input rejected: %s", exc)
            return None
        return self.load(image)

    def set_tolerance(self, tolerance: float) -> Future | None:
        with self._lock:
            self._tolerance = clamp_tolerance(tolerance)
        return self.reprocess()

    def set_mode(self, mode: RemovalMode | str) -> Future | None:
        with self._lock:
            self._mode = RemovalMode(mode)
        return self.reprocess()

    def reprocess(self) -> Future | None:
        return self._submit()

    def toggle_original(self) -> bool:
        with self._lock:
            if self._result is not None:
                self._show_original = not self._show_original
            return self._show_original

    def reset(self) -> None:
        with self._lock:
            # Bumping the generation orphans any run still in flight.
            self._generation += 1
            self._state = SessionState.IDLE
            self._original = None
            self._result = None
            self._error = None
            self._show_original = True

    def result_png(self) -> bytes:
        with self._lock:
            result = self._result
        if result is None:
            raise EncodeError("No result to export")
        return encode_png(result)

    def save_result(self, path: str | Path) -> Path:
        target = Path(path)
        data = self.result_png()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise EncodeError(f"Failed to write {target}: {exc}") from exc
        return target

    def _submit(self) -> Future | None:
        with self._lock:
            if self._original is None:
                return None
            self._generation += 1
            generation = self._generation
            self._state = SessionState.PROCESSING
            self._error = None
            image = self._original
            options = RemoveBackgroundOptions(mode=self._mode, tolerance=self._tolerance)
        metrics.incr("removals_requested_total")
        return self._executor.submit(self._run, generation, image, options)

    def _run(self, generation: int, image: PixelBuffer, options: RemoveBackgroundOptions) -> SessionState | None:
        start = time.perf_counter()
        try:
            result = self._use_case.remove(image, options)
        except BackgroundRemovalError as exc:
            return self._complete(generation, options, start, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("removal crashed for generation %s", generation)
            self._complete(generation, options, start, error=f"Unexpected error: {exc}")
            raise
        return self._complete(generation, options, start, result=result)

    def _complete(
        self,
        generation: int,
        options: RemoveBackgroundOptions,
        start: float,
        result: PixelBuffer | None = None,
        error: str | None = None,
    ) -> SessionState | None:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        with self._lock:
            if generation != self._generation:
                stale = True
            else:
                stale = False
                if error is None:
                    self._result = result
                    self._show_original = False
                    self._state = SessionState.SUCCEEDED
                else:
                    self._error = error
                    self._state = SessionState.FAILED
                state = self._state

        if stale:
            metrics.incr("stale_results_discarded_total")
            logger.debug("dropped result of generation %s", generation)
            return None

        metrics.incr("removals_failed_total" if error else "removals_succeeded_total")
        metrics.observe_ms(f"removal_{options.mode.value}", elapsed_ms)
        logger.info(
            json.dumps(
                {
                    "generation": generation,
                    "mode": options.mode.value,
                    "tolerance": options.tolerance,
                    "state": state.value,
                    "error": error,
                    "elapsed_ms": elapsed_ms,
                }
            )
        )
        return state
