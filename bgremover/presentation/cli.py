from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from bgremover.application.remove_background_use_case import build_default_use_case
from bgremover.application.removal_session import RemovalSession, SessionState
from bgremover.config import settings
from bgremover.domain.background_remover import RemovalMode
from bgremover.domain.color_key import TOLERANCE_MAX, TOLERANCE_MIN
from bgremover.domain.errors import BackgroundRemovalError, NoInputAvailableError
from bgremover.infrastructure.image_codec import grab_clipboard_image, read_image_file
from bgremover.infrastructure.metrics import metrics

logger = logging.getLogger("bgremover.cli")


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )


def _tolerance(value: str) -> float:
    try:
        tolerance = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid tolerance: {value!r}") from exc
    if not TOLERANCE_MIN <= tolerance <= TOLERANCE_MAX:
        raise argparse.ArgumentTypeError(f"tolerance must be between {TOLERANCE_MIN:g} and {TOLERANCE_MAX:g}")
    return tolerance


def _add_removal_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in RemovalMode],
        default=settings.default_mode,
        help="color: corner color key; ai: rembg subject segmentation",
    )
    parser.add_argument(
        "--tolerance",
        type=_tolerance,
        default=settings.default_tolerance,
        help="color distance tolerance, 0-100 (color mode only)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bgremover", description="Remove image backgrounds locally.")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    remove = commands.add_parser("remove", help="remove the background of one image")
    source = remove.add_mutually_exclusive_group(required=True)
    source.add_argument("input", nargs="?", help="image file to process")
    source.add_argument("--clipboard", action="store_true", help="read the image from the clipboard")
    remove.add_argument("-o", "--output", default=settings.result_filename, help="PNG file to write")
    remove.add_argument("--show-metrics", action="store_true", help="print metrics after the run")
    _add_removal_options(remove)

    batch = commands.add_parser("batch", help="process several images into a ZIP archive")
    batch.add_argument("files", nargs="+")
    _add_removal_options(batch)

    cleanup = commands.add_parser("cleanup", help="delete stored results older than a cut-off")
    cleanup.add_argument("--older-than", type=int, default=settings.cleanup_older_than_seconds, metavar="SECONDS")

    return parser


def _run_remove(args: argparse.Namespace) -> int:
    image = grab_clipboard_image() if args.clipboard else read_image_file(args.input)

    with RemovalSession(build_default_use_case(), mode=args.mode, tolerance=args.tolerance) as session:
        session.load(image).result()
        snapshot = session.snapshot()
        if snapshot.state is SessionState.FAILED:
            raise BackgroundRemovalError(snapshot.error or "Background removal failed")
        target = session.save_result(args.output)

    print(target)
    if args.show_metrics:
        print(metrics.to_prometheus_text(), end="")
    return 0


def _run_batch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    from bgremover.tasks.background_jobs import process_batch_images_job

    if len(args.files) > settings.max_batch_files:
        parser.error(f"Max {settings.max_batch_files} files per batch")

    payload: list[dict[str, bytes | str]] = []
    for name in args.files:
        path = Path(name)
        if not path.is_file():
            raise NoInputAvailableError(f"No image file at {path}")
        payload.append({"name": path.name, "bytes": path.read_bytes()})

    result = process_batch_images_job(payload, args.mode, args.tolerance)
    print(result["path"])
    return 0


def _run_cleanup(args: argparse.Namespace) -> int:
    from bgremover.tasks.maintenance_jobs import cleanup_expired_outputs_job

    result = cleanup_expired_outputs_job(args.older_than)
    print(f"scanned={result['scanned']} deleted={result['deleted']}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "remove":
            return _run_remove(args)
        if args.command == "batch":
            return _run_batch(args, parser)
        return _run_cleanup(args)
    except BackgroundRemovalError as exc:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
