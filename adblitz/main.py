"""Command-line entry point for batch ad generation."""

import argparse
import asyncio
import sys
import time
import traceback
from typing import Any, Dict, List, Optional, Sequence, Tuple

from adblitz.components.segments import SHORTHAND_LABELS, parse_segment_arg
from adblitz.exceptions import ConfigurationError, DependencyError
from adblitz.pipeline import run_batch
from adblitz.utils.logger import (
    KVLogger,
    get_logger,
    setup_logging,
    shutdown_logging,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adblitz",
        description=(
            "Render every combination of hook/body/CTA clips (plus overlay texts "
            "and music) into finished vertical ads."
        ),
    )
    segments = parser.add_argument_group("segments")
    segments.add_argument("--hooks", type=str, help="Folder of hook clips (label 'hook').")
    segments.add_argument("--bodies", type=str, help="Folder of body clips (label 'body').")
    segments.add_argument("--ctas", type=str, help="Folder of CTA clips (label 'cta').")
    segments.add_argument(
        "--segment",
        action="append",
        default=[],
        metavar="LABEL=DIR",
        help="Declare a segment pool. Repeatable; order is playback order.",
    )
    segments.add_argument(
        "--trim",
        action="append",
        default=[],
        metavar="LABEL=SPEC",
        help="Trim a segment: LABEL=START:DURATION or LABEL=last:SECONDS.",
    )

    extras = parser.add_argument_group("overlays and music")
    extras.add_argument(
        "--overlay", action="append", default=[], metavar="TEXT", help="Overlay text. Repeatable."
    )
    extras.add_argument("--overlays-file", type=str, help="File with one overlay text per line.")
    extras.add_argument("--music", type=str, help="Folder of background music tracks.")
    extras.add_argument(
        "--music-all",
        action="store_true",
        help="Render every combination with every track instead of rotating tracks.",
    )
    extras.add_argument("--music-volume", type=float, help="Music volume in (0, 1].")
    extras.add_argument(
        "--text-position", choices=["top", "center", "bottom"], help="Overlay placement."
    )
    extras.add_argument("--font-size", type=int, help="Overlay font size.")
    extras.add_argument("--font-color", type=str, help="Overlay font color.")
    extras.add_argument("--font-file", type=str, help="Font file used for overlays.")

    output = parser.add_argument_group("output")
    output.add_argument("-o", "--output", type=str, help="Output folder.")
    output.add_argument(
        "--name",
        type=str,
        help="Naming template, e.g. '{index}_{hook}_{cta}'. Supports {index}, {date} and labels.",
    )
    output.add_argument("--width", type=int, help="Output width in pixels (even).")
    output.add_argument("--height", type=int, help="Output height in pixels (even).")
    output.add_argument("--preset", type=str, help="x264 preset (e.g. ultrafast, fast, slow).")
    output.add_argument("--crf", type=int, help="x264 CRF (0-51).")
    output.add_argument(
        "-j", "--concurrency", type=int, help="Number of videos rendered at the same time."
    )
    output.add_argument(
        "--timeout", type=float, help="Seconds before a single ffmpeg run is killed (0 = none)."
    )

    post = parser.add_argument_group("post-processing")
    post.add_argument(
        "--captions", action="store_true", default=None, help="Burn in speech captions."
    )
    post.add_argument("--caption-model", type=str, help="faster-whisper model size.")
    post.add_argument(
        "--thumbnails", action="store_true", default=None, help="Extract a thumbnail per video."
    )
    post.add_argument("--thumbnail-at", type=float, help="Thumbnail timestamp in seconds.")

    parser.add_argument("--config", type=str, help="YAML config merged over the defaults.")
    parser.add_argument(
        "--dry-run", action="store_true", help="List the files that would be generated and exit."
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="If set, outputs logs in machine-readable JSON format.",
    )
    parser.add_argument(
        "--log-kv",
        action="store_true",
        help="If set, outputs logs in human-readable Key-Value pair format.",
    )
    parser.add_argument("--log-dir", type=str, help="Also write a log file into this folder.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    return parser


def segment_declarations(args: argparse.Namespace) -> List[Tuple[str, str]]:
    """Shorthand flags first (hook, body, cta), then --segment entries."""
    decls: List[Tuple[str, str]] = []
    for attr, label in SHORTHAND_LABELS:
        directory = getattr(args, attr, None)
        if directory:
            decls.append((label, directory))
    decls.extend(parse_segment_arg(value) for value in args.segment)
    return decls


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto config sections. Unset flags stay None and are ignored by the merge."""
    return {
        "output": {
            "dir": args.output,
            "width": args.width,
            "height": args.height,
            "preset": args.preset,
            "crf": args.crf,
        },
        "naming": {"template": args.name},
        "overlay": {
            "position": args.text_position,
            "font_size": args.font_size,
            "font_color": args.font_color,
            "font_file": args.font_file,
        },
        "music": {
            "volume": args.music_volume,
            "multiply": True if args.music_all else None,
        },
        "render": {"concurrency": args.concurrency, "timeout_sec": args.timeout},
        "postprocess": {
            "captions": args.captions,
            "caption_model": args.caption_model,
            "thumbnails": args.thumbnails,
            "thumbnail_at": args.thumbnail_at,
        },
    }


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run the batch. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    # --log-kv wins over --log-json for console output
    setup_logging(
        log_json=args.log_json,
        debug_mode=args.debug,
        log_kv=args.log_kv,
        log_dir=args.log_dir,
    )
    logger: KVLogger = get_logger()
    start_time = time.time()

    try:
        logger.kv_info("Batch started.", kv_pairs={"Event": "BatchStart"})
        report = await run_batch(
            segment_declarations(args),
            config_path=args.config,
            overrides=config_overrides(args),
            trim_args=args.trim,
            overlay_texts=args.overlay,
            overlays_file=args.overlays_file,
            music_dir=args.music,
            dry_run=args.dry_run,
        )
        elapsed_time = time.time() - start_time
        logger.kv_info(
            f"Total execution time: {elapsed_time:.2f} seconds.",
            kv_pairs={"Event": "TotalExecutionTime", "Duration": f"{elapsed_time:.2f}s"},
        )
        if report.total and report.results and report.generated == 0:
            logger.kv_error(
                "Every video failed to render.",
                kv_pairs={"Event": "BatchFailed", "Failed": report.failed},
            )
            return 1
        return 0
    except ConfigurationError as e:
        logger.kv_error(
            f"{e}",
            kv_pairs={"Event": "ConfigurationError", "Field": e.field, "Message": e.message},
        )
        return 1
    except DependencyError as e:
        logger.kv_error(
            f"Dependency Error: {e}",
            kv_pairs={"Event": "DependencyError", "Message": str(e)},
        )
        return 1
    except Exception as e:
        logger.kv_error(
            f"An unexpected error occurred during the batch: {e}",
            kv_pairs={
                "Event": "UnexpectedError",
                "Message": str(e),
                "Traceback": traceback.format_exc(),
            },
        )
        return 1
    finally:
        shutdown_logging()


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
