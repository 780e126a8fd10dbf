"""Batch pipeline: expand, name, probe, render, post-process, report."""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cache import AudioPresenceCache, ProbeFunc
from .components.combos import ComboExpander
from .components.config import (
    load_config,
    load_default_config,
    merge_configs,
    validate_config,
)
from .components.graph_builder import FilterGraphBuilder, OverlayStyle
from .components.naming import NamingEngine
from .components.postprocess import (
    CaptionBurner,
    PostProcessor,
    WhisperTranscriber,
    thumbnail_path_for,
)
from .components.renderer import JobRenderer
from .components.scheduler import JobScheduler
from .components.segments import MUSIC_EXTS, SegmentStore
from .components.trim import parse_trim_args
from .exceptions import ConfigurationError, PipelineError
from .models import (
    BatchReport,
    Combination,
    JobResult,
    MediaItem,
    RenderJob,
    Segment,
    TrimSpec,
)
from .utils.dependency_checks import ensure_ffmpeg_dependencies
from .utils.ffmpeg_params import AudioParams, VideoParams
from .utils.logger import logger, time_log

THUMBNAIL_DIRNAME = "thumbnails"


class BatchPipeline:
    """Turns segment pools into rendered ad variants."""

    def __init__(
        self,
        config: Dict[str, Any],
        segments: Sequence[Segment],
        trims: Optional[Dict[str, TrimSpec]] = None,
        overlays: Optional[Sequence[str]] = None,
        tracks: Optional[Sequence[MediaItem]] = None,
        probe: Optional[ProbeFunc] = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.segments = list(segments)
        self.trims = dict(trims or {})
        self.overlays = list(overlays or [])
        self.tracks = list(tracks or [])
        self.probe = probe
        self.show_progress = show_progress

        unknown = set(self.trims) - {s.label for s in self.segments}
        if unknown:
            raise ConfigurationError(f"Trim for unknown segment(s): {sorted(unknown)}", field="trim")
        if config["music"].get("multiply") and not self.tracks:
            raise ConfigurationError(
                "Multiplying by music tracks requires music tracks.", field="music.multiply"
            )

        self.output_dir = Path(config["output"]["dir"]).expanduser().resolve()
        self.thumbnail_dir = self.output_dir / THUMBNAIL_DIRNAME
        self.video_params = VideoParams.from_config(config["output"])
        self.audio_params = AudioParams.from_config(config["output"])
        self._completed = 0
        self._total = 0

    def plan(self) -> List[Combination]:
        """Expand and name every combination, without touching the filesystem."""
        expander = ComboExpander(
            self.segments,
            overlays=self.overlays,
            tracks=self.tracks,
            multiply_tracks=bool(self.config["music"].get("multiply")),
        )
        combos = expander.expand()
        naming = NamingEngine(
            [s.label for s in self.segments], template=self.config["naming"].get("template")
        )
        return naming.assign(combos)

    def make_jobs(self, combos: Sequence[Combination]) -> List[RenderJob]:
        post = self.config["postprocess"]
        return [
            RenderJob(
                index=i,
                combination=combo,
                output_path=self.output_dir / combo.name,
                thumbnail_path=(
                    thumbnail_path_for(self.thumbnail_dir, combo.name)
                    if post.get("thumbnails")
                    else None
                ),
                captions=bool(post.get("captions")),
            )
            for i, combo in enumerate(combos)
        ]

    def _log_plan(self, combos: Sequence[Combination]) -> None:
        for segment in self.segments:
            logger.info(f"  {segment.label}: {len(segment.items)} file(s)")
        if self.overlays:
            logger.info(f"  overlays: {len(self.overlays)}")
        if self.tracks:
            mode = "multiplied" if self.config["music"].get("multiply") else "round-robin"
            logger.info(f"  music: {len(self.tracks)} track(s), {mode}")
        logger.kv_info(
            f"{len(combos)} combination(s) -> {self.output_dir} "
            f"({self.video_params.width}x{self.video_params.height})",
            kv_pairs={"Event": "BatchPlanned", "Combinations": len(combos)},
        )

    def _on_complete(self, result: JobResult) -> None:
        self._completed += 1
        kv = {
            "Event": "JobFinished" if result.ok else "JobFailed",
            "Job": result.name,
            "Idx": f"{self._completed}/{self._total}",
            "Duration": f"{result.elapsed:.2f}s",
        }
        if result.ok:
            logger.kv_debug(f"Rendered {result.name}", kv_pairs=kv)
        else:
            logger.kv_debug(f"Failed {result.name}: {result.error}", kv_pairs=kv)

    def _build_post_processor(self) -> PostProcessor:
        post = self.config["postprocess"]
        burner = None
        if post.get("captions"):
            burner = CaptionBurner(
                WhisperTranscriber(model_size=post.get("caption_model", "base")),
                font_size=int(post.get("caption_font_size", 18)),
                video_params=self.video_params,
                timeout=float(self.config["render"].get("timeout_sec", 0) or 0),
            )
        return PostProcessor(
            caption_burner=burner,
            thumbnails=bool(post.get("thumbnails")),
            thumbnail_at=float(post.get("thumbnail_at", 0.0)),
        )

    def _log_summary(self, report: BatchReport) -> None:
        logger.kv_info("Batch Summary", kv_pairs=report.to_kv())
        if report.generated:
            logger.info(f"  {report.generated} video(s) generated in {report.output_dir}")
        if report.thumbnails:
            logger.info(f"  {report.thumbnails} thumbnail(s) generated in {self.thumbnail_dir}")
        if report.captioned:
            logger.info(f"  {report.captioned} video(s) captioned")
        if report.failed:
            logger.error(f"  {report.failed} failed:")
            for name, reason in report.failures:
                logger.error(f"    - {name}: {reason}")

    @time_log(logger)
    async def run(self, dry_run: bool = False) -> BatchReport:
        start = time.monotonic()
        combos = self.plan()
        self._log_plan(combos)
        report = BatchReport(total=len(combos), output_dir=self.output_dir)

        if dry_run:
            logger.info("Dry run - these files would be generated:")
            for i, combo in enumerate(combos, start=1):
                logger.info(f"  {i:4d}. {combo.name}")
            logger.info(f"{len(combos)} video(s) would be created.")
            return report

        # Created once, before fan-out; jobs only ever write distinct names inside
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            if self.config["postprocess"].get("thumbnails"):
                self.thumbnail_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create output folder {self.output_dir}: {e}", field="output.dir"
            ) from e

        cache = await AudioPresenceCache.build(self.segments, probe=self.probe)
        builder = FilterGraphBuilder(
            self.video_params,
            self.audio_params,
            cache,
            trims=self.trims,
            overlay_style=OverlayStyle.from_config(self.config["overlay"]),
            music_volume=float(self.config["music"]["volume"]),
        )
        renderer = JobRenderer(
            builder,
            self.video_params,
            self.audio_params,
            timeout=float(self.config["render"].get("timeout_sec", 0) or 0),
        )
        post = self._build_post_processor()

        async def render_one(job: RenderJob) -> JobResult:
            path = await renderer.render(job)
            result = JobResult(index=job.index, name=job.name, output_path=path)
            if post.enabled:
                await post.process(job, result)
            return result

        jobs = self.make_jobs(combos)
        self._completed, self._total = 0, len(jobs)
        scheduler = JobScheduler(
            int(self.config["render"]["concurrency"]),
            on_complete=self._on_complete,
            show_progress=self.show_progress,
        )
        report.results = await scheduler.run(jobs, render_one)
        if len(report.results) != len(jobs):
            raise PipelineError(
                f"Expected {len(jobs)} results, got {len(report.results)}."
            )
        report.elapsed = time.monotonic() - start
        self._log_summary(report)
        return report


def read_overlays(texts: Optional[Sequence[str]], overlays_file: Optional[str]) -> List[str]:
    """Overlay texts from flags, then from a file (one per line). Blank entries are dropped."""
    overlays = [t.strip() for t in (texts or []) if t and t.strip()]
    if overlays_file:
        try:
            with open(overlays_file, "r", encoding="utf-8") as f:
                overlays.extend(line.strip() for line in f if line.strip())
        except OSError as e:
            raise ConfigurationError(f"Cannot read overlays file {overlays_file}: {e}", field="overlays")
    return overlays


def build_config(
    config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Defaults <- user YAML <- CLI overrides, validated."""
    config = load_default_config()
    if config_path:
        config = merge_configs(config, load_config(config_path))
    if overrides:
        config = merge_configs(config, overrides)
    validate_config(config)
    return config


async def run_batch(
    segment_decls: Sequence[Tuple[str, str]],
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    trim_args: Optional[Sequence[str]] = None,
    overlay_texts: Optional[Sequence[str]] = None,
    overlays_file: Optional[str] = None,
    music_dir: Optional[str] = None,
    dry_run: bool = False,
    check_dependencies: bool = True,
) -> BatchReport:
    """Resolve every input up front, then run the batch.

    All configuration errors surface here, before any job is scheduled.
    """
    config = build_config(config_path, overrides)
    if not segment_decls:
        raise ConfigurationError(
            "No segments given. Use --hooks/--ctas or --segment LABEL=DIR.", field="segment"
        )
    if config["music"].get("multiply") and not music_dir:
        raise ConfigurationError("--music-all requires --music.", field="music")

    labels = [label for label, _ in segment_decls]
    trims = parse_trim_args(trim_args or [], labels)
    overlays = read_overlays(overlay_texts, overlays_file)

    segments = SegmentStore().load_segments(segment_decls)
    tracks: List[MediaItem] = []
    if music_dir:
        tracks = SegmentStore(MUSIC_EXTS).load(music_dir, "Music")

    if check_dependencies and not dry_run:
        await ensure_ffmpeg_dependencies(logger)

    pipeline = BatchPipeline(
        config,
        segments,
        trims=trims,
        overlays=overlays,
        tracks=tracks,
    )
    return await pipeline.run(dry_run=dry_run)
