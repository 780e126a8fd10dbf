"""Build the per-combination filter graph: normalise, trim, concat, overlay, mix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ..cache import AudioPresenceCache
from ..exceptions import RenderError
from ..models import Combination, LastTrim, MediaItem, RangeTrim, TrimSpec
from ..utils.ffmpeg_params import AudioParams, VideoParams
from ..utils.logger import logger
from .filter_graph import Filter, FilterGraph, RenderRequest, op

# drawtext y expressions for each placement
OVERLAY_Y = {
    "top": "h*0.08",
    "center": "(h-text_h)/2",
    "bottom": "h*0.85",
}

DEFAULT_MUSIC_VOLUME = 0.15


@dataclass
class OverlayStyle:
    position: str = "bottom"
    font_size: int = 64
    font_color: str = "white"
    font_file: Optional[str] = None
    border_width: int = 3

    @classmethod
    def from_config(cls, overlay_cfg: Mapping) -> "OverlayStyle":
        return cls(
            position=overlay_cfg.get("position", "bottom"),
            font_size=int(overlay_cfg.get("font_size", 64)),
            font_color=overlay_cfg.get("font_color", "white"),
            font_file=overlay_cfg.get("font_file"),
            border_width=int(overlay_cfg.get("border_width", 3)),
        )


@dataclass
class SegmentPlan:
    """Resolved per-segment decisions, fixed before the graph is emitted."""

    input_index: int
    item: MediaItem
    has_audio: bool
    # (start, duration) in normalised time, None for the full clip
    window: Optional[Tuple[float, float]] = None
    # length of generated silence when the clip has no audio of its own
    silence: Optional[float] = None


class FilterGraphBuilder:
    """Decides the complete set of engine operations for one combination.

    Every segment is scaled and padded to the target frame, given square
    pixels and a constant frame rate. When any audio is needed, each
    segment contributes exactly one stream (its own, resampled, or
    generated silence) so concat stays uniform. With no audio anywhere
    and no music, the request is video-only.
    """

    def __init__(
        self,
        video_params: VideoParams,
        audio_params: AudioParams,
        cache: AudioPresenceCache,
        trims: Optional[Dict[str, TrimSpec]] = None,
        overlay_style: Optional[OverlayStyle] = None,
        music_volume: float = DEFAULT_MUSIC_VOLUME,
    ):
        self.video_params = video_params
        self.audio_params = audio_params
        self.cache = cache
        self.trims = dict(trims or {})
        self.overlay_style = overlay_style or OverlayStyle()
        self.music_volume = music_volume

    async def _resolve_window(
        self, label: str, item: MediaItem
    ) -> Optional[Tuple[float, float]]:
        spec = self.trims.get(label)
        if spec is None:
            return None
        if isinstance(spec, RangeTrim):
            return (spec.start, spec.duration)
        if isinstance(spec, LastTrim):
            duration = await self.cache.duration(item)
            if duration is None:
                logger.warning(
                    f"Duration of {item.name} unknown; using the full clip instead of last {spec.seconds}s."
                )
                return None
            if duration > spec.seconds:
                return (duration - spec.seconds, spec.seconds)
            return None
        raise TypeError(f"Unknown trim spec: {spec!r}")

    async def plan(self, combo: Combination) -> Tuple[List[SegmentPlan], bool]:
        """Resolve trims and silence lengths. Returns (plans, needs_audio)."""
        plans = []
        for index, part in enumerate(combo.parts):
            plans.append(
                SegmentPlan(
                    input_index=index,
                    item=part.item,
                    has_audio=self.cache.has_audio(part.item),
                    window=await self._resolve_window(part.label, part.item),
                )
            )

        needs_audio = combo.music_track is not None or any(p.has_audio for p in plans)
        if needs_audio:
            for p in plans:
                if p.has_audio:
                    continue
                duration = await self.cache.duration(p.item)
                if p.window is not None:
                    start, length = p.window
                    # trim stops at the end of the clip; the silence must too
                    if duration is not None:
                        length = min(length, max(0.0, duration - start))
                    p.silence = length
                    continue
                if duration is None:
                    raise RenderError(
                        f"Cannot determine duration of silent clip {p.item.name}; "
                        "the clip may be unreadable.",
                        job_name=combo.name,
                    )
                p.silence = duration
        return plans, needs_audio

    def _audio_format(self) -> Filter:
        return op(
            "aformat",
            sample_fmts=self.audio_params.sample_fmt,
            channel_layouts=self.audio_params.channel_layout,
        )

    def _video_filters(self, plan: SegmentPlan) -> List[Filter]:
        w, h = self.video_params.width, self.video_params.height
        filters = [
            op("scale", w=w, h=h, force_original_aspect_ratio="decrease"),
            op("pad", w=w, h=h, x="(ow-iw)/2", y="(oh-ih)/2", color="black"),
            op("setsar", 1),
            op("fps", self.video_params.fps),
        ]
        if plan.window is not None:
            start, duration = plan.window
            filters.append(op("trim", start=start, duration=duration))
            filters.append(op("setpts", "PTS-STARTPTS"))
        return filters

    def _audio_filters(self, plan: SegmentPlan) -> List[Filter]:
        if not plan.has_audio:
            return [
                op(
                    "anullsrc",
                    r=self.audio_params.sample_rate,
                    cl=self.audio_params.channel_layout,
                    d=plan.silence,
                ),
                self._audio_format(),
            ]
        filters = [op("aresample", self.audio_params.sample_rate), self._audio_format()]
        if plan.window is not None:
            start, duration = plan.window
            filters.append(op("atrim", start=start, duration=duration))
            filters.append(op("asetpts", "PTS-STARTPTS"))
        return filters

    def _overlay_filter(self, text: str) -> Filter:
        style = self.overlay_style
        return op(
            "drawtext",
            text=text,
            expansion="none",
            fontfile=style.font_file,
            fontsize=style.font_size,
            fontcolor=style.font_color,
            borderw=style.border_width,
            bordercolor="black",
            x="(w-text_w)/2",
            y=OVERLAY_Y.get(style.position, OVERLAY_Y["bottom"]),
        )

    def build_graph(
        self, combo: Combination, plans: List[SegmentPlan], needs_audio: bool
    ) -> RenderRequest:
        graph = FilterGraph()
        inputs = [p.item.path for p in plans]
        concat_inputs: List[str] = []

        for p in plans:
            v_label = f"v{p.input_index}"
            graph.add([f"{p.input_index}:v"], self._video_filters(p), [v_label])
            concat_inputs.append(v_label)
            if needs_audio:
                a_label = f"a{p.input_index}"
                src = [f"{p.input_index}:a"] if p.has_audio else []
                graph.add(src, self._audio_filters(p), [a_label])
                concat_inputs.append(a_label)

        n = len(plans)
        if needs_audio:
            graph.add(concat_inputs, [op("concat", n=n, v=1, a=1)], ["vcat", "acat"])
            audio_label: Optional[str] = "acat"
        else:
            graph.add(concat_inputs, [op("concat", n=n, v=1, a=0)], ["vcat"])
            audio_label = None
        video_label = "vcat"

        if combo.overlay_text:
            graph.add([video_label], [self._overlay_filter(combo.overlay_text)], ["vtxt"])
            video_label = "vtxt"

        if combo.music_track is not None and audio_label is not None:
            music_index = len(inputs)
            inputs.append(combo.music_track.path)
            graph.add(
                [f"{music_index}:a"],
                [
                    op("aresample", self.audio_params.sample_rate),
                    self._audio_format(),
                    op("volume", self.music_volume),
                ],
                ["music"],
            )
            # duration=first pins the mix to the concatenated programme audio,
            # whose length matches the video
            graph.add(
                [audio_label, "music"],
                [op("amix", inputs=2, duration="first", dropout_transition=0, normalize=0)],
                ["amixed"],
            )
            audio_label = "amixed"

        return RenderRequest(
            inputs=inputs,
            graph=graph,
            video_label=video_label,
            audio_label=audio_label,
        )

    async def build(self, combo: Combination) -> RenderRequest:
        plans, needs_audio = await self.plan(combo)
        request = self.build_graph(combo, plans, needs_audio)
        logger.debug(f"Filter graph for {combo.name}: {request.graph.render()}")
        return request
