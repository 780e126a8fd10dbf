"""Typed filter-graph model, serialised to ffmpeg's ``-filter_complex`` syntax.

Graph construction never deals with escaping. Option values are escaped
in two levels at render time, the way ffmpeg parses them: first for the
filter's own option parser, then for the graph parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import PipelineError

OptionValue = Union[str, int, float]

_LABEL_RE = re.compile(r"^[A-Za-z0-9_.:]+$")
_GRAPH_SPECIAL = ("\\", "'", "[", "]", ",", ";")


def escape_filter_text(value: str) -> str:
    """Escape the characters special to a filter's option parser.

    Backslashes go first so the escapes added for quotes and colons are
    not themselves doubled.
    """
    return value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


def escape_graph_value(value: str) -> str:
    for ch in _GRAPH_SPECIAL:
        value = value.replace(ch, "\\" + ch)
    return value


def format_number(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def _format_value(value: OptionValue) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return format_number(value)
    return escape_graph_value(escape_filter_text(str(value)))


@dataclass(frozen=True)
class Filter:
    """One filter with ordered options. A ``None`` key is a positional value."""

    name: str
    options: Tuple[Tuple[Optional[str], OptionValue], ...] = ()

    def option(self, key: str) -> Optional[OptionValue]:
        for k, v in self.options:
            if k == key:
                return v
        return None

    def render(self) -> str:
        if not self.options:
            return self.name
        parts = []
        for key, value in self.options:
            rendered = _format_value(value)
            parts.append(rendered if key is None else f"{key}={rendered}")
        return f"{self.name}=" + ":".join(parts)


def op(name: str, *positional: OptionValue, **options: Optional[OptionValue]) -> Filter:
    """Build a Filter; keyword options keep call order, ``None`` values are dropped."""
    items: List[Tuple[Optional[str], OptionValue]] = [(None, v) for v in positional]
    items.extend((k, v) for k, v in options.items() if v is not None)
    return Filter(name, tuple(items))


def _check_label(label: str) -> str:
    if not _LABEL_RE.match(label):
        raise PipelineError(f"Invalid filter-graph label: {label!r}")
    return label


@dataclass(frozen=True)
class FilterChain:
    """Linear chain ``[in...]f1,f2,...[out...]``."""

    inputs: Tuple[str, ...]
    filters: Tuple[Filter, ...]
    outputs: Tuple[str, ...]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return ins + ",".join(f.render() for f in self.filters) + outs


@dataclass
class FilterGraph:
    chains: List[FilterChain] = field(default_factory=list)

    def add(
        self,
        inputs: Sequence[str],
        filters: Iterable[Filter],
        outputs: Sequence[str],
    ) -> FilterChain:
        filters = tuple(filters)
        if not filters:
            raise PipelineError("A filter chain needs at least one filter.")
        produced = {label for chain in self.chains for label in chain.outputs}
        for label in outputs:
            if label in produced:
                raise PipelineError(f"Filter-graph label produced twice: {label!r}")
        chain = FilterChain(
            tuple(_check_label(label) for label in inputs),
            filters,
            tuple(_check_label(label) for label in outputs),
        )
        self.chains.append(chain)
        return chain

    def filters_named(self, name: str) -> List[Filter]:
        return [f for chain in self.chains for f in chain.filters if f.name == name]

    def has_filter(self, name: str) -> bool:
        return bool(self.filters_named(name))

    def producer_of(self, label: str) -> Optional[FilterChain]:
        for chain in self.chains:
            if label in chain.outputs:
                return chain
        return None

    def render(self) -> str:
        return ";".join(chain.render() for chain in self.chains)


@dataclass
class RenderRequest:
    """Inputs, graph and output mapping for one engine invocation."""

    inputs: List[str]
    graph: FilterGraph
    video_label: str
    audio_label: Optional[str] = None

    @property
    def has_audio(self) -> bool:
        return self.audio_label is not None

    def to_ffmpeg_args(
        self,
        output_path: str,
        video_params: Any,
        audio_params: Any,
        ffmpeg_path: str = "ffmpeg",
    ) -> List[str]:
        cmd: List[str] = [ffmpeg_path, "-y", "-hide_banner", "-nostdin"]
        for path in self.inputs:
            cmd.extend(["-i", path])
        cmd.extend(["-filter_complex", self.graph.render()])
        cmd.extend(["-map", f"[{self.video_label}]"])
        if self.audio_label is not None:
            cmd.extend(["-map", f"[{self.audio_label}]"])
        cmd.extend(video_params.to_ffmpeg_opts())
        if self.audio_label is not None:
            cmd.extend(audio_params.to_ffmpeg_opts())
        else:
            cmd.append("-an")
        cmd.extend(["-movflags", "+faststart", output_path])
        return cmd
