"""Value types flowing through the combination and render pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class MediaItem:
    """A resolved media file. ``name`` is the file stem used in output names."""

    name: str
    path: str


@dataclass(frozen=True)
class Segment:
    """A labelled pool of interchangeable clips for one ad position."""

    label: str
    items: Tuple[MediaItem, ...]


@dataclass(frozen=True)
class RangeTrim:
    start: float
    duration: float


@dataclass(frozen=True)
class LastTrim:
    seconds: float


TrimSpec = Union[RangeTrim, LastTrim]


@dataclass(frozen=True)
class ComboPart:
    label: str
    item: MediaItem


@dataclass
class Combination:
    parts: Tuple[ComboPart, ...]
    overlay_text: Optional[str] = None
    music_track: Optional[MediaItem] = None
    # True when the track came from multiplication rather than round-robin
    music_multiplied: bool = False
    name: str = ""


@dataclass
class RenderJob:
    """Everything needed to produce one artifact."""

    index: int
    combination: Combination
    output_path: Path
    thumbnail_path: Optional[Path] = None
    captions: bool = False

    @property
    def name(self) -> str:
        return self.combination.name


@dataclass
class JobResult:
    index: int
    name: str
    output_path: Optional[Path] = None
    error: Optional[str] = None
    thumbnail_path: Optional[Path] = None
    captioned: bool = False
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    total: int
    output_dir: Path
    results: List[JobResult] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def generated(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def thumbnails(self) -> int:
        return sum(1 for r in self.results if r.thumbnail_path is not None)

    @property
    def captioned(self) -> int:
        return sum(1 for r in self.results if r.captioned)

    @property
    def failures(self) -> List[Tuple[str, str]]:
        return [(r.name, r.error or "") for r in self.results if not r.ok]

    def to_kv(self) -> Dict[str, object]:
        return {
            "Event": "BatchSummary",
            "Total": self.total,
            "Generated": self.generated,
            "Thumbnails": self.thumbnails,
            "Captioned": self.captioned,
            "Failed": self.failed,
            "OutputDir": str(self.output_dir),
            "Duration": f"{self.elapsed:.2f}s",
        }
