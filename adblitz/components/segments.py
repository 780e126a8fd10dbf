"""Resolve segment pools and music tracks from directories of media files."""

import re
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from ..exceptions import ConfigurationError
from ..models import MediaItem, Segment
from ..utils.logger import logger

VIDEO_EXTS = (".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v")
MUSIC_EXTS = (".mp3", ".wav", ".m4a", ".aac", ".ogg", ".flac")

LABEL_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Shorthand flags map onto these labels, in this order
SHORTHAND_LABELS = (("hooks", "hook"), ("bodies", "body"), ("ctas", "cta"))


def parse_segment_arg(value: str) -> Tuple[str, str]:
    """Split ``LABEL=DIR`` into its parts."""
    label, sep, directory = value.partition("=")
    label = label.strip()
    if not sep or not label or not directory.strip():
        raise ConfigurationError(
            f"Segment must be given as LABEL=DIR (got {value!r}).", field="segment"
        )
    if not LABEL_RE.match(label):
        raise ConfigurationError(
            f"Segment label {label!r} may only contain letters, digits, '_' and '-'.",
            field="segment",
        )
    return label, directory.strip()


class SegmentStore:
    """Scans directories into validated, name-sorted MediaItem lists."""

    def __init__(self, extensions: Sequence[str] = VIDEO_EXTS):
        self.extensions = tuple(e.lower() for e in extensions)

    def _is_usable(self, path: Path) -> bool:
        if path.is_symlink() or not path.is_file():
            return False
        try:
            return path.stat().st_size > 0
        except OSError:
            return False

    def load(self, directory: str, label: str) -> List[MediaItem]:
        root = Path(directory).expanduser().resolve()
        if not root.exists():
            raise ConfigurationError(
                f"{label} folder not found: {root}. Create it (mkdir -p {directory}) "
                "or check the path for typos.",
                field=label,
            )
        if not root.is_dir():
            raise ConfigurationError(
                f"{label} path is not a folder: {root}. Point it at a folder of media files.",
                field=label,
            )

        entries = sorted(p for p in root.iterdir() if not p.name.startswith("."))
        skipped = [p.name for p in entries if p.suffix.lower() not in self.extensions]
        if skipped:
            logger.kv_warning(
                f"Skipping {len(skipped)} unsupported file(s) in {label} folder: "
                + ", ".join(skipped[:5])
                + ("..." if len(skipped) > 5 else ""),
                kv_pairs={"Event": "SkippedFiles", "Segment": label, "Count": len(skipped)},
            )

        items: List[MediaItem] = []
        for path in entries:
            if path.suffix.lower() not in self.extensions:
                continue
            if not self._is_usable(path):
                logger.warning(f"Ignoring {path.name} in {label}: not a non-empty regular file.")
                continue
            items.append(MediaItem(name=path.stem, path=str(path)))

        if not items:
            hint = "The folder is empty." if not entries else (
                f"The folder has {len(entries)} file(s), but none are usable."
            )
            raise ConfigurationError(
                f"No media files found in {label} folder: {root}. {hint} "
                f"Supported formats: {', '.join(self.extensions)}",
                field=label,
            )
        return items

    def load_segments(self, declarations: Iterable[Tuple[str, str]]) -> List[Segment]:
        """Resolve ``(label, directory)`` pairs, keeping declaration order."""
        segments: List[Segment] = []
        seen = set()
        for label, directory in declarations:
            if label in seen:
                raise ConfigurationError(f"Segment label {label!r} declared twice.", field="segment")
            seen.add(label)
            items = self.load(directory, label)
            segments.append(Segment(label=label, items=tuple(items)))
            logger.kv_info(
                f"Segment '{label}': {len(items)} clip(s)",
                kv_pairs={"Event": "SegmentLoaded", "Segment": label, "Count": len(items)},
            )
        return segments
