"""Render output names from a template and make them unique."""

import re
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set

from ..models import Combination

MAX_NAME_LEN = 200
MAX_SLUG_LEN = 30
DEFAULT_EXTENSION = ".mp4"

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
_UNSAFE_CHARS_RE = re.compile(r'[/\\<>:"|?*]')
_UNDERSCORE_RUN_RE = re.compile(r"_{2,}")
_NON_ALNUM_RUN_RE = re.compile(r"[^A-Za-z0-9]+")


def default_template(labels: Sequence[str]) -> str:
    return "_".join("{" + label + "}" for label in labels)


def overlay_slug(text: str) -> str:
    """'50% OFF today!' -> '50-OFF-today-'"""
    return _NON_ALNUM_RUN_RE.sub("-", text)[:MAX_SLUG_LEN]


def sanitize_name(name: str) -> str:
    name = name.replace("\x00", "")
    name = _UNSAFE_CHARS_RE.sub("_", name)
    name = _UNDERSCORE_RUN_RE.sub("_", name)
    name = name.strip(". \t\r\n")
    name = name[:MAX_NAME_LEN]
    return name or "unnamed"


class NamingEngine:
    """Turns combinations into unique, filesystem-safe output file names.

    Placeholders: ``{label}`` for each segment label, ``{0}``..``{n-1}``
    for segments by position, ``{index}`` (1-based, four digits) and
    ``{date}`` (``YYYY-MM-DD``). Unknown placeholders are left as-is.
    """

    def __init__(
        self,
        labels: Sequence[str],
        template: Optional[str] = None,
        today: Optional[date] = None,
        extension: str = DEFAULT_EXTENSION,
    ):
        self.labels = list(labels)
        self.template = template or default_template(self.labels)
        self.today = today or date.today()
        self.extension = extension
        self._used: Set[str] = set()

    def render(self, combo: Combination, index: int) -> str:
        """Template text for one combination, before sanitising."""
        text = self.template.replace("{index}", f"{index:04d}")
        text = text.replace("{date}", self.today.isoformat())

        by_label = {part.label: part.item.name for part in combo.parts}
        positional = [part.item.name for part in combo.parts]

        def substitute(match: "re.Match[str]") -> str:
            key = match.group(1)
            if key in by_label:
                return by_label[key]
            if key.isdigit() and int(key) < len(positional):
                return positional[int(key)]
            return match.group(0)

        # One pass, so text coming from an item name is never re-expanded
        text = _PLACEHOLDER_RE.sub(substitute, text)

        if combo.overlay_text:
            slug = overlay_slug(combo.overlay_text)
            if slug:
                text = f"{text}_{slug}"
        if combo.music_track is not None and combo.music_multiplied:
            text = f"{text}_{combo.music_track.name}"
        return text

    def _dedupe(self, name: str) -> str:
        candidate = name
        suffix = 0
        while candidate.lower() in self._used:
            suffix += 1
            candidate = f"{name}_{suffix}"
        self._used.add(candidate.lower())
        return candidate

    def assign(self, combos: Iterable[Combination]) -> List[Combination]:
        """Set ``name`` on every combination, in sequence order."""
        named = []
        for index, combo in enumerate(combos, start=1):
            stem = self._dedupe(sanitize_name(self.render(combo, index)))
            combo.name = stem + self.extension
            named.append(combo)
        return named
