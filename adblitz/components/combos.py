"""Cartesian expansion of segment pools by overlay text and music."""

import itertools
from typing import List, Optional, Sequence

from ..exceptions import ConfigurationError
from ..models import ComboPart, Combination, MediaItem, Segment


class ComboExpander:
    def __init__(
        self,
        segments: Sequence[Segment],
        overlays: Optional[Sequence[str]] = None,
        tracks: Optional[Sequence[MediaItem]] = None,
        multiply_tracks: bool = False,
    ):
        if not segments:
            raise ConfigurationError("At least one segment is required.", field="segment")
        for segment in segments:
            if not segment.items:
                raise ConfigurationError(
                    f"Segment {segment.label!r} has no clips.", field=segment.label
                )
        self.segments = list(segments)
        self.overlays = list(overlays or [])
        self.tracks = list(tracks or [])
        self.multiply_tracks = multiply_tracks

    def expected_count(self) -> int:
        count = 1
        for segment in self.segments:
            count *= len(segment.items)
        if self.overlays:
            count *= len(self.overlays)
        if self.tracks and self.multiply_tracks:
            count *= len(self.tracks)
        return count

    def expand(self) -> List[Combination]:
        """Return combinations in nested-loop order (last segment varies fastest).

        Each base combination is immediately followed by its overlay
        variants, and each of those by its track variants when tracks are
        multiplied. Without multiplication the track at position ``i`` is
        ``tracks[i % len(tracks)]``.
        """
        labels = [s.label for s in self.segments]
        combos: List[Combination] = [
            Combination(parts=tuple(ComboPart(label, item) for label, item in zip(labels, picks)))
            for picks in itertools.product(*(s.items for s in self.segments))
        ]

        if self.overlays:
            combos = [
                Combination(parts=c.parts, overlay_text=text)
                for c in combos
                for text in self.overlays
            ]

        if self.tracks:
            if self.multiply_tracks:
                combos = [
                    Combination(
                        parts=c.parts,
                        overlay_text=c.overlay_text,
                        music_track=track,
                        music_multiplied=True,
                    )
                    for c in combos
                    for track in self.tracks
                ]
            else:
                for i, c in enumerate(combos):
                    c.music_track = self.tracks[i % len(self.tracks)]

        return combos
