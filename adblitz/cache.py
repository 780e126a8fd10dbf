"""Audio-presence and duration lookups shared by every render job."""

import asyncio
import subprocess
from typing import Awaitable, Callable, Dict, Iterable, Optional

from .models import MediaItem, Segment
from .utils.ffmpeg_probe import MediaInfo, get_media_info
from .utils.logger import logger

ProbeFunc = Callable[[str], Awaitable[MediaInfo]]

# ffprobe failures we downgrade to "no answer"
PROBE_ERRORS = (
    subprocess.CalledProcessError,
    subprocess.TimeoutExpired,
    FileNotFoundError,
    ValueError,
    OSError,
)


class AudioPresenceCache:
    """Maps media paths to "has an audio stream" and, lazily, to duration.

    Audio presence is filled once by :meth:`build` before any job starts and
    is read-only afterwards. Durations are probed on first request only,
    since they matter only for ``last:`` trims and silent segments.
    """

    def __init__(
        self,
        audio: Optional[Dict[str, bool]] = None,
        durations: Optional[Dict[str, Optional[float]]] = None,
        probe: Optional[ProbeFunc] = None,
    ):
        self._audio: Dict[str, bool] = dict(audio or {})
        self._durations: Dict[str, Optional[float]] = dict(durations or {})
        self._probe: ProbeFunc = probe or get_media_info

    @classmethod
    async def build(
        cls,
        segments: Iterable[Segment],
        probe: Optional[ProbeFunc] = None,
        concurrency: int = 4,
    ) -> "AudioPresenceCache":
        """Probe every distinct segment item once. Music tracks are not included."""
        cache = cls(probe=probe)
        paths = []
        seen = set()
        for segment in segments:
            for item in segment.items:
                if item.path not in seen:
                    seen.add(item.path)
                    paths.append(item.path)

        sem = asyncio.Semaphore(max(1, concurrency))

        async def probe_one(path: str) -> None:
            async with sem:
                info = await cache._safe_probe(path)
            cache._audio[path] = bool(info and info.get("audio") is not None)

        await asyncio.gather(*(probe_one(p) for p in paths))
        silent = sum(1 for p in paths if not cache._audio[p])
        logger.kv_info(
            f"Audio presence cache built for {len(paths)} clip(s); {silent} without audio.",
            kv_pairs={"Event": "AudioCacheBuilt", "Clips": len(paths), "Silent": silent},
        )
        return cache

    async def _safe_probe(self, path: str) -> Optional[MediaInfo]:
        try:
            return await self._probe(path)
        except PROBE_ERRORS as e:
            logger.warning(f"Probe failed for {path}; treating as silent/unknown: {e}")
            return None

    def has_audio(self, item: MediaItem) -> bool:
        # Items never probed (or failed) count as silent
        return self._audio.get(item.path, False)

    def __contains__(self, item: MediaItem) -> bool:
        return item.path in self._audio

    def __len__(self) -> int:
        return len(self._audio)

    async def duration(self, item: MediaItem) -> Optional[float]:
        """Duration in seconds, or None when it cannot be determined."""
        if item.path not in self._durations:
            info = await self._safe_probe(item.path)
            self._durations[item.path] = info.get("duration") if info else None
        value = self._durations[item.path]
        if value is None or value <= 0:
            return None
        return value
