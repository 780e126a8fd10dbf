import asyncio
from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.cache import AudioPresenceCache
from adblitz.models import MediaItem, Segment


def _item(name):
    return MediaItem(name, f"/clips/{name}.mp4")


class FakeProbe:
    def __init__(self, infos):
        self.infos = infos
        self.calls = []

    async def __call__(self, path):
        self.calls.append(path)
        info = self.infos.get(path)
        if isinstance(info, Exception):
            raise info
        return info


def test_build_probes_each_distinct_item_once():
    a, b, c = _item("a"), _item("b"), _item("c")
    probe = FakeProbe(
        {
            a.path: {"video": {}, "audio": {"codec_name": "aac"}, "duration": 5.0},
            b.path: {"video": {}, "audio": None, "duration": 3.0},
            c.path: subprocess.CalledProcessError(1, ["ffprobe"]),
        }
    )
    segments = [Segment("hook", (a, b)), Segment("cta", (a, c))]
    cache = asyncio.run(AudioPresenceCache.build(segments, probe=probe))

    assert sorted(probe.calls) == sorted([a.path, b.path, c.path])
    assert len(cache) == 3
    assert cache.has_audio(a)
    assert not cache.has_audio(b)
    # An unprobeable clip counts as silent
    assert not cache.has_audio(c)
    assert a in cache
    assert _item("never-seen") not in cache
    assert not cache.has_audio(_item("never-seen"))


def test_duration_is_probed_lazily_and_memoized():
    a = _item("a")
    probe = FakeProbe({a.path: {"video": {}, "audio": None, "duration": 7.25}})
    cache = AudioPresenceCache(audio={a.path: False}, probe=probe)
    assert probe.calls == []

    async def twice():
        return await cache.duration(a), await cache.duration(a)

    assert asyncio.run(twice()) == (7.25, 7.25)
    assert probe.calls == [a.path]


def test_duration_unknown_or_non_positive_is_none():
    a, b, c = _item("a"), _item("b"), _item("c")
    probe = FakeProbe({a.path: FileNotFoundError("ffprobe"), b.path: {"duration": None}})
    cache = AudioPresenceCache(durations={c.path: 0.0}, probe=probe)
    assert asyncio.run(cache.duration(a)) is None
    assert asyncio.run(cache.duration(b)) is None
    assert asyncio.run(cache.duration(c)) is None
    assert c.path not in probe.calls
