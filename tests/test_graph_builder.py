import asyncio
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.cache import AudioPresenceCache
from adblitz.components.graph_builder import OVERLAY_Y, FilterGraphBuilder, OverlayStyle
from adblitz.exceptions import RenderError
from adblitz.models import ComboPart, Combination, LastTrim, MediaItem, RangeTrim
from adblitz.utils.ffmpeg_params import AudioParams, VideoParams

HOOK = MediaItem("hook1", "/clips/hook1.mp4")
CTA = MediaItem("cta1", "/clips/cta1.mp4")
SONG = MediaItem("song", "/music/song.mp3")


async def _no_probe(path):
    raise FileNotFoundError(path)


def _builder(audio, durations=None, trims=None, **kwargs):
    cache = AudioPresenceCache(audio=audio, durations=durations or {}, probe=_no_probe)
    return FilterGraphBuilder(VideoParams(), AudioParams(), cache, trims=trims, **kwargs)


def _combo(**kwargs):
    return Combination(parts=(ComboPart("hook", HOOK), ComboPart("cta", CTA)), name="t.mp4", **kwargs)


def test_all_silent_without_music_is_video_only():
    builder = _builder({HOOK.path: False, CTA.path: False})
    request = asyncio.run(builder.build(_combo()))
    assert request.audio_label is None
    assert not request.graph.has_filter("anullsrc")
    assert request.graph.filters_named("concat")[0].option("a") == 0
    args = request.to_ffmpeg_args("out.mp4", VideoParams(), AudioParams())
    assert "-an" in args


def test_silent_clip_gets_generated_audio_when_any_clip_has_audio():
    builder = _builder({HOOK.path: True, CTA.path: False}, durations={CTA.path: 4.5})
    request = asyncio.run(builder.build(_combo()))
    graph = request.graph
    assert request.audio_label == "acat"
    silence = graph.filters_named("anullsrc")
    assert len(silence) == 1
    assert silence[0].option("d") == 4.5
    assert graph.producer_of("a1").inputs == ()
    assert graph.producer_of("a0").inputs == ("0:a",)
    concat = graph.filters_named("concat")[0]
    assert (concat.option("n"), concat.option("v"), concat.option("a")) == (2, 1, 1)
    assert graph.producer_of("vcat").inputs == ("v0", "a0", "v1", "a1")


def test_every_segment_is_normalised_to_the_target_frame():
    builder = _builder({HOOK.path: True, CTA.path: True})
    graph = asyncio.run(builder.build(_combo())).graph
    assert "[0:v]scale=w=1080:h=1920:force_original_aspect_ratio=decrease," in graph.render()
    assert len(graph.filters_named("pad")) == 2
    assert all(f.option(None) == 1 for f in graph.filters_named("setsar"))
    assert len(graph.filters_named("fps")) == 2


def test_range_trim_applies_to_video_and_audio():
    builder = _builder({HOOK.path: True, CTA.path: True}, trims={"hook": RangeTrim(1.0, 3.0)})
    graph = asyncio.run(builder.build(_combo())).graph
    trim = graph.filters_named("trim")
    atrim = graph.filters_named("atrim")
    assert len(trim) == len(atrim) == 1
    assert (trim[0].option("start"), trim[0].option("duration")) == (1.0, 3.0)
    assert (atrim[0].option("start"), atrim[0].option("duration")) == (1.0, 3.0)
    assert graph.has_filter("setpts") and graph.has_filter("asetpts")


def test_silence_matches_trimmed_window():
    builder = _builder(
        {HOOK.path: True, CTA.path: False},
        durations={CTA.path: 20.0},
        trims={"cta": RangeTrim(0.0, 2.5)},
    )
    graph = asyncio.run(builder.build(_combo())).graph
    assert graph.filters_named("anullsrc")[0].option("d") == 2.5


@pytest.mark.parametrize(
    "trim, expected",
    [(RangeTrim(2.0, 5.0), 1.0), (RangeTrim(4.0, 2.0), 0.0)],
)
def test_silence_stops_at_the_end_of_a_short_clip(trim, expected):
    builder = _builder(
        {HOOK.path: True, CTA.path: False},
        durations={CTA.path: 3.0},
        trims={"cta": trim},
    )
    graph = asyncio.run(builder.build(_combo())).graph
    assert graph.filters_named("anullsrc")[0].option("d") == expected
    # the video trim keeps the requested window; ffmpeg ends it at the clip end
    assert graph.filters_named("trim")[0].option("duration") == trim.duration


def test_silence_uses_window_when_duration_is_unknown():
    builder = _builder({HOOK.path: True, CTA.path: False}, trims={"cta": RangeTrim(1.0, 2.0)})
    graph = asyncio.run(builder.build(_combo())).graph
    assert graph.filters_named("anullsrc")[0].option("d") == 2.0


def test_last_trim_uses_probed_duration():
    builder = _builder({HOOK.path: True, CTA.path: True}, durations={CTA.path: 10.0},
                       trims={"cta": LastTrim(3.0)})
    graph = asyncio.run(builder.build(_combo())).graph
    trim = graph.filters_named("trim")[0]
    assert (trim.option("start"), trim.option("duration")) == (7.0, 3.0)


def test_last_trim_longer_than_clip_keeps_full_clip():
    builder = _builder({HOOK.path: True, CTA.path: True}, durations={CTA.path: 2.0},
                       trims={"cta": LastTrim(3.0)})
    graph = asyncio.run(builder.build(_combo())).graph
    assert not graph.has_filter("trim")


def test_last_trim_with_unknown_duration_keeps_full_clip():
    builder = _builder({HOOK.path: True, CTA.path: True}, trims={"cta": LastTrim(3.0)})
    graph = asyncio.run(builder.build(_combo())).graph
    assert not graph.has_filter("trim")


def test_silent_clip_with_unknown_duration_fails_the_job():
    builder = _builder({HOOK.path: True, CTA.path: False})
    with pytest.raises(RenderError) as excinfo:
        asyncio.run(builder.build(_combo()))
    assert excinfo.value.job_name == "t.mp4"


def test_music_is_mixed_against_programme_audio():
    builder = _builder({HOOK.path: True, CTA.path: True}, music_volume=0.2)
    request = asyncio.run(builder.build(_combo(music_track=SONG)))
    graph = request.graph
    assert request.inputs == [HOOK.path, CTA.path, SONG.path]
    assert request.audio_label == "amixed"
    assert graph.producer_of("music").inputs == ("2:a",)
    assert graph.filters_named("volume")[0].option(None) == 0.2
    amix = graph.filters_named("amix")[0]
    assert amix.option("duration") == "first"
    assert amix.option("inputs") == 2
    assert amix.option("normalize") == 0
    assert graph.producer_of("amixed").inputs == ("acat", "music")


def test_music_over_silent_clips_still_produces_audio():
    builder = _builder({HOOK.path: False, CTA.path: False}, durations={HOOK.path: 3.0, CTA.path: 2.0})
    request = asyncio.run(builder.build(_combo(music_track=SONG)))
    assert request.audio_label == "amixed"
    assert [f.option("d") for f in request.graph.filters_named("anullsrc")] == [3.0, 2.0]


@pytest.mark.parametrize("position", ["top", "center", "bottom"])
def test_overlay_position(position):
    builder = _builder({HOOK.path: True, CTA.path: True}, overlay_style=OverlayStyle(position=position))
    request = asyncio.run(builder.build(_combo(overlay_text="50% OFF: today")))
    drawtext = request.graph.filters_named("drawtext")[0]
    assert drawtext.option("y") == OVERLAY_Y[position]
    assert drawtext.option("expansion") == "none"
    assert drawtext.option("text") == "50% OFF: today"
    assert request.video_label == "vtxt"
    assert r"text=50% OFF\\: today" in request.graph.render()


def test_overlay_style_from_config():
    style = OverlayStyle.from_config({"position": "top", "font_size": 48, "font_color": "yellow"})
    assert (style.position, style.font_size, style.font_color) == ("top", 48, "yellow")
    assert style.font_file is None
