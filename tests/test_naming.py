from datetime import date
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.components.combos import ComboExpander
from adblitz.components.naming import NamingEngine, overlay_slug, sanitize_name
from adblitz.models import ComboPart, Combination, MediaItem, Segment


def _segment(label, *names):
    return Segment(label, tuple(MediaItem(n, f"/clips/{label}/{n}.mp4") for n in names))


def _combo(**picks):
    return Combination(
        parts=tuple(ComboPart(label, MediaItem(name, f"/{name}.mp4")) for label, name in picks.items())
    )


SEGMENTS = [_segment("hook", "a", "b"), _segment("cta", "x", "y")]


def test_default_names_follow_combination_order():
    combos = NamingEngine(["hook", "cta"]).assign(ComboExpander(SEGMENTS).expand())
    assert [c.name for c in combos] == ["a_x.mp4", "a_y.mp4", "b_x.mp4", "b_y.mp4"]


def test_overlay_slug_is_appended():
    combos = ComboExpander(SEGMENTS, overlays=["SALE", "NEW"]).expand()
    names = [c.name for c in NamingEngine(["hook", "cta"]).assign(combos)]
    assert names[:4] == ["a_x_SALE.mp4", "a_x_NEW.mp4", "a_y_SALE.mp4", "a_y_NEW.mp4"]
    assert len(set(names)) == 8


def test_index_and_date_placeholders():
    engine = NamingEngine(["hook", "cta"], template="{index}_{hook}_{date}", today=date(2024, 5, 1))
    combos = engine.assign(ComboExpander(SEGMENTS).expand())
    assert combos[2].name == "0003_b_2024-05-01.mp4"


def test_positional_placeholders_and_unknown_left_alone():
    engine = NamingEngine(["hook", "cta"], template="{1}-{0}-{nope}")
    assert engine.render(_combo(hook="a", cta="x"), 1) == "x-a-{nope}"


def test_item_names_are_not_expanded_again():
    engine = NamingEngine(["hook", "cta"], template="{hook}_{cta}")
    assert engine.render(_combo(hook="{cta}", cta="x"), 1) == "{cta}_x"


def test_collisions_get_stable_suffixes():
    engine = NamingEngine(["hook", "cta"], template="{hook}")
    combos = engine.assign(ComboExpander(SEGMENTS).expand())
    assert [c.name for c in combos] == ["a.mp4", "a_1.mp4", "b.mp4", "b_1.mp4"]


def test_dedupe_is_case_insensitive():
    combos = [_combo(hook="Clip"), _combo(hook="clip")]
    named = NamingEngine(["hook"]).assign(combos)
    assert [c.name for c in named] == ["Clip.mp4", "clip_1.mp4"]


def test_multiplied_music_adds_track_name():
    tracks = [MediaItem("beat", "/m/beat.mp3"), MediaItem("chill", "/m/chill.mp3")]
    combos = ComboExpander([_segment("hook", "a")], tracks=tracks, multiply_tracks=True).expand()
    assert [c.name for c in NamingEngine(["hook"]).assign(combos)] == ["a_beat.mp4", "a_chill.mp4"]


def test_round_robin_music_does_not_change_names():
    tracks = [MediaItem("beat", "/m/beat.mp3")]
    combos = ComboExpander([_segment("hook", "a")], tracks=tracks).expand()
    assert NamingEngine(["hook"]).assign(combos)[0].name == "a.mp4"


def test_overlay_slug():
    assert overlay_slug("50% OFF today!") == "50-OFF-today-"
    assert overlay_slug("!!SALE now!!") == "-SALE-now-"
    assert overlay_slug("!!!") == "-"
    assert overlay_slug("word " * 20) == ("word-" * 6)[:30]


def test_overlay_slug_keeps_edge_dashes_in_names():
    combo = Combination(
        parts=(ComboPart("hook", MediaItem("a", "/a.mp4")),), overlay_text="!!SALE now!!"
    )
    assert NamingEngine(["hook"]).assign([combo])[0].name == "a_-SALE-now-.mp4"


def test_sanitize_name():
    assert sanitize_name('a/b:c*"d') == "a_b_c_d"
    assert sanitize_name("..") == "unnamed"
