import asyncio
from pathlib import Path
import subprocess
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.components import renderer as renderer_module
from adblitz.components.postprocess import thumbnails as thumbnails_module
from adblitz.components.segments import SegmentStore
from adblitz.exceptions import ConfigurationError
from adblitz.pipeline import BatchPipeline, build_config, read_overlays, run_batch


def _clips(root, label, *names):
    folder = root / label
    folder.mkdir()
    for name in names:
        (folder / f"{name}.mp4").write_bytes(b"clip")
    return str(folder)


def _decls(tmp_path):
    return [("hook", _clips(tmp_path, "hooks", "a", "b")), ("cta", _clips(tmp_path, "ctas", "x", "y"))]


async def _probe_with_audio(path):
    return {"video": {"codec_name": "h264"}, "audio": {"codec_name": "aac"}, "duration": 5.0}


def _pipeline(tmp_path, overrides=None, **kwargs):
    config = build_config(overrides={"output": {"dir": str(tmp_path / "out")}, **(overrides or {})})
    segments = SegmentStore().load_segments(_decls(tmp_path))
    return BatchPipeline(config, segments, probe=_probe_with_audio, show_progress=False, **kwargs)


def test_plan_names_every_combination(tmp_path):
    combos = _pipeline(tmp_path, overlays=["SALE"]).plan()
    assert [c.name for c in combos] == ["a_x_SALE.mp4", "a_y_SALE.mp4", "b_x_SALE.mp4", "b_y_SALE.mp4"]


def test_dry_run_touches_nothing(tmp_path):
    report = asyncio.run(
        run_batch(
            _decls(tmp_path),
            overrides={"output": {"dir": str(tmp_path / "out")}},
            dry_run=True,
        )
    )
    assert report.total == 4
    assert report.results == []
    assert not (tmp_path / "out").exists()


def test_batch_isolates_failures(tmp_path, monkeypatch):
    async def fake_run(cmd, **kwargs):
        if any(arg.endswith("b.mp4") for arg in cmd):
            raise subprocess.CalledProcessError(1, cmd, stderr="b.mp4: moov atom not found")
        Path(cmd[-1]).write_bytes(b"video")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(renderer_module, "run_ffmpeg_async", fake_run)
    report = asyncio.run(_pipeline(tmp_path, {"render": {"concurrency": 2}}).run())

    out = tmp_path / "out"
    assert report.total == 4
    assert report.generated == 2
    assert report.failed == 2
    assert [name for name, _ in report.failures] == ["b_x.mp4", "b_y.mp4"]
    assert all("moov atom not found" in reason for _, reason in report.failures)
    assert sorted(p.name for p in out.iterdir()) == ["a_x.mp4", "a_y.mp4"]
    assert report.to_kv()["Event"] == "BatchSummary"


def test_batch_with_thumbnails(tmp_path, monkeypatch):
    async def fake_run(cmd, **kwargs):
        Path(cmd[-1]).write_bytes(b"data")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(renderer_module, "run_ffmpeg_async", fake_run)
    monkeypatch.setattr(thumbnails_module, "run_ffmpeg_async", fake_run)
    report = asyncio.run(_pipeline(tmp_path, {"postprocess": {"thumbnails": True}}).run())

    assert report.generated == 4
    assert report.thumbnails == 4
    thumbs = tmp_path / "out" / "thumbnails"
    assert sorted(p.name for p in thumbs.iterdir()) == ["a_x.jpg", "a_y.jpg", "b_x.jpg", "b_y.jpg"]


def test_conflicting_options(tmp_path):
    with pytest.raises(ConfigurationError):
        asyncio.run(run_batch([], dry_run=True))
    with pytest.raises(ConfigurationError, match="--music-all"):
        asyncio.run(run_batch(_decls(tmp_path), overrides={"music": {"multiply": True}}, dry_run=True))
    with pytest.raises(ConfigurationError):
        asyncio.run(run_batch([("hook", str(tmp_path / "hooks"))], trim_args=["cta=0:2"], dry_run=True))


def test_read_overlays(tmp_path):
    overlays_file = tmp_path / "overlays.txt"
    overlays_file.write_text("50% OFF\n\n  Limited time  \n", encoding="utf-8")
    assert read_overlays(["NEW", " "], str(overlays_file)) == ["NEW", "50% OFF", "Limited time"]
    with pytest.raises(ConfigurationError):
        read_overlays([], str(tmp_path / "missing.txt"))
