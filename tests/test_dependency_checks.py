import asyncio
from pathlib import Path
import subprocess
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.exceptions import DependencyError
from adblitz.utils import dependency_checks
from adblitz.utils.dependency_checks import VersionRequirement, ensure_ffmpeg_dependencies
from adblitz.utils.logger import get_logger


def test_version_parse():
    assert VersionRequirement.parse("n7.0.2-static") == VersionRequirement(7, 0, 2)
    assert VersionRequirement.parse("4.4") == VersionRequirement(4, 4, 0)
    assert VersionRequirement.parse("6.1.1-3ubuntu5").satisfies(VersionRequirement.parse("4.4"))
    assert not VersionRequirement.parse("4.3.2").satisfies(VersionRequirement.parse("4.4"))


def _fake_versions(monkeypatch, stdout_by_tool):
    async def fake_run(cmd, **kwargs):
        out = stdout_by_tool.get(cmd[0])
        if out is None:
            raise FileNotFoundError(cmd[0])
        return subprocess.CompletedProcess(cmd, 0, out, "")

    monkeypatch.setattr(dependency_checks, "run_ffmpeg_async", fake_run)


def test_recent_ffmpeg_passes(monkeypatch):
    _fake_versions(
        monkeypatch,
        {
            "ffmpeg": "ffmpeg version 6.1.1 Copyright (c) 2000-2023",
            "ffprobe": "ffprobe version 6.1.1 Copyright (c) 2007-2023",
        },
    )
    assert asyncio.run(ensure_ffmpeg_dependencies(get_logger())) == ("6.1.1", "6.1.1")


def test_old_ffmpeg_fails(monkeypatch):
    _fake_versions(
        monkeypatch,
        {"ffmpeg": "ffmpeg version 4.2.7", "ffprobe": "ffprobe version 4.2.7"},
    )
    with pytest.raises(DependencyError):
        asyncio.run(ensure_ffmpeg_dependencies(get_logger()))


def test_missing_ffprobe_fails(monkeypatch):
    _fake_versions(monkeypatch, {"ffmpeg": "ffmpeg version 7.0"})
    with pytest.raises(DependencyError, match="ffprobe"):
        asyncio.run(ensure_ffmpeg_dependencies(get_logger()))
