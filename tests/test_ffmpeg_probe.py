import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.utils.ffmpeg_probe import parse_probe_output


def test_parse_video_with_audio():
    raw = json.dumps(
        {
            "streams": [
                {"codec_type": "video", "codec_name": "h264", "width": 1080, "height": 1920},
                {"codec_type": "audio", "codec_name": "aac", "sample_rate": "48000", "channels": 2},
            ],
            "format": {"duration": "12.480000"},
        }
    )
    info = parse_probe_output(raw)
    assert info["video"] == {"codec_name": "h264", "width": 1080, "height": 1920}
    assert info["audio"]["sample_rate"] == 48000
    assert info["duration"] == 12.48


def test_parse_silent_clip_without_duration():
    raw = json.dumps(
        {"streams": [{"codec_type": "video", "codec_name": "vp9"}], "format": {"duration": "N/A"}}
    )
    info = parse_probe_output(raw)
    assert info["audio"] is None
    assert info["duration"] is None


def test_parse_empty_output():
    assert parse_probe_output("") == {"video": None, "audio": None, "duration": None}
