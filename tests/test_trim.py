from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from adblitz.components.trim import parse_trim_args, parse_trim_spec
from adblitz.exceptions import ConfigurationError
from adblitz.models import LastTrim, RangeTrim


def test_parse_range_and_last():
    assert parse_trim_spec("1.5:3") == RangeTrim(start=1.5, duration=3.0)
    assert parse_trim_spec("0:2") == RangeTrim(start=0.0, duration=2.0)
    assert parse_trim_spec("last:4") == LastTrim(seconds=4.0)
    assert parse_trim_spec("LAST:0.5") == LastTrim(seconds=0.5)


@pytest.mark.parametrize(
    "text",
    ["-1:3", "0:0", "2:-1", "last:0", "last:-2", "abc", "1:", ":2", "x:2", "1:nan", "last:inf"],
)
def test_invalid_specs(text):
    with pytest.raises(ConfigurationError):
        parse_trim_spec(text)


def test_parse_trim_args_keys_by_label():
    trims = parse_trim_args(["hook=0:3", "cta=last:2"], labels=["hook", "body", "cta"])
    assert trims == {"hook": RangeTrim(0.0, 3.0), "cta": LastTrim(2.0)}


def test_parse_trim_args_rejects_unknown_and_duplicate_labels():
    with pytest.raises(ConfigurationError):
        parse_trim_args(["outro=0:3"], labels=["hook"])
    with pytest.raises(ConfigurationError):
        parse_trim_args(["hook=0:3", "hook=last:1"], labels=["hook"])
    with pytest.raises(ConfigurationError):
        parse_trim_args(["0:3"])
