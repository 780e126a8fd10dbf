import re
from typing import Any, Dict

from ...exceptions import ConfigurationError
from ...utils.ffmpeg_params import X264_PRESETS

OVERLAY_POSITIONS = {"top", "center", "bottom"}

HEX_COLOR_RE = re.compile(r"^(#|0x)([0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def _is_valid_color_string(value: str) -> bool:
    if HEX_COLOR_RE.match(value):
        return True
    # ffmpeg color names, optionally with "@alpha"
    name, _, alpha = value.partition("@")
    if not name.isalpha():
        return False
    if alpha:
        try:
            return 0.0 <= float(alpha) <= 1.0
        except ValueError:
            return False
    return True


def _require_int(section: Dict[str, Any], key: str, where: str) -> int:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{where}.{key} must be an integer.", field=f"{where}.{key}")
    return value


def _require_number(section: Dict[str, Any], key: str, where: str) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{where}.{key} must be a number.", field=f"{where}.{key}")
    return float(value)


def _validate_output(output: Dict[str, Any]) -> None:
    for dim in ("width", "height"):
        value = _require_int(output, dim, "output")
        if value <= 0 or value % 2 != 0:
            raise ConfigurationError(
                f"output.{dim} must be a positive even integer (got {value}).",
                field=f"output.{dim}",
            )

    fps = _require_int(output, "fps", "output")
    if fps <= 0:
        raise ConfigurationError("output.fps must be positive.", field="output.fps")

    preset = output.get("preset")
    if preset not in X264_PRESETS:
        raise ConfigurationError(
            f"output.preset must be one of {list(X264_PRESETS)} (got {preset!r}).",
            field="output.preset",
        )

    crf = _require_int(output, "crf", "output")
    if not 0 <= crf <= 51:
        raise ConfigurationError("output.crf must be between 0 and 51.", field="output.crf")

    for key in ("sample_rate", "audio_bitrate_kbps"):
        if _require_int(output, key, "output") <= 0:
            raise ConfigurationError(f"output.{key} must be positive.", field=f"output.{key}")


def _validate_overlay(overlay: Dict[str, Any]) -> None:
    position = overlay.get("position")
    if position not in OVERLAY_POSITIONS:
        raise ConfigurationError(
            f"overlay.position must be one of {sorted(OVERLAY_POSITIONS)} (got {position!r}).",
            field="overlay.position",
        )
    if _require_int(overlay, "font_size", "overlay") <= 0:
        raise ConfigurationError("overlay.font_size must be positive.", field="overlay.font_size")
    if _require_int(overlay, "border_width", "overlay") < 0:
        raise ConfigurationError(
            "overlay.border_width must not be negative.", field="overlay.border_width"
        )
    color = overlay.get("font_color")
    if not isinstance(color, str) or not _is_valid_color_string(color):
        raise ConfigurationError(
            f"overlay.font_color must be a color name or hex value (got {color!r}).",
            field="overlay.font_color",
        )
    font_file = overlay.get("font_file")
    if font_file is not None and not isinstance(font_file, str):
        raise ConfigurationError("overlay.font_file must be a path string.", field="overlay.font_file")


def validate_config(config: Dict[str, Any]) -> None:
    """Validate a merged configuration.

    Raises
    ------
    ConfigurationError
        On the first invalid value found.
    """
    for section in ("output", "naming", "overlay", "music", "render", "postprocess"):
        if not isinstance(config.get(section), dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping.", field=section)

    _validate_output(config["output"])
    _validate_overlay(config["overlay"])

    template = config["naming"].get("template")
    if template is not None and (not isinstance(template, str) or not template.strip()):
        raise ConfigurationError("naming.template must be a non-empty string.", field="naming.template")

    volume = _require_number(config["music"], "volume", "music")
    if not 0.0 < volume <= 1.0:
        raise ConfigurationError("music.volume must be in (0, 1].", field="music.volume")

    if _require_int(config["render"], "concurrency", "render") < 1:
        raise ConfigurationError("render.concurrency must be at least 1.", field="render.concurrency")
    if _require_number(config["render"], "timeout_sec", "render") < 0:
        raise ConfigurationError("render.timeout_sec must not be negative.", field="render.timeout_sec")

    post = config["postprocess"]
    if _require_number(post, "thumbnail_at", "postprocess") < 0:
        raise ConfigurationError(
            "postprocess.thumbnail_at must not be negative.", field="postprocess.thumbnail_at"
        )
    if _require_int(post, "caption_font_size", "postprocess") <= 0:
        raise ConfigurationError(
            "postprocess.caption_font_size must be positive.", field="postprocess.caption_font_size"
        )
