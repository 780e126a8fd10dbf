"""Caption burn-in and thumbnail extraction for finished renders."""

from .captions import CaptionBurner, WhisperTranscriber, write_srt
from .processor import PostProcessor, thumbnail_path_for
from .thumbnails import extract_thumbnail

__all__ = [
    "CaptionBurner",
    "PostProcessor",
    "WhisperTranscriber",
    "extract_thumbnail",
    "thumbnail_path_for",
    "write_srt",
]
