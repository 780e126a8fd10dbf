"""Speech-to-text captions burned into a rendered artifact."""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, List, Optional, Tuple

import pysubs2

from ...exceptions import PostProcessError
from ...utils.ffmpeg_params import VideoParams
from ...utils.ffmpeg_runner import run_ffmpeg_async
from ...utils.logger import logger
from ..filter_graph import op
from ..renderer import remove_quietly

Cue = Tuple[float, float, str]

CAPTION_STYLE = (
    "FontName=Arial,Bold=1,PrimaryColour=&H00FFFFFF,OutlineColour=&H00000000,"
    "BorderStyle=1,Outline=2,Shadow=0,Alignment=2,MarginV=60"
)


class WhisperTranscriber:
    """faster-whisper wrapper; the model is loaded on first use and reused."""

    def __init__(self, model_size: str = "base", device: str = "auto", compute_type: str = "int8"):
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self._model: Any = None
        self._lock = asyncio.Lock()

    def _load(self) -> Any:
        if self._model is None:
            from faster_whisper import WhisperModel

            logger.info(f"Loading whisper model '{self.model_size}'...")
            self._model = WhisperModel(
                self.model_size, device=self.device, compute_type=self.compute_type
            )
        return self._model

    def _transcribe_sync(self, media_path: str) -> List[Cue]:
        model = self._load()
        segments, _info = model.transcribe(media_path, vad_filter=True)
        cues: List[Cue] = []
        for seg in segments:
            text = " ".join((seg.text or "").split())
            if text:
                cues.append((float(seg.start), float(seg.end), text))
        return cues

    async def transcribe(self, media_path: str) -> List[Cue]:
        # One transcription at a time; the model is large and not shared safely
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._transcribe_sync, media_path)


def write_srt(cues: List[Cue], srt_path: Path) -> int:
    subs = pysubs2.SSAFile()
    for start, end, text in cues:
        subs.append(
            pysubs2.SSAEvent(
                start=pysubs2.make_time(s=start),
                end=pysubs2.make_time(s=end),
                text=text,
            )
        )
    subs.save(str(srt_path), format_="srt")
    return len(subs)


def build_burn_command(
    video_path: Path,
    srt_path: Path,
    output_path: Path,
    font_size: int = 18,
    ffmpeg_path: str = "ffmpeg",
    video_params: Optional[VideoParams] = None,
) -> List[str]:
    style = f"{CAPTION_STYLE},FontSize={font_size}"
    vf = op("subtitles", filename=str(srt_path), force_style=style).render()
    cmd = [ffmpeg_path, "-y", "-hide_banner", "-nostdin", "-i", str(video_path), "-vf", vf]
    cmd.extend((video_params or VideoParams()).to_ffmpeg_opts())
    cmd.extend(["-c:a", "copy", "-movflags", "+faststart", str(output_path)])
    return cmd


class CaptionBurner:
    def __init__(
        self,
        transcriber: Optional[WhisperTranscriber] = None,
        font_size: int = 18,
        ffmpeg_path: str = "ffmpeg",
        video_params: Optional[VideoParams] = None,
        timeout: Optional[float] = None,
    ):
        self.transcriber = transcriber or WhisperTranscriber()
        self.font_size = font_size
        self.ffmpeg_path = ffmpeg_path
        self.video_params = video_params or VideoParams()
        self.timeout = timeout if timeout and timeout > 0 else None

    async def apply(self, video_path: Path) -> bool:
        """Caption ``video_path`` in place.

        Returns False when no speech was found (the video is untouched).
        The original is replaced only after the burn succeeds; temporary
        files are removed either way.

        Raises
        ------
        PostProcessError
        """
        work_dir = Path(tempfile.mkdtemp(prefix="adblitz_captions_"))
        burned = video_path.with_name(f".{video_path.stem}.captioned{video_path.suffix}")
        try:
            try:
                cues = await self.transcriber.transcribe(str(video_path))
            except ImportError as e:
                raise PostProcessError(
                    "faster-whisper is not installed (pip install 'adblitz[captions]').",
                    step="captions",
                ) from e
            except Exception as e:
                raise PostProcessError(f"Transcription failed: {e}", step="captions") from e
            if not cues:
                logger.info(f"No speech detected in {video_path.name}; skipping captions.")
                return False

            srt_path = work_dir / f"{video_path.stem}.srt"
            try:
                write_srt(cues, srt_path)
            except Exception as e:
                raise PostProcessError(f"Could not write subtitles: {e}", step="captions") from e
            cmd = build_burn_command(
                video_path,
                srt_path,
                burned,
                self.font_size,
                self.ffmpeg_path,
                self.video_params,
            )
            try:
                await run_ffmpeg_async(cmd, timeout=self.timeout)
                os.replace(burned, video_path)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                raise PostProcessError(f"Subtitle burn failed: {e}", step="captions") from e
            return True
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
            remove_quietly(burned)
