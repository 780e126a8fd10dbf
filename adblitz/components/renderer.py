"""Run one render job through ffmpeg, never leaving a partial artifact behind."""

import os
import subprocess
from pathlib import Path
from typing import Optional

from ..exceptions import RenderError
from ..models import RenderJob
from ..utils.ffmpeg_params import AudioParams, VideoParams
from ..utils.ffmpeg_runner import run_ffmpeg_async
from ..utils.logger import logger
from .graph_builder import FilterGraphBuilder


def partial_path_for(output_path: Path) -> Path:
    """Hidden sibling with the same extension, so ffmpeg still infers the muxer."""
    return output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


class JobRenderer:
    def __init__(
        self,
        builder: FilterGraphBuilder,
        video_params: VideoParams,
        audio_params: AudioParams,
        timeout: Optional[float] = None,
        ffmpeg_path: str = "ffmpeg",
    ):
        self.builder = builder
        self.video_params = video_params
        self.audio_params = audio_params
        self.timeout = timeout if timeout and timeout > 0 else None
        self.ffmpeg_path = ffmpeg_path

    async def render(self, job: RenderJob) -> Path:
        """Render ``job`` to ``job.output_path``.

        The engine writes to a hidden partial file that is moved into place
        only after a clean exit.

        Raises
        ------
        RenderError
            For any failure; the partial file has been removed by then.
        """
        request = await self.builder.build(job.combination)
        partial = partial_path_for(job.output_path)
        cmd = request.to_ffmpeg_args(
            str(partial), self.video_params, self.audio_params, self.ffmpeg_path
        )
        try:
            await run_ffmpeg_async(cmd, timeout=self.timeout)
            if not partial.exists() or partial.stat().st_size == 0:
                raise RenderError("ffmpeg exited cleanly but produced no output.", job_name=job.name)
            os.replace(partial, job.output_path)
        except subprocess.CalledProcessError as e:
            raise RenderError(
                f"ffmpeg exited with status {e.returncode}.", job_name=job.name, stderr=e.stderr
            ) from e
        except subprocess.TimeoutExpired as e:
            raise RenderError(
                f"ffmpeg timed out after {e.timeout:.0f}s.", job_name=job.name
            ) from e
        except OSError as e:
            raise RenderError(f"Could not run ffmpeg: {e}", job_name=job.name) from e
        finally:
            if partial.exists():
                remove_quietly(partial)
        return job.output_path
