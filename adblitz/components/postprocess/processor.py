"""Optional steps run after a successful primary render."""

from pathlib import Path
from typing import Optional

from ...exceptions import PostProcessError
from ...models import JobResult, RenderJob
from ...utils.logger import logger
from ..renderer import remove_quietly
from .captions import CaptionBurner
from .thumbnails import extract_thumbnail


class PostProcessor:
    """Captions and thumbnails. Each step fails soft: it is logged and the
    primary artifact is kept as it is.
    """

    def __init__(
        self,
        caption_burner: Optional[CaptionBurner] = None,
        thumbnails: bool = False,
        thumbnail_at: float = 0.0,
        ffmpeg_path: str = "ffmpeg",
    ):
        self.caption_burner = caption_burner
        self.thumbnails = thumbnails
        self.thumbnail_at = thumbnail_at
        self.ffmpeg_path = ffmpeg_path

    @property
    def enabled(self) -> bool:
        return self.caption_burner is not None or self.thumbnails

    async def _captions(self, job: RenderJob, result: JobResult) -> None:
        try:
            result.captioned = await self.caption_burner.apply(job.output_path)
        except (PostProcessError, OSError) as e:
            logger.kv_warning(
                f"Captions skipped for {job.name}: {e}",
                kv_pairs={"Event": "CaptionsFailed", "Job": job.name},
            )

    async def _thumbnail(self, job: RenderJob, result: JobResult) -> None:
        try:
            result.thumbnail_path = await extract_thumbnail(
                job.output_path, job.thumbnail_path, self.thumbnail_at, self.ffmpeg_path
            )
        except (PostProcessError, OSError) as e:
            # A missing thumbnail is acceptable
            logger.debug(f"Thumbnail skipped for {job.name}: {e}")
            remove_quietly(job.thumbnail_path)

    async def process(self, job: RenderJob, result: JobResult) -> JobResult:
        if self.caption_burner is not None and job.captions:
            await self._captions(job, result)
        if self.thumbnails and job.thumbnail_path is not None:
            await self._thumbnail(job, result)
        return result


def thumbnail_path_for(thumb_dir: Path, output_name: str) -> Path:
    return thumb_dir / (Path(output_name).stem + ".jpg")
