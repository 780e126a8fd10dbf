"""Bounded worker pool for render jobs."""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from ..exceptions import RenderError
from ..models import JobResult, RenderJob
from ..utils.logger import logger

JobFunc = Callable[[RenderJob], Awaitable[JobResult]]
CompletionCallback = Callable[[JobResult], None]


class JobScheduler:
    """Runs jobs with at most ``concurrency`` in flight.

    Workers pull from a shared queue. A failing job is recorded as a failed
    JobResult and never stops its siblings. Results come back indexed by
    submission order; ``on_complete`` fires in completion order.
    """

    def __init__(
        self,
        concurrency: int,
        on_complete: Optional[CompletionCallback] = None,
        show_progress: bool = True,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.on_complete = on_complete
        self.show_progress = show_progress
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _run_one(self, job: RenderJob, job_func: JobFunc) -> JobResult:
        t0 = time.monotonic()
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            result = await job_func(job)
        except RenderError as e:
            logger.kv_error(
                f"Render failed for {job.name}: {e.diagnostic}",
                kv_pairs={"Event": "JobFailed", "Job": job.name},
            )
            result = JobResult(index=job.index, name=job.name, error=e.diagnostic)
        except Exception as e:
            # Anything else is still contained to this job
            logger.exception(f"Unexpected error while rendering {job.name}")
            result = JobResult(index=job.index, name=job.name, error=f"{type(e).__name__}: {e}")
        finally:
            self.in_flight -= 1
        result.elapsed = time.monotonic() - t0
        return result

    async def run(self, jobs: Sequence[RenderJob], job_func: JobFunc) -> List[JobResult]:
        results: List[Optional[JobResult]] = [None] * len(jobs)
        if not jobs:
            return []

        queue: "asyncio.Queue[Tuple[int, RenderJob]]" = asyncio.Queue()
        for position, job in enumerate(jobs):
            queue.put_nowait((position, job))

        pbar = tqdm(
            total=len(jobs),
            desc="Rendering",
            unit="video",
            disable=not self.show_progress,
        )

        async def worker(worker_id: int) -> None:
            while True:
                try:
                    position, job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                logger.debug(f"[Worker {worker_id}] picked {job.name}")
                result = await self._run_one(job, job_func)
                results[position] = result
                queue.task_done()
                pbar.set_postfix_str(job.name, refresh=False)
                pbar.update(1)
                if self.on_complete is not None:
                    self.on_complete(result)

        workers = [
            asyncio.create_task(worker(i))
            for i in range(min(self.concurrency, len(jobs)))
        ]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            # Stop issuing new work; in-flight ffmpeg processes are terminated by the runner
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        finally:
            pbar.close()

        return [r for r in results if r is not None]
