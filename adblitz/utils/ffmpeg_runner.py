"""Async helper that runs ffmpeg/ffprobe with logging and timeouts."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import subprocess
import time
from typing import List, Optional

from .logger import logger

KILL_GRACE_SEC = 5.0


def _env_timeout() -> Optional[float]:
    try:
        value = float(os.getenv("ADBLITZ_FFMPEG_TIMEOUT_SEC", "0") or 0)
    except ValueError:
        return None
    return value if value > 0 else None


async def run_ffmpeg_async(
    args: List[str], *, timeout: Optional[float] = None, error_log_level: int | None = logging.ERROR
) -> subprocess.CompletedProcess:
    """
    Start ffmpeg/ffprobe without a shell and wait for it.

    :param timeout: seconds before the process is terminated. Falls back to
        ``ADBLITZ_FFMPEG_TIMEOUT_SEC`` for ffmpeg invocations.
    :param error_log_level: level used to report a non-zero exit.
        ``None`` silences the report.
    :raises subprocess.CalledProcessError: non-zero exit.
    :raises subprocess.TimeoutExpired: timeout hit; the process is killed.
    """
    exe = str(args[0]) if args else "ffmpeg"
    base = os.path.basename(exe)
    if timeout is None and base.startswith("ffmpeg"):
        timeout = _env_timeout()

    cmd_str = " ".join(map(str, args))
    if os.getenv("ADBLITZ_FFMPEG_LOG_CMD", "0") == "1":
        logger.info(f"Running command: {cmd_str}")
    else:
        logger.debug(f"Running command: {cmd_str}")

    t0 = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *map(str, args),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(f"{base} not found. Please ensure it's installed and in your PATH.")
        raise
    logger.debug(f"Spawned PID={process.pid} for {base}")

    try:
        if timeout is not None and timeout > 0:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        else:
            stdout, stderr = await process.communicate()
    except asyncio.TimeoutError:
        logger.error(
            f"Command timed out after {timeout:.1f}s (PID={process.pid}). Sending terminate..."
        )
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_SEC)
        except asyncio.TimeoutError:
            logger.error(f"Process did not terminate in {KILL_GRACE_SEC:.1f}s; killing PID={process.pid}...")
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        raise subprocess.TimeoutExpired(args, timeout)
    except asyncio.CancelledError:
        logger.warning(f"Task cancelled while running {base} (PID={process.pid}); terminating...")
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(process.wait(), timeout=3.0)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        raise

    stdout_str = stdout.decode(errors="ignore")
    stderr_str = stderr.decode(errors="ignore")

    rc = process.returncode if process.returncode is not None else 0
    dt = time.monotonic() - t0
    logger.debug(f"Command finished rc={rc} in {dt:.2f}s (PID={process.pid})")

    if rc != 0:
        if error_log_level is not None:
            logger.log(error_log_level, f"{base} failed rc={rc}. Command: {cmd_str}")
            if stderr_str:
                logger.log(error_log_level, f"stderr:\n{stderr_str}")
        else:
            logger.debug(f"stderr:\n{stderr_str}")
        raise subprocess.CalledProcessError(rc, args, output=stdout_str, stderr=stderr_str)

    return subprocess.CompletedProcess(args, rc, stdout_str, stderr_str)
