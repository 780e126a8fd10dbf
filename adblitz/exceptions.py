from typing import Optional

DIAGNOSTIC_LINES = 3
DIAGNOSTIC_MAX_CHARS = 300


def summarize_stderr(stderr: Optional[str]) -> str:
    """Keep the tail of an engine's stderr, which is where ffmpeg puts the cause."""
    if not stderr:
        return ""
    lines = [ln.strip() for ln in stderr.splitlines() if ln.strip()]
    tail = " ".join(lines[-DIAGNOSTIC_LINES:])
    if len(tail) > DIAGNOSTIC_MAX_CHARS:
        tail = tail[: DIAGNOSTIC_MAX_CHARS - 3] + "..."
    return tail


class ConfigurationError(Exception):
    """Invalid input or options detected before any job is scheduled."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self):
        if self.field:
            return f"Configuration Error: {self.message} (field: {self.field})"
        return f"Configuration Error: {self.message}"


class RenderError(Exception):
    """A single render job failed; siblings are unaffected."""

    def __init__(
        self,
        message: str,
        job_name: Optional[str] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.job_name = job_name
        self.stderr = stderr

    @property
    def diagnostic(self) -> str:
        tail = summarize_stderr(self.stderr)
        return tail or self.message

    def __str__(self):
        if self.job_name:
            return f"Render Error [{self.job_name}]: {self.message}"
        return f"Render Error: {self.message}"


class PostProcessError(Exception):
    """Caption or thumbnail step failed. Never fatal for the primary artifact."""

    def __init__(self, message: str, step: str):
        super().__init__(message)
        self.message = message
        self.step = step

    def __str__(self):
        return f"Post-process Error ({self.step}): {self.message}"


class DependencyError(Exception):
    """Required external tools are missing or too old."""


class PipelineError(Exception):
    """Internal invariant violated while running the batch."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"Pipeline Error: {self.message}"
