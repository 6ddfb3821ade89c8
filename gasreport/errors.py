"""Error taxonomy for report generation and job handling.

Each error carries the HTTP status the synchronous endpoints answer with.
The background worker never lets these escape; it records the message
on the job instead.
"""

from typing import Optional


class ReportServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReportServiceError):
    """Missing or invalid request input."""
    status_code = 400


class JobNotFoundError(ReportServiceError):
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found.")
        self.job_id = job_id


class UpstreamThrottled(ReportServiceError):
    """Rate-limited by the external service. Handled by the retry wrapper."""
    status_code = 429


class UpstreamError(ReportServiceError):
    """Non-retriable or retry-exhausted failure calling the external service."""
    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_code = upstream_code


class MalformedResponseError(ReportServiceError):
    """External output could not be coerced into a JSON object."""
    status_code = 502

    SNIPPET_LENGTH = 200

    def __init__(self, message: str, raw_text: str = ""):
        self.snippet = (raw_text or "")[: self.SNIPPET_LENGTH]
        if self.snippet:
            message = f"{message} (response began: {self.snippet!r})"
        super().__init__(message)


class StoreError(ReportServiceError):
    """Durable job store unavailable or rejected the operation."""
    status_code = 500
