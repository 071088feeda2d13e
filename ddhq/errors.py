# ddhq/errors.py
#
# Shared failure taxonomy for the ingest → normalize → relay pipeline.
#
#   ValidationError    → bad/missing relay parameter, untrusted host (4xx)
#   UpstreamError      → non-2xx from the fetched origin (status passed through)
#   TransportError     → DNS / connect / timeout (generic 5xx, no partial body)
#   ContentShapeError  → source JSON is not what we expected
#
# Nothing in here retries. Callers see the error once and decide.

from __future__ import annotations

from typing import Optional

__all__ = [
    "PipelineError",
    "ValidationError",
    "UpstreamError",
    "TransportError",
    "ContentShapeError",
]


class PipelineError(Exception):
    """Base class for every error raised by ddhq components."""


class ValidationError(PipelineError):
    """Client-supplied input was rejected. Always a 400."""

    status_code = 400


class UpstreamError(PipelineError):
    def __init__(self, status_code: int, body: str = "", url: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.url = url
        msg = f"upstream returned {status_code}"
        if body:
            msg += f": {body}"
        super().__init__(msg)


class TransportError(PipelineError):
    """Network-level failure talking to an origin (never retried)."""


class ContentShapeError(PipelineError):
    """Source payload could not be interpreted at all (e.g. not a JSON object)."""
