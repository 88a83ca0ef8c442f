"""HTTP utilities for working with Aiven JSON responses."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from requests import Response


@dataclass(slots=True)
class UnexpectedResponseError(RuntimeError):
    """Raised when an Aiven response payload is not the expected JSON."""

    status_code: int
    url: str
    body_preview: str

    def __str__(self) -> str:  # noqa: D401 - simple representation
        return (
            f"Unexpected response while calling {self.url} (status {self.status_code}): "
            f"{self.body_preview}"
        )


def parse_json(response: Response) -> Any:
    """Return JSON content or raise UnexpectedResponseError with helpful context."""

    if not response.content:
        raise UnexpectedResponseError(
            status_code=response.status_code,
            url=response.request.url if response.request else "<unknown>",
            body_preview="<empty body>",
        )
    try:
        return response.json()
    except json.JSONDecodeError as exc:
        raise UnexpectedResponseError(
            status_code=response.status_code,
            url=response.request.url if response.request else "<unknown>",
            body_preview=body_preview(response),
        ) from exc


def body_preview(response: Response, limit: int = 500) -> str:
    """Single-line, truncated rendering of a response body for logs and errors."""
    preview = (response.text or "")[:limit].replace("\n", " ").strip()
    return preview or "<no text>"


def error_message(response: Response) -> str:
    """Extract Aiven's ``message`` field from an error body, falling back to raw text."""
    try:
        payload = response.json()
    except ValueError:
        return body_preview(response)
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return body_preview(response)
