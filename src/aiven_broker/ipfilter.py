"""Parsing of the comma-separated IP allowlist applied to Aiven services."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_IP_WHITELIST_ENV = "IP_WHITELIST"


@dataclass(slots=True)
class MalformedAddressError(ValueError):
    """Raised when an allowlist segment is not a dotted quad."""

    segment: str

    def __str__(self) -> str:
        return f"malformed whitelist IP: {self.segment!r}"


def parse_ip_whitelist(raw: str) -> list[str]:
    """Split ``raw`` into a list of addresses.

    Only the shape is checked: each segment must split into exactly four
    dot-separated parts. Octet ranges and CIDR suffixes are not validated.
    An empty string means no restriction and yields an empty list.
    """
    if not raw or not raw.strip():
        return []
    addresses: list[str] = []
    for segment in raw.split(","):
        candidate = segment.strip()
        if len(candidate.split(".")) != 4:
            raise MalformedAddressError(candidate)
        addresses.append(candidate)
    return addresses


class EnvironmentIPFilterSource:
    """Reads the raw allowlist from the environment each time it is called."""

    def __init__(self, env_var: str = DEFAULT_IP_WHITELIST_ENV) -> None:
        self.env_var = env_var

    def __call__(self) -> str:
        raw = os.environ.get(self.env_var, "")
        logger.debug("Read IP allowlist from $%s (%d chars)", self.env_var, len(raw))
        return raw
