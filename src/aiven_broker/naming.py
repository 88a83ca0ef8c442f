"""Deterministic mapping from broker instance ids to Aiven service names."""
from __future__ import annotations

import zlib


def build_service_name(prefix: str, instance_id: str) -> str:
    """Derive the Aiven service name for an instance.

    The CRC-32 (IEEE) checksum of the instance id is rendered as lowercase hex
    and appended to ``prefix``. Every lifecycle operation must go through this
    function so that create and delete always address the same service.
    """
    if not instance_id:
        raise ValueError("instance_id must not be empty")
    checksum = zlib.crc32(instance_id.encode("utf-8"))
    return f"{prefix}{checksum:x}"
