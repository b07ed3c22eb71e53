"""
Adapter component models.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from blobfs.core.errors import BadRequestError


class AdapterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SaveMeta:
    """Per-call options for save(); id is allocated when omitted."""

    id: str | None = None


def parse_meta(value: Any) -> SaveMeta:
    if value is None:
        return SaveMeta()
    if isinstance(value, SaveMeta):
        return value
    if isinstance(value, Mapping):
        identifier = value.get("id")
        if identifier is not None and not isinstance(identifier, str):
            raise BadRequestError(
                f"meta.id must be a string, got {type(identifier).__name__}"
            )
        return SaveMeta(id=identifier or None)
    raise BadRequestError(f"meta must be a mapping, got {type(value).__name__}")
