"""Topology and version-info records."""
from __future__ import annotations

import re
from typing import Any, ClassVar, Dict

from pydantic import Field

from streamline.domain.models.base import Storable

CURRENT_VERSION = "CURRENT"
VERSION_PREFIX = "V"

_VERSION_NAME = re.compile(rf"^{VERSION_PREFIX}(\d+)$")


def version_suffix(name: str | None) -> int:
    """Return ``n`` for a saved version name ``V<n>``, otherwise 0."""
    match = _VERSION_NAME.match(name or "")
    return int(match.group(1)) if match else 0


class TopologyVersionInfo(Storable):
    """Version info specific to a topology."""

    NAME_SPACE: ClassVar[str] = "topology_versioninfos"

    id: int | None = None
    topology_id: int | None = None
    name: str | None = None
    description: str | None = None
    timestamp: int | None = Field(default=None, description="Last modification, ms since epoch")

    @property
    def is_current(self) -> bool:
        return self.name == CURRENT_VERSION


class Topology(Storable):
    """A stream-processing job definition; one row per version."""

    NAME_SPACE: ClassVar[str] = "topologies"
    PRIMARY_KEY: ClassVar[tuple[str, ...]] = ("id", "version_id")

    id: int | None = None
    version_id: int | None = None
    name: str = Field(..., min_length=1, examples=["word-count"])
    description: str | None = None
    config: Dict[str, Any] = Field(default_factory=dict)
    version_timestamp: int | None = None
