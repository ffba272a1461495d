# src/storage/models.py - v1
"""Storage domain models: ArtifactReference."""

from __future__ import annotations

from datetime import datetime
from pathlib import PureWindowsPath
from typing import Literal

from pydantic import BaseModel, ConfigDict


def normalize_path(name: str, node_os: Literal["linux", "windows"]) -> str:
    """Convert a blob name to the path convention of the target node."""
    if node_os == "windows":
        return name.replace("/", "\\")
    return name.replace("\\", "/")


class ArtifactReference(BaseModel):
    """Time-limited read reference to one stored object.

    Issued by the artifact lister and consumed by exactly one task (or by
    the pool start task for binaries).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    uri: str
    expires_at: datetime

    @property
    def output_base_name(self) -> str:
        """File name without extension, whichever separator the path uses."""
        # PureWindowsPath splits on both "/" and "\\"
        return PureWindowsPath(self.path).stem
