"""Visual baseline data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import CamelModel
from .devices import Viewport


class BaselineEntry(CamelModel):
    """Sidecar metadata written next to each baseline raster."""
    url: str
    device_id: str
    browser: str
    viewport: Viewport
    image_path: str  # file name inside the URL-slug directory
    captured_at: str  # ISO timestamp
    image_hash: str  # SHA-256 hex digest
    title: Optional[str] = None


class BaselineCapture(CamelModel):
    url: str
    directory: str
    entries: list[BaselineEntry] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)  # "{deviceId}_{browser}" -> message
