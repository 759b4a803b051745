"""Baseline store: reference screenshots per URL for visual regression checks.

Layout on disk::

    <baselines_dir>/<url-slug>/<deviceId>_<browser>.png
    <baselines_dir>/<url-slug>/<deviceId>_<browser>.json   (BaselineEntry sidecar)
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path

from visual_qa.models.devices import Viewport
from visual_qa.models.visual_baseline import BaselineEntry
from visual_qa.url_utils import url_to_slug

logger = logging.getLogger(__name__)


class BaselineStore:
    """Reads and writes baseline rasters and their capture metadata."""

    def __init__(self, baselines_dir: str | Path):
        self.baselines_dir = Path(baselines_dir)

    def directory_for(self, url: str) -> Path:
        return self.baselines_dir / url_to_slug(url)

    def _key(self, device_id: str, browser: str) -> str:
        return f"{device_id}_{browser}"

    def image_path(self, url: str, device_id: str, browser: str) -> Path:
        return self.directory_for(url) / f"{self._key(device_id, browser)}.png"

    def _sidecar_path(self, url: str, device_id: str, browser: str) -> Path:
        return self.directory_for(url) / f"{self._key(device_id, browser)}.json"

    def has_baseline(self, url: str, device_id: str, browser: str) -> bool:
        return self.image_path(url, device_id, browser).exists()

    def store(
        self,
        url: str,
        device_id: str,
        browser: str,
        viewport: Viewport,
        image: bytes,
        title: str | None = None,
    ) -> BaselineEntry:
        """Write the raster and its sidecar, replacing any previous baseline."""
        dest = self.image_path(url, device_id, browser)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(image)

        entry = BaselineEntry(
            url=url,
            device_id=device_id,
            browser=browser,
            viewport=viewport,
            image_path=dest.name,
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            image_hash=hashlib.sha256(image).hexdigest(),
            title=title,
        )
        with open(self._sidecar_path(url, device_id, browser), "w") as f:
            json.dump(entry.to_json_dict(), f, indent=2)

        logger.info("Stored baseline %s for %s (%dx%d)",
                    dest.name, url, viewport.width, viewport.height)
        return entry

    def get(self, url: str, device_id: str, browser: str) -> BaselineEntry | None:
        """Return the sidecar metadata, or None when no usable baseline exists."""
        image = self.image_path(url, device_id, browser)
        if not image.exists():
            return None

        sidecar = self._sidecar_path(url, device_id, browser)
        if not sidecar.exists():
            logger.warning("Baseline %s has no metadata sidecar", image)
            return None
        try:
            with open(sidecar) as f:
                return BaselineEntry(**json.load(f))
        except Exception as e:
            logger.warning("Failed to load baseline metadata %s: %s", sidecar, e)
            return None

    def load_image(self, url: str, device_id: str, browser: str) -> bytes | None:
        image = self.image_path(url, device_id, browser)
        if not image.exists():
            return None
        return image.read_bytes()

    def list_entries(self, url: str) -> list[BaselineEntry]:
        directory = self.directory_for(url)
        if not directory.is_dir():
            return []
        entries = []
        for sidecar in sorted(directory.glob("*.json")):
            try:
                with open(sidecar) as f:
                    entries.append(BaselineEntry(**json.load(f)))
            except Exception as e:
                logger.warning("Skipping unreadable baseline metadata %s: %s", sidecar, e)
        return entries
