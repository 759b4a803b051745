"""Device catalog data structures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

ColorScheme = Literal["light", "dark"]

BROWSER_ENGINES = ("chromium", "firefox", "webkit")


class Viewport(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)


class DeviceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    viewport: Viewport
    device_scale_factor: float = 1.0
    is_mobile: bool = False
    has_touch: bool = False
    user_agent: Optional[str] = None

    @property
    def is_touch(self) -> bool:
        """Touch-target rules apply to mobile and touch-capable devices."""
        return self.is_mobile or self.has_touch


class TestProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    devices: Union[Literal["all"], tuple[str, ...]]
    browsers: tuple[str, ...] = ("chromium",)


class CheckTuple(BaseModel):
    """One (device, browser engine, color scheme) combination."""

    model_config = ConfigDict(frozen=True)

    device: DeviceProfile
    browser: str
    color_scheme: ColorScheme = "light"

    @property
    def check_id(self) -> str:
        suffix = "_dark" if self.color_scheme == "dark" else ""
        return f"{self.device.id}_{self.browser}{suffix}"

    @property
    def device_label(self) -> str:
        if self.color_scheme == "dark":
            return f"{self.device.name} (Dark)"
        return self.device.name


class DeviceCatalog(BaseModel):
    """Devices grouped by category plus named test profiles.

    Category and device order is preserved from the source, which gives
    the "all" profile a stable ordering.
    """

    model_config = ConfigDict(frozen=True)

    device_profiles: dict[str, dict[str, DeviceProfile]]
    test_profiles: dict[str, TestProfile]

    @model_validator(mode="before")
    @classmethod
    def _fill_ids_from_keys(cls, data):
        # The JSON shape keys devices and profiles by id/name. The key always wins.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        categories = {}
        for category, devices in (data.get("device_profiles") or {}).items():
            categories[category] = {
                device_id: {**entry, "id": device_id} if isinstance(entry, dict) else entry
                for device_id, entry in devices.items()
            }
        data["device_profiles"] = categories
        data["test_profiles"] = {
            name: {**entry, "name": name} if isinstance(entry, dict) else entry
            for name, entry in (data.get("test_profiles") or {}).items()
        }
        return data

    @classmethod
    def load(cls, path: str | Path) -> "DeviceCatalog":
        """Load a catalog from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Device catalog not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)
