"""Device matrix: resolves a named test profile into concrete devices and browsers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from visual_qa.errors import (
    DuplicateDeviceError,
    ProfileNotFoundError,
    UnknownBrowserError,
    UnknownDeviceError,
)
from visual_qa.models.devices import (
    BROWSER_ENGINES,
    CheckTuple,
    ColorScheme,
    DeviceCatalog,
    DeviceProfile,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedProfile:
    name: str
    devices: tuple[DeviceProfile, ...]
    browsers: tuple[str, ...]

    def tuples(self, color_schemes: tuple[ColorScheme, ...] = ("light",)) -> list[CheckTuple]:
        """Expand into check tuples: color scheme, then browser, then device."""
        return [
            CheckTuple(device=device, browser=browser, color_scheme=scheme)
            for scheme in color_schemes
            for browser in self.browsers
            for device in self.devices
        ]


class DeviceMatrix:
    """Read-only view over a validated device catalog.

    The catalog is checked once, at construction: device ids must be unique
    across categories, and every device id and browser engine a profile names
    must exist. A bad catalog fails here rather than at resolution time.
    """

    def __init__(self, catalog: DeviceCatalog):
        self.catalog = catalog
        self._devices: dict[str, DeviceProfile] = {}
        seen_in: dict[str, list[str]] = {}

        for category, devices in catalog.device_profiles.items():
            for device_id, device in devices.items():
                seen_in.setdefault(device_id, []).append(category)
                self._devices.setdefault(device_id, device)

        for device_id, categories in seen_in.items():
            if len(categories) > 1:
                raise DuplicateDeviceError(device_id, categories)

        for name, profile in catalog.test_profiles.items():
            for engine in profile.browsers:
                if engine not in BROWSER_ENGINES:
                    raise UnknownBrowserError(engine, name, BROWSER_ENGINES)
            if profile.devices == "all":
                continue
            for device_id in profile.devices:
                if device_id not in self._devices:
                    raise UnknownDeviceError(device_id, profile=name)

        logger.debug("Device matrix ready: %d devices, %d profiles",
                     len(self._devices), len(catalog.test_profiles))

    @property
    def profile_names(self) -> list[str]:
        return list(self.catalog.test_profiles)

    def all_devices(self) -> list[DeviceProfile]:
        """Every device, in category-then-insertion order."""
        return [
            device
            for devices in self.catalog.device_profiles.values()
            for device in devices.values()
        ]

    def get_device(self, device_id: str) -> DeviceProfile:
        try:
            return self._devices[device_id]
        except KeyError:
            raise UnknownDeviceError(device_id) from None

    def resolve(self, profile_name: str) -> ResolvedProfile:
        """Return the devices and browsers a profile expands to."""
        profile = self.catalog.test_profiles.get(profile_name)
        if profile is None:
            raise ProfileNotFoundError(profile_name, self.profile_names)

        if profile.devices == "all":
            devices = tuple(self.all_devices())
        else:
            devices = tuple(self._devices[device_id] for device_id in profile.devices)

        return ResolvedProfile(name=profile_name, devices=devices, browsers=profile.browsers)
