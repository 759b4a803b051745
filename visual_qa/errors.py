"""Exception hierarchy for the visual QA agent.

Configuration errors abort a call before any page is opened. Everything
else is contained at the unit of work it affects (a tuple, a check, a
comparison) and surfaced as data in the aggregate result.
"""

from __future__ import annotations


class VisualQAError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(VisualQAError):
    """Invalid device catalog, profile or input, raised before work begins."""


class ProfileNotFoundError(ConfigurationError):
    def __init__(self, profile: str, available: list[str] | None = None):
        self.profile = profile
        self.available = available or []
        hint = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"Profile '{profile}' not found{hint}")


class UnknownDeviceError(ConfigurationError):
    def __init__(self, device_id: str, profile: str | None = None):
        self.device_id = device_id
        self.profile = profile
        where = f" referenced by profile '{profile}'" if profile else ""
        super().__init__(f"Unknown device id '{device_id}'{where}")


class UnknownBrowserError(ConfigurationError):
    def __init__(self, engine: str, profile: str, supported: tuple[str, ...]):
        self.engine = engine
        self.profile = profile
        super().__init__(
            f"Unknown browser engine '{engine}' referenced by profile '{profile}' "
            f"(expected one of {', '.join(supported)})"
        )


class DuplicateDeviceError(ConfigurationError):
    def __init__(self, device_id: str, categories: list[str]):
        self.device_id = device_id
        self.categories = categories
        super().__init__(
            f"Device id '{device_id}' is defined in more than one category: "
            f"{', '.join(categories)}"
        )


class InvalidURLError(ConfigurationError):
    """URL is empty or not http(s)."""


class NavigationError(VisualQAError):
    """Page could not be loaded: timeout, network failure or bad status."""


class DetectionError(VisualQAError):
    """A single DOM check failed to evaluate."""


class SessionClosedError(DetectionError):
    """A DOM call was made on a session that has already been disposed."""


class ImageDecodeError(VisualQAError):
    """A raster could not be read or decoded."""


class ClassifierError(VisualQAError):
    """The AI classifier failed. ``kind`` tells callers whether it is retryable."""

    RETRYABLE_KINDS = ("timeout", "rate_limit")

    def __init__(self, message: str, kind: str = "api_error"):
        self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in self.RETRYABLE_KINDS
