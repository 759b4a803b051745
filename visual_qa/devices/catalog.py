"""Built-in device catalog, used when no devices file is configured."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from visual_qa.models.devices import DeviceCatalog

_IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
_ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Mobile Safari/537.36"
)
_IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
_DESKTOP_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

DEFAULT_CATALOG: dict = {
    "device_profiles": {
        "mobile": {
            "iphone_se": {
                "name": "iPhone SE",
                "viewport": {"width": 375, "height": 667},
                "device_scale_factor": 2,
                "is_mobile": True,
                "has_touch": True,
                "user_agent": _IPHONE_UA,
            },
            "iphone_14": {
                "name": "iPhone 14",
                "viewport": {"width": 390, "height": 844},
                "device_scale_factor": 3,
                "is_mobile": True,
                "has_touch": True,
                "user_agent": _IPHONE_UA,
            },
            "pixel_7": {
                "name": "Pixel 7",
                "viewport": {"width": 412, "height": 915},
                "device_scale_factor": 2.625,
                "is_mobile": True,
                "has_touch": True,
                "user_agent": _ANDROID_UA,
            },
        },
        "tablet": {
            "ipad_mini": {
                "name": "iPad Mini",
                "viewport": {"width": 768, "height": 1024},
                "device_scale_factor": 2,
                "is_mobile": True,
                "has_touch": True,
                "user_agent": _IPAD_UA,
            },
            "ipad_pro_11": {
                "name": "iPad Pro 11",
                "viewport": {"width": 834, "height": 1194},
                "device_scale_factor": 2,
                "is_mobile": True,
                "has_touch": True,
                "user_agent": _IPAD_UA,
            },
        },
        "desktop": {
            "laptop": {
                "name": "Laptop",
                "viewport": {"width": 1366, "height": 768},
                "user_agent": _DESKTOP_UA,
            },
            "desktop_hd": {
                "name": "Desktop HD",
                "viewport": {"width": 1920, "height": 1080},
                "user_agent": _DESKTOP_UA,
            },
        },
    },
    "test_profiles": {
        "quick": {
            "description": "One phone and one desktop, Chromium only",
            "devices": ["iphone_14", "laptop"],
            "browsers": ["chromium"],
        },
        "standard": {
            "description": "Common phone, tablet and desktop sizes",
            "devices": ["iphone_se", "iphone_14", "ipad_mini", "laptop", "desktop_hd"],
            "browsers": ["chromium"],
        },
        "mobile_first": {
            "description": "Phones and tablets across Chromium and WebKit",
            "devices": ["iphone_se", "iphone_14", "pixel_7", "ipad_mini"],
            "browsers": ["chromium", "webkit"],
        },
        "comprehensive": {
            "description": "Every device on every engine",
            "devices": "all",
            "browsers": ["chromium", "firefox", "webkit"],
        },
    },
}


def load_catalog(devices_file: Optional[str | Path] = None) -> DeviceCatalog:
    """Load the catalog from a JSON file, or fall back to the built-in one."""
    if devices_file:
        return DeviceCatalog.load(devices_file)
    return DeviceCatalog(**DEFAULT_CATALOG)
