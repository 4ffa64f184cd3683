"""Configuration for the adb bridge."""

import os
from pathlib import Path

from pydantic import BaseModel, Field


def default_adb_path() -> str:
    """Locate adb in the Android SDK, falling back to the one on PATH."""
    if sdk_root := os.environ.get("ANDROID_SDK_ROOT"):
        return str(Path(sdk_root) / "platform-tools" / "adb")
    return "adb"


class AdbConfig(BaseModel):
    """Configuration for the adb bridge."""

    adb_path: str = Field(default_factory=default_adb_path)
    # Targets a single device when more than one is attached
    device_serial: str | None = Field(
        default_factory=lambda: os.environ.get("ANDROID_SERIAL") or None
    )
