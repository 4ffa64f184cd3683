"""adb bridge module."""

from android_test_runner.bridges.adb.bridge import AdbBridge
from android_test_runner.bridges.adb.config import AdbConfig

__all__ = ["AdbBridge", "AdbConfig"]
