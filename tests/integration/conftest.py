"""Fixtures for integration tests using a fake adb executable."""

from dataclasses import dataclass
from pathlib import Path

import pytest

FAKE_ADB = """#!/bin/sh
echo "$*" >> "{calls}"
if [ "$1" = "-s" ]; then
    shift 2
fi
case "$1" in
    version)
        echo "Android Debug Bridge version 1.0.41"
        echo "Version 35.0.1-11580240"
        ;;
    install)
        if [ ! -f "$2" ]; then
            echo "adb: failed to stat $2: No such file or directory" >&2
            exit 1
        fi
        if [ -f "{install_fails}" ]; then
            echo "Failure [INSTALL_FAILED_UPDATE_INCOMPATIBLE]" >&2
            exit 1
        fi
        echo "Success"
        ;;
    uninstall)
        echo "Success"
        ;;
    pull)
        if [ ! -d "{device_results}" ]; then
            echo "adb: error: failed to stat remote object: No such file" >&2
            exit 1
        fi
        cp -R "{device_results}/." "$3"
        echo "pulled"
        ;;
    logcat)
        if [ "$2" = "-d" ]; then
            echo "I/TestRunner: run started: 2 tests"
            echo "I/TestRunner: run finished: 2 tests, 0 failed"
        fi
        ;;
    shell)
        if [ "$3" = "grant" ] && [ "$5" = "android.permission.DENIED" ]; then
            echo "Exception occurred while executing 'grant'" >&2
            exit 255
        fi
        if [ "$3" = "instrument" ] && [ -f "{instrument_hangs}" ]; then
            echo $$ > "{instrument_pid}"
            exec sleep 30
        fi
        if [ "$3" = "instrument" ]; then
            echo "INSTRUMENTATION_RESULT: shortMsg=Process crashed."
            echo "INSTRUMENTATION_CODE: -1"
        fi
        ;;
esac
"""


@dataclass(frozen=True, kw_only=True)
class FakeDevice:
    """Handles to the fake adb executable and its simulated device state."""

    adb_path: Path
    calls_path: Path
    results_dir: Path
    install_fails_flag: Path
    instrument_hangs_flag: Path
    instrument_pid_path: Path

    def calls(self) -> list[str]:
        """Return the adb command lines recorded so far."""
        if not self.calls_path.exists():
            return []
        return self.calls_path.read_text().splitlines()


@pytest.fixture
def fake_device(tmp_path: Path) -> FakeDevice:
    """Create a fake adb executable backed by a local directory."""
    device_dir = tmp_path / "device"
    device_dir.mkdir()
    device = FakeDevice(
        adb_path=device_dir / "adb",
        calls_path=device_dir / "calls.log",
        results_dir=device_dir / "helix-results",
        install_fails_flag=device_dir / "install-fails",
        instrument_hangs_flag=device_dir / "instrument-hangs",
        instrument_pid_path=device_dir / "instrument.pid",
    )
    device.adb_path.write_text(
        FAKE_ADB.format(
            calls=device.calls_path,
            device_results=device.results_dir,
            install_fails=device.install_fails_flag,
            instrument_hangs=device.instrument_hangs_flag,
            instrument_pid=device.instrument_pid_path,
        )
    )
    device.adb_path.chmod(0o755)
    return device


@pytest.fixture
def package_path(tmp_path: Path) -> Path:
    """Create a package file on disk."""
    path = tmp_path / "app.apk"
    path.write_bytes(b"PK\x03\x04")
    return path
