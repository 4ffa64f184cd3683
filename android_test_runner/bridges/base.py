"""Abstract base class for device bridge clients."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path

from android_test_runner.models.result import BridgeResult


class BridgeError(RuntimeError):
    """Raised when a bridge command fails where a result is required."""


class DeviceBridge(ABC):
    """Abstract client for the tool mediating all device interactions.

    Every call blocks until the underlying command completes. The bridge
    server is a side-effecting resource: callers reset it before use and
    kill it when they are done.
    """

    @abstractmethod
    async def kill_server(self) -> None:
        """Stop the bridge server if it is running."""

    @abstractmethod
    async def start_server(self) -> None:
        """Start a fresh bridge server."""

    @abstractmethod
    async def clear_log(self) -> None:
        """Clear the device-side log buffer."""

    @abstractmethod
    async def get_version(self) -> str:
        """Return a human readable version of the bridge tool."""

    @abstractmethod
    async def uninstall(self, package_name: str) -> int:
        """Uninstall a package, returning the bridge exit status."""

    @abstractmethod
    async def install(self, package_path: Path) -> int:
        """Install a package file, returning the bridge exit status."""

    @abstractmethod
    async def kill_app(self, package_name: str) -> int:
        """Stop any running instance of a package."""

    @abstractmethod
    async def grant_permissions(
        self, package_name: str, permissions: Sequence[str]
    ) -> None:
        """Grant runtime permissions to an installed package."""

    @abstractmethod
    async def run_instrumentation(
        self,
        package_name: str,
        instrumentation_name: str | None,
        arguments: Mapping[str, str],
    ) -> BridgeResult:
        """Run an instrumentation and wait for it to finish.

        Args:
            package_name: Installed package to instrument
            instrumentation_name: Instrumentation class, None for the default
            arguments: Key/value arguments passed to the instrumentation

        Returns:
            Result of the instrumentation command

        """

    @abstractmethod
    async def pull_files(self, device_dir: str, local_dir: Path) -> Sequence[Path]:
        """Copy all files from a device directory into a local directory.

        Returns:
            Local paths of the copied files

        """

    @abstractmethod
    async def dump_log(self, local_path: Path) -> None:
        """Write the full device log to a local file."""
