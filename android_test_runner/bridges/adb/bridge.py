"""Device bridge implementation driving the adb command line tool."""

import asyncio
import logging
import shlex
import shutil
import tempfile
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from android_test_runner.bridges.adb.config import AdbConfig
from android_test_runner.bridges.base import BridgeError, DeviceBridge
from android_test_runner.models.result import BridgeResult

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AdbBridge(DeviceBridge):
    """Device bridge running one adb process per operation."""

    config: AdbConfig
    working_directory: Path

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: AdbConfig, working_directory: Path
    ) -> AsyncGenerator["AdbBridge", None]:
        """Create bridge from configuration."""
        yield cls(config=config, working_directory=working_directory)

    async def kill_server(self) -> None:
        """Stop the adb server."""
        result = await self._adb("kill-server", device=False)
        if not result.ok:
            log.debug("adb kill-server exited with %d", result.returncode)

    async def start_server(self) -> None:
        """Start the adb server."""
        result = await self._adb("start-server", device=False)
        self._check(result, "Starting adb server")

    async def clear_log(self) -> None:
        """Clear the logcat buffer."""
        self._check(await self._adb("logcat", "-c"), "Clearing logcat")

    async def get_version(self) -> str:
        """Return the first line of `adb version`."""
        result = await self._adb("version", device=False)
        self._check(result, "Querying adb version")
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else ""

    async def uninstall(self, package_name: str) -> int:
        """Uninstall a package."""
        result = await self._adb("uninstall", package_name)
        return result.returncode

    async def install(self, package_path: Path) -> int:
        """Install a package file."""
        result = await self._adb("install", str(package_path))
        if not result.ok:
            log.error(
                "Installing %s failed: %s",
                package_path,
                (result.stderr or result.stdout).strip(),
            )
        return result.returncode

    async def kill_app(self, package_name: str) -> int:
        """Force stop a package."""
        result = await self._adb("shell", "am", "force-stop", package_name)
        return result.returncode

    async def grant_permissions(
        self, package_name: str, permissions: Sequence[str]
    ) -> None:
        """Grant each permission with `pm grant`."""
        for permission in permissions:
            result = await self._adb("shell", "pm", "grant", package_name, permission)
            if not result.ok:
                log.warning(
                    "Could not grant %s to %s: %s",
                    permission,
                    package_name,
                    (result.stderr or result.stdout).strip(),
                )

    async def run_instrumentation(
        self,
        package_name: str,
        instrumentation_name: str | None,
        arguments: Mapping[str, str],
    ) -> BridgeResult:
        """Run `am instrument` and wait for it to finish."""
        args = ["shell", "am", "instrument"]
        for key, value in arguments.items():
            args.extend(["-e", shlex.quote(key), shlex.quote(value)])
        component = (
            f"{package_name}/{instrumentation_name}"
            if instrumentation_name
            else package_name
        )
        args.extend(["-w", component])

        result = await self._adb(*args)
        log.info("Instrumentation %s exited with %d", component, result.returncode)
        if result.stdout:
            log.debug("Instrumentation output:\n%s", result.stdout.rstrip())
        return result

    async def pull_files(self, device_dir: str, local_dir: Path) -> Sequence[Path]:
        """Pull a device directory's contents into a local directory.

        Files are staged in a temporary directory first so that only the
        files actually copied from the device are reported.
        """
        local_dir.mkdir(parents=True, exist_ok=True)
        pulled: list[Path] = []

        with tempfile.TemporaryDirectory(prefix=".pull-", dir=local_dir) as staging:
            staging_root = Path(staging)
            result = await self._adb(
                "pull", f"{device_dir.rstrip('/')}/.", str(staging_root)
            )
            self._check(result, f"Pulling {device_dir}")

            for source in sorted(p for p in staging_root.rglob("*") if p.is_file()):
                destination = local_dir / source.relative_to(staging_root)
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(source, destination)
                pulled.append(destination)

        return pulled

    async def dump_log(self, local_path: Path) -> None:
        """Write `logcat -d` output to a file."""
        result = await self._adb("logcat", "-d")
        self._check(result, "Dumping logcat")
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_text(result.stdout, encoding="utf-8")

    async def _adb(self, *args: str, device: bool = True) -> BridgeResult:
        """Run adb with the given arguments and capture its output."""
        command = [self.config.adb_path]
        if device and self.config.device_serial:
            command.extend(["-s", self.config.device_serial])
        command.extend(args)

        log.debug("Running %s", shlex.join(command))
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=self.working_directory,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Timed out or cancelled: the child must not outlive the run
            process.kill()
            await process.wait()
            raise

        return BridgeResult(
            args=command,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    @staticmethod
    def _check(result: BridgeResult, action: str) -> None:
        if not result.ok:
            raise BridgeError(
                f"{action} failed ({result.returncode}): "
                f"{(result.stderr or result.stdout).strip()}"
            )
