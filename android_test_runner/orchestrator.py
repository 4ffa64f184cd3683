"""Test orchestrator driving a device bridge through a single test run."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from android_test_runner.bridges.base import DeviceBridge
from android_test_runner.models.request import TestInvocationRequest
from android_test_runner.models.result import ExitCode

log = logging.getLogger(__name__)

DEVICE_RESULTS_DIR = "/sdcard/Documents/helix-results"
LOGCAT_FILENAME = "adb-logcat.log"
REQUIRED_PERMISSIONS = (
    "android.permission.READ_EXTERNAL_STORAGE",
    "android.permission.WRITE_EXTERNAL_STORAGE",
)


@contextmanager
def phase(name: str) -> Generator[None]:
    """Mark the start and end of a run phase in the log."""
    log.debug("Entering phase: %s", name)
    yield
    log.debug("Finished phase: %s", name)


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Deploys a package, runs its instrumentation and collects results."""

    __test__ = False

    bridge: DeviceBridge

    async def run(self, request: TestInvocationRequest) -> ExitCode:
        """Run the whole test lifecycle for a request.

        The bridge server is reset on entry and killed before returning on
        every path that touched it. No exception escapes this method: any
        unexpected error is logged and reported as a general failure.

        Args:
            request: The test invocation to run

        Returns:
            The exit code describing the outcome of the run

        """
        self._log_request(request)

        if not request.package_path.is_file():
            log.critical("Couldn't find %s!", request.package_path)
            return ExitCode.PACKAGE_NOT_FOUND

        try:
            return await self._run_phases(request)
        except Exception as error:
            log.critical("Failure to run test package: %s", error, exc_info=error)
            return ExitCode.GENERAL_FAILURE
        finally:
            await self._teardown()

    async def _run_phases(self, request: TestInvocationRequest) -> ExitCode:
        package_name = request.package_name

        with phase("Initialization and setup of APK on device"):
            await self.bridge.kill_server()
            await self.bridge.start_server()
            await self.bridge.clear_log()
            await self._log_bridge_version()

            # Install fails when the signature changed, remove any old copy first
            await self.bridge.uninstall(package_name)
            if (status := await self.bridge.install(request.package_path)) != 0:
                log.critical("Install failure (%d): test run cannot continue", status)
                return ExitCode.PACKAGE_INSTALLATION_FAILURE
            await self.bridge.kill_app(package_name)

            # The app reads and writes its results on external storage
            await self.bridge.grant_permissions(package_name, REQUIRED_PERMISSIONS)

        # No instrumentation name means the package's default instrumentation
        await self.bridge.run_instrumentation(
            package_name,
            request.instrumentation_name,
            request.instrumentation_args,
        )

        with phase("Post-test copy and cleanup"):
            pulled = await self.bridge.pull_files(
                DEVICE_RESULTS_DIR, request.output_directory
            )
            for path in pulled:
                log.debug("Detected output file: %s", path)
            await self.bridge.dump_log(request.output_directory / LOGCAT_FILENAME)
            await self.bridge.uninstall(package_name)

        return ExitCode.SUCCESS

    async def _log_bridge_version(self) -> None:
        try:
            version = await self.bridge.get_version()
        except Exception as error:
            log.warning("Could not query bridge version: %s", error)
            return
        log.debug("Working with %s", version)

    async def _teardown(self) -> None:
        try:
            await self.bridge.kill_server()
        except Exception as error:
            log.error("Failed to stop bridge server: %s", error, exc_info=error)

    @staticmethod
    def _log_request(request: TestInvocationRequest) -> None:
        log.debug(
            "Android test called: package=%s instrumentation=%s",
            request.package_path,
            request.instrumentation_name or "<default>",
        )
        log.debug(
            "Output directory=%s working directory=%s timeout=%.0f seconds",
            request.output_directory,
            request.working_directory,
            request.timeout.total_seconds(),
        )
        log.debug("Arguments to instrumentation:")
        for key, value in request.instrumentation_args.items():
            log.debug("  %s=%s", key, value)
