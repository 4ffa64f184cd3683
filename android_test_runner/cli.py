"""CLI entry point for the Android instrumentation test runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path

from android_test_runner.bridges.adb import AdbBridge, AdbConfig
from android_test_runner.models.request import TestInvocationRequest
from android_test_runner.models.result import ExitCode
from android_test_runner.orchestrator import TestOrchestrator

OUTCOME_MESSAGES = {
    ExitCode.SUCCESS: "✅ Test run completed",
    ExitCode.PACKAGE_NOT_FOUND: "❗ Package not found",
    ExitCode.PACKAGE_INSTALLATION_FAILURE: "❌ Package installation failed",
    ExitCode.GENERAL_FAILURE: "❌ Test run failed",
}

VERBOSITY_LEVELS = ("debug", "info", "warning", "error", "critical")


def parse_instrumentation_arg(value: str) -> tuple[str, str]:
    """Parse a single `key=value` instrumentation argument."""
    parts = value.split("=")
    if len(parts) != 2 or not parts[0].strip():
        raise argparse.ArgumentTypeError(
            f"invalid instrumentation argument '{value}', expected key=value"
        )
    return parts[0].strip(), parts[1].strip()


def parse_timeout(value: str) -> timedelta:
    """Parse a timeout given in seconds."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout '{value}'") from None
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return timedelta(seconds=seconds)


def collect_instrumentation_args(
    pairs: Sequence[tuple[str, str]],
) -> dict[str, str]:
    """Merge parsed `--arg` pairs, rejecting duplicate keys."""
    arguments: dict[str, str] = {}
    for key, value in pairs:
        if key in arguments:
            raise ValueError(f"instrumentation argument '{key}' given more than once")
        arguments[key] = value
    return arguments


def log_outcome(log: logging.Logger, exit_code: ExitCode) -> None:
    """Log a one line summary of the run outcome."""
    log.info("%s (exit code %d)", OUTCOME_MESSAGES[exit_code], exit_code)


async def run(
    adb_config_json: str,
    request: TestInvocationRequest,
) -> ExitCode:
    """Run the instrumentation tests described by the request.

    The request timeout is enforced here for the whole run; the orchestrator
    still tears the bridge down when it expires.
    """
    log = logging.getLogger("android_test_runner")

    config_dict = json.loads(adb_config_json)
    config = AdbConfig(**config_dict)
    log.info("Using adb at %s", config.adb_path)

    log.info("Running %s on device...", request.package_path.name)
    async with AdbBridge.from_config(config, request.working_directory) as bridge:
        orchestrator = TestOrchestrator(bridge=bridge)
        try:
            async with asyncio.timeout(request.timeout.total_seconds()):
                exit_code = await orchestrator.run(request)
        except TimeoutError:
            log.critical(
                "Test run did not complete within %.0f seconds",
                request.timeout.total_seconds(),
            )
            exit_code = ExitCode.GENERAL_FAILURE

    log_outcome(log, exit_code)
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its `test` subcommand."""
    parser = argparse.ArgumentParser(
        prog="android-test-runner",
        description="Run instrumentation tests on an attached Android device",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser(
        "test",
        help="Install a package and run its instrumentation",
        description=(
            "Executes tests on an Android device, waits up to a given timeout, "
            "then copies files off the device."
        ),
    )
    test.add_argument("package", type=Path, help="Path to the package (.apk) to test")
    test.add_argument(
        "--arg",
        dest="instrumentation_args",
        type=parse_instrumentation_arg,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Argument to pass to the instrumentation, in form key=value",
    )
    test.add_argument(
        "--instrumentation",
        "-i",
        help=(
            "Run the instrumentation with this name instead of the default "
            "for the supplied package"
        ),
    )
    test.add_argument(
        "--output-directory",
        "-o",
        type=Path,
        required=True,
        help="Directory where result files and the device log are copied",
    )
    test.add_argument(
        "--working-directory",
        "-w",
        type=Path,
        default=Path.cwd(),
        help="Directory bridge commands run in (default: current directory)",
    )
    test.add_argument(
        "--timeout",
        "-t",
        type=parse_timeout,
        default=timedelta(minutes=15),
        help="Timeout for the whole run in seconds (default: 900)",
    )
    test.add_argument(
        "--verbosity",
        "-v",
        choices=VERBOSITY_LEVELS,
        default="info",
        help="Logging verbosity (default: info)",
    )
    test.add_argument(
        "--adb-config",
        default="{}",
        help="JSON configuration for adb (adb_path, device_serial)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        request = TestInvocationRequest(
            package_path=args.package,
            instrumentation_name=args.instrumentation,
            instrumentation_args=collect_instrumentation_args(
                args.instrumentation_args
            ),
            output_directory=args.output_directory,
            working_directory=args.working_directory,
            timeout=args.timeout,
        )
    except ValueError as error:
        parser.error(str(error))

    logging.basicConfig(
        level=args.verbosity.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            adb_config_json=args.adb_config,
            request=request,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
