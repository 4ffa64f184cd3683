"""Models for run outcomes and bridge invocation results."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes reported by a test run."""

    SUCCESS = 0
    GENERAL_FAILURE = 1
    # 2 is what argparse exits with on usage errors
    PACKAGE_NOT_FOUND = 3
    PACKAGE_INSTALLATION_FAILURE = 4


@dataclass(frozen=True, kw_only=True)
class BridgeResult:
    """Result of a single bridge tool invocation."""

    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the invocation exited with status zero."""
        return self.returncode == 0
