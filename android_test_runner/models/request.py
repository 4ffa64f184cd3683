"""Model for a single instrumentation test invocation."""

from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from types import MappingProxyType

from pydantic import Field, field_validator

from android_test_runner.models.base import Model


class TestInvocationRequest(Model):
    """Everything needed to deploy a package and run its instrumentation.

    Built once from CLI input and immutable for the whole run.
    """

    __test__ = False

    package_path: Path = Field(..., description="Path to the package to install")
    instrumentation_name: str | None = Field(
        default=None,
        description="Instrumentation class to run (None means the default one)",
    )
    instrumentation_args: Mapping[str, str] = Field(
        default_factory=dict,
        description="Arguments passed to the instrumentation as key/value pairs",
    )
    output_directory: Path = Field(..., description="Where result files are copied")
    working_directory: Path = Field(
        default_factory=Path.cwd, description="Working directory for bridge commands"
    )
    timeout: timedelta = Field(
        default=timedelta(minutes=15), description="Timeout for the whole run"
    )

    @field_validator("instrumentation_args")
    @classmethod
    def _trim_arguments(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        trimmed: dict[str, str] = {}
        for key, arg in value.items():
            key = key.strip()
            if not key:
                raise ValueError("Instrumentation argument keys must not be empty")
            if key in trimmed:
                raise ValueError(f"Duplicate instrumentation argument '{key}'")
            trimmed[key] = arg.strip()
        return MappingProxyType(trimmed)

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("Timeout must be positive")
        return value

    @property
    def package_name(self) -> str:
        """Package name derived from the package file name."""
        return self.package_path.stem
