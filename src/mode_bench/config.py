"""Configuration data models for benchmark runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Generic, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from mode_bench.errors import ConfigError

T = TypeVar("T")

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
PositiveInt = Annotated[int, Field(strict=True, gt=0)]


class BenchmarkMode(str, Enum):
    BASELINE = "baseline"    # compared against
    CANDIDATE = "candidate"  # must beat the baseline


class TaskCategory(str, Enum):
    BUGFIX = "bugfix"
    FEATURE = "feature"
    REFACTOR = "refactor"
    MIGRATION = "migration"
    REVIEW = "review"
    DEBUG = "debug"


class VerifyType(str, Enum):
    TESTS = "tests"
    COMMAND = "command"
    FILE_ASSERT = "file_assert"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorClass(str, Enum):
    TIMEOUT = "timeout"
    CLI_ERROR = "cli_error"
    VERIFY_FAIL = "verify_fail"
    INFRA_ERROR = "infra_error"


@dataclass
class Validated(Generic[T]):
    """Outcome of validating raw file data: every error found, or the parsed value."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    value: T | None = None


class RunConfig(BaseModel):
    """Configuration for a single benchmark invocation."""
    model_config = ConfigDict(frozen=True)

    seed: NonEmptyStr
    max_parallel: PositiveInt
    modes: list[BenchmarkMode] = Field(min_length=1)
    task_glob: NonEmptyStr
    output_dir: NonEmptyStr
    fail_fast: Annotated[bool, Field(strict=True)]
    toolchain_binary: NonEmptyStr = "codex"

    @field_validator("modes")
    @classmethod
    def _dedupe_modes(cls, modes: list[BenchmarkMode]) -> list[BenchmarkMode]:
        return list(dict.fromkeys(modes))


class Thresholds(BaseModel):
    """Gates a scorecard must clear for the candidate mode to count as an improvement."""
    success_rate_delta_min: float = Field(strict=True, allow_inf_nan=False)
    median_time_delta_pct_max: float = Field(strict=True, allow_inf_nan=False)  # negative = must be faster
    regression_rate_max: float = Field(strict=True, allow_inf_nan=False)


DEFAULT_THRESHOLDS = Thresholds(
    success_rate_delta_min=0.15,
    median_time_delta_pct_max=-25,
    regression_rate_max=0.05,
)


def format_validation_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic error into ``"field.path: message"`` strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "value"
        messages.append(f"{location}: {error['msg']}")
    return messages


def validate_run_config(value: Any) -> Validated[RunConfig]:
    if not isinstance(value, dict):
        return Validated(valid=False, errors=["Run config must be an object."])
    try:
        config = RunConfig.model_validate(value)
    except ValidationError as e:
        return Validated(valid=False, errors=format_validation_errors(e))
    return Validated(valid=True, value=config)


def validate_thresholds(value: Any) -> Validated[Thresholds]:
    if not isinstance(value, dict):
        return Validated(valid=False, errors=["Thresholds must be an object."])
    try:
        thresholds = Thresholds.model_validate(value)
    except ValidationError as e:
        return Validated(valid=False, errors=format_validation_errors(e))
    return Validated(valid=True, value=thresholds)


def read_config_data(path: str | Path) -> Any:
    """Read a JSON config file, or YAML when the suffix says so."""
    path = Path(path)
    with open(path) as f:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def load_run_config(path: str | Path) -> RunConfig:
    """Load and validate a run config file."""
    try:
        data = read_config_data(path)
    except FileNotFoundError:
        raise ConfigError(f"Run config not found at {path}") from None
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Run config at {path} is not valid: {e}") from e

    validation = validate_run_config(data)
    if not validation.valid or validation.value is None:
        raise ConfigError(f"Invalid run config at {path}: {' '.join(validation.errors)}")
    return validation.value


def load_thresholds(path: str | Path) -> Thresholds:
    """Load and validate a thresholds file."""
    try:
        data = read_config_data(path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load thresholds from {path}: {e}") from e

    validation = validate_thresholds(data)
    if not validation.valid or validation.value is None:
        raise ConfigError(f"Failed to load thresholds from {path}: {' '.join(validation.errors)}")
    return validation.value
