"""Data types and extension points used when evaluating feature flags."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

VARIATION_SDK_DEFAULT = "SdkDefault"

T = TypeVar("T")


def _now() -> int:
    return int(time.time())


class Reason(str, Enum):
    """Why an evaluation produced the value it did."""

    TARGETING_MATCH = "TARGETING_MATCH"
    SPLIT = "SPLIT"
    DISABLED = "DISABLED"
    DEFAULT = "DEFAULT"
    STATIC = "STATIC"
    UNKNOWN = "UNKNOWN"
    ERROR = "ERROR"


class ErrorCode(str, Enum):
    """What went wrong during an evaluation."""

    PROVIDER_NOT_READY = "PROVIDER_NOT_READY"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    GENERAL = "GENERAL"


@dataclass(frozen=True)
class ResolutionDetails:
    """How a flag resolved for a user."""

    variant: str
    reason: Reason | None = None
    error_code: ErrorCode | None = None


@dataclass(frozen=True)
class EvaluationContext:
    """Information handed to a flag when it is evaluated."""

    environment: str = ""
    default_sdk_value: Any = None


@dataclass
class VariationResult:
    """Metadata about one variation call."""

    variation_type: str
    failed: bool
    reason: Reason | None = None
    error_code: ErrorCode | None = None
    track_events: bool = False
    version: str = ""


@dataclass
class VarResult(Generic[T]):
    """A value returned by a variation call together with its metadata."""

    value: T
    variation_result: VariationResult


@dataclass
class FlagState:
    """The state of one flag for one user."""

    value: Any = None
    timestamp: int = field(default_factory=_now)
    variation_type: str = ""
    track_events: bool = False
    failed: bool = False
    error_code: ErrorCode | None = None
    reason: Reason | None = None


def _state_to_dict(state: FlagState) -> dict[str, Any]:
    data: dict[str, Any] = {
        "value": state.value,
        "timestamp": state.timestamp,
        "variationType": state.variation_type,
        "trackEvents": state.track_events,
        "failed": state.failed,
    }
    if state.error_code is not None:
        data["errorCode"] = state.error_code.value
    if state.reason is not None:
        data["reason"] = state.reason.value
    return data


class AllFlags:
    """The state of every flag for one user.

    The collection stops being valid as soon as a failed state is added.
    """

    def __init__(self, valid: bool = True) -> None:
        self.flags: dict[str, FlagState] = {}
        self._valid = valid

    def add_flag(self, key: str, state: FlagState) -> None:
        """Record the state of a flag."""
        self.flags[key] = state
        if state.failed:
            self._valid = False

    def is_valid(self) -> bool:
        """Return False if any flag failed or the flags could not be read."""
        return self._valid

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "flags": {key: _state_to_dict(state) for key, state in self.flags.items()},
            "valid": self._valid,
        }

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class FeatureEvent:
    """An evaluation that is reported to the exporter."""

    user_key: str
    key: str
    value: Any
    variation: str
    default: bool
    version: str = ""
    context_kind: str = "user"
    kind: str = "feature"
    creation_date: int = field(default_factory=_now)


class Flag(ABC):
    """A feature flag that can be evaluated for a user."""

    @abstractmethod
    def value(self, flag_key: str, user: Any, context: EvaluationContext) -> tuple[Any, ResolutionDetails]:
        """Evaluate the flag and return the value with its resolution details."""

    @abstractmethod
    def track_events(self) -> bool:
        """Whether evaluations of this flag are exported."""

    @abstractmethod
    def version(self) -> str:
        """The version of the flag definition."""

    @abstractmethod
    def default_variation(self) -> str:
        """The name of the variation served by default."""

    @abstractmethod
    def variation_value(self, name: str) -> Any:
        """The value of the named variation."""


class CacheManager(ABC):
    """Holds the flags currently loaded."""

    @abstractmethod
    def get_flag(self, key: str) -> Flag:
        """Return a flag; raise LookupError if it is missing or the cache is not ready."""

    @abstractmethod
    def all_flags(self) -> dict[str, Flag]:
        """Return every flag; raise LookupError if the cache is not ready."""


class EventExporter(ABC):
    """Receives evaluation events."""

    @abstractmethod
    def add_event(self, event: FeatureEvent) -> None:
        """Accept one event."""


def compute_variation_result(flag: Flag | None, details: ResolutionDetails) -> VariationResult:
    """Build the metadata of a variation call from its resolution details."""
    if flag is None:
        track_events, version = False, ""
    else:
        track_events, version = flag.track_events(), flag.version()
    return VariationResult(
        variation_type=details.variant,
        failed=details.error_code is not None,
        reason=details.reason,
        error_code=details.error_code,
        track_events=track_events,
        version=version,
    )