"""Typed flag evaluation with event export."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ffvariation.model import (
    VARIATION_SDK_DEFAULT,
    AllFlags,
    CacheManager,
    ErrorCode,
    EvaluationContext,
    EventExporter,
    FeatureEvent,
    Flag,
    FlagState,
    Reason,
    ResolutionDetails,
    VariationResult,
    VarResult,
    compute_variation_result,
)


class VariationError(Exception):
    """A variation call could not use the flag; ``result`` holds the SDK default."""

    _template = "variation failed for flag {}"

    def __init__(self, flag_key: str, result: VarResult) -> None:
        super().__init__(self._template.format(flag_key))
        self.flag_key = flag_key
        self.result = result


class FlagNotAvailableError(VariationError):
    """The flag is missing from the cache or the cache is not ready."""

    _template = "flag {} is not present or disabled"


class WrongVariationError(VariationError):
    """The flag value does not have the requested type."""

    _template = "wrong variation used for flag {}"


@dataclass
class Config:
    """Client settings."""

    offline: bool = False
    environment: str = ""


def _offline_result() -> VariationResult:
    return VariationResult(variation_type=VARIATION_SDK_DEFAULT, failed=True)


def _error_details(code: ErrorCode) -> ResolutionDetails:
    return ResolutionDetails(VARIATION_SDK_DEFAULT, Reason.ERROR, code)


def _expect(*types: type) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        if isinstance(value, types) and not (bool not in types and isinstance(value, bool)):
            return value
        raise TypeError(type(value).__name__)

    return convert


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    raise TypeError(type(value).__name__)


_Converter = Optional[Callable[[Any], Any]]

_SUPPORTED_TYPES = (bool, int, float, str, list, dict)


class FeatureFlagClient:
    """Evaluates flags held in a cache and reports tracked evaluations."""

    def __init__(
        self,
        cache: CacheManager,
        config: Config | None = None,
        exporter: EventExporter | None = None,
    ) -> None:
        self._cache = cache
        self._config = config or Config()
        self._exporter = exporter

    def bool_variation(self, flag_key: str, user: Any, default: bool) -> bool:
        """Return the flag value as a bool."""
        return self._typed(flag_key, user, default, _expect(bool))

    def int_variation(self, flag_key: str, user: Any, default: int) -> int:
        """Return the flag value as an int; float values are truncated."""
        return self._typed(flag_key, user, default, _as_int)

    def float_variation(self, flag_key: str, user: Any, default: float) -> float:
        """Return the flag value as a float."""
        return self._typed(flag_key, user, default, _expect(float))

    def string_variation(self, flag_key: str, user: Any, default: str) -> str:
        """Return the flag value as a string."""
        return self._typed(flag_key, user, default, _expect(str))

    def json_array_variation(self, flag_key: str, user: Any, default: list) -> list:
        """Return the flag value as a list."""
        return self._typed(flag_key, user, default, _expect(list))

    def json_variation(self, flag_key: str, user: Any, default: dict) -> dict:
        """Return the flag value as a dict."""
        return self._typed(flag_key, user, default, _expect(dict))

    def raw_variation(self, flag_key: str, user: Any, default: Any) -> VarResult:
        """Return the untyped value of the flag with its metadata."""
        return self._notified(flag_key, user, default, None)

    def all_flags_state(self, user: Any) -> AllFlags:
        """Evaluate every flag for a user without exporting events."""
        flags: dict[str, Flag] = {}
        if not self._config.offline:
            try:
                flags = self._cache.all_flags()
            except LookupError:
                return AllFlags(valid=False)

        all_flags = AllFlags()
        for key, flag in flags.items():
            value, details = flag.value(key, user, EvaluationContext(self._config.environment, None))
            if details.reason is Reason.DISABLED:
                all_flags.add_flag(
                    key,
                    FlagState(
                        track_events=flag.track_events(),
                        failed=details.error_code is not None,
                        error_code=details.error_code,
                        reason=details.reason,
                    ),
                )
            elif isinstance(value, _SUPPORTED_TYPES):
                all_flags.add_flag(
                    key,
                    FlagState(
                        value=value,
                        variation_type=details.variant,
                        track_events=flag.track_events(),
                        failed=details.error_code is not None,
                        error_code=details.error_code,
                        reason=details.reason,
                    ),
                )
            else:
                name = flag.default_variation()
                all_flags.add_flag(
                    key,
                    FlagState(
                        value=flag.variation_value(name),
                        variation_type=name,
                        track_events=flag.track_events(),
                        failed=True,
                        error_code=ErrorCode.TYPE_MISMATCH,
                        reason=Reason.ERROR,
                    ),
                )
        return all_flags

    def get_flags_from_cache(self) -> dict[str, Flag]:
        """Return the flags currently in the cache; raise LookupError if it is not ready."""
        return self._cache.all_flags()

    def _typed(self, flag_key: str, user: Any, default: Any, convert: Callable[[Any], Any]) -> Any:
        return self._notified(flag_key, user, default, convert).value

    def _notified(self, flag_key: str, user: Any, default: Any, convert: _Converter) -> VarResult:
        try:
            result = self._evaluate(flag_key, user, default, convert)
        except VariationError as err:
            self._notify(flag_key, user, err.result)
            raise
        self._notify(flag_key, user, result)
        return result

    def _evaluate(self, flag_key: str, user: Any, default: Any, convert: _Converter) -> VarResult:
        if self._config.offline:
            return VarResult(default, _offline_result())

        try:
            flag = self._cache.get_flag(flag_key)
        except LookupError as exc:
            result = VarResult(default, compute_variation_result(None, _error_details(ErrorCode.FLAG_NOT_FOUND)))
            raise FlagNotAvailableError(flag_key, result) from exc

        value, details = flag.value(flag_key, user, EvaluationContext(self._config.environment, default))
        if convert is None:
            return VarResult(value, compute_variation_result(flag, details))
        try:
            converted = convert(value)
        except TypeError:
            result = VarResult(default, compute_variation_result(flag, _error_details(ErrorCode.TYPE_MISMATCH)))
            raise WrongVariationError(flag_key, result) from None
        return VarResult(converted, compute_variation_result(flag, details))

    def _notify(self, flag_key: str, user: Any, result: VarResult) -> None:
        meta = result.variation_result
        if not meta.track_events or self._exporter is None:
            return
        anonymous = bool(getattr(user, "anonymous", False))
        self._exporter.add_event(
            FeatureEvent(
                user_key=user.key,
                key=flag_key,
                value=result.value,
                variation=meta.variation_type,
                default=meta.failed,
                version=meta.version,
                context_kind="anonymousUser" if anonymous else "user",
            )
        )


_default_slot: dict[str, FeatureFlagClient] = {}


def set_default_client(client: FeatureFlagClient | None) -> None:
    """Install the client used by the module-level functions; None removes it."""
    if client is None:
        _default_slot.pop("client", None)
        return
    if not isinstance(client, FeatureFlagClient):
        raise TypeError(f"expected a FeatureFlagClient, got {type(client).__name__}")
    _default_slot["client"] = client


def _require_default() -> FeatureFlagClient:
    try:
        return _default_slot["client"]
    except KeyError:
        raise RuntimeError("no default feature flag client has been set") from None


def bool_variation(flag_key: str, user: Any, default: bool) -> bool:
    """Evaluate a bool flag with the default client."""
    return _require_default().bool_variation(flag_key, user, default)


def int_variation(flag_key: str, user: Any, default: int) -> int:
    """Evaluate an int flag with the default client."""
    return _require_default().int_variation(flag_key, user, default)


def float_variation(flag_key: str, user: Any, default: float) -> float:
    """Evaluate a float flag with the default client."""
    return _require_default().float_variation(flag_key, user, default)


def string_variation(flag_key: str, user: Any, default: str) -> str:
    """Evaluate a string flag with the default client."""
    return _require_default().string_variation(flag_key, user, default)


def json_array_variation(flag_key: str, user: Any, default: list) -> list:
    """Evaluate a list flag with the default client."""
    return _require_default().json_array_variation(flag_key, user, default)


def json_variation(flag_key: str, user: Any, default: dict) -> dict:
    """Evaluate a dict flag with the default client."""
    return _require_default().json_variation(flag_key, user, default)


def all_flags_state(user: Any) -> AllFlags:
    """Evaluate every flag with the default client."""
    return _require_default().all_flags_state(user)


def get_flags_from_cache() -> dict[str, Flag]:
    """Return the cached flags of the default client."""
    return _require_default().get_flags_from_cache()