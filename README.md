# ffvariation

ffvariation turns feature flags into typed values. Each lookup returns the
value a flag resolves to for a user. If the flag is missing, or its value has
the wrong type, you get the default you passed, and an exception says what
went wrong. Evaluations of flags that track events are sent to an event
exporter.

## Installing

```
pip install ffvariation
```

To run the tests, install the `test` extra and run `pytest`:

```
pip install "ffvariation[test]"
pytest
```

## What you provide

The package evaluates flags. It does not load or store them. You supply these
objects, built on the abstract classes in `ffvariation.model`:

- `Flag` is one flag. It implements `value(flag_key, user, context)`, which
  returns a `(value, ResolutionDetails)` pair, plus `track_events()`,
  `version()`, `default_variation()` and `variation_value(name)`.
- `CacheManager` holds the loaded flags. It implements `get_flag(key)` and
  `all_flags()`. Both raise `LookupError` when the flag is missing or the cache
  is not ready.
- `EventExporter` receives a `FeatureEvent` through `add_event(event)`. It is
  optional.

A user is any object with a `key` attribute. If the object also has a truthy
`anonymous` attribute, its events are sent with the context kind
`"anonymousUser"`. Otherwise the context kind is `"user"`.

## Usage

```python
from ffvariation.client import Config, FeatureFlagClient, VariationError

client = FeatureFlagClient(cache=my_cache, config=Config(environment="prod"), exporter=my_exporter)

try:
    enabled = client.bool_variation("new-checkout", user, False)
except VariationError as err:
    enabled = err.result.value  # the default that was passed in
```

The typed methods are:

| method | accepted flag values |
|---|---|
| `bool_variation` | `bool` |
| `int_variation` | `int`, or `float` (truncated); `bool` is rejected |
| `float_variation` | `float` |
| `string_variation` | `str` |
| `json_array_variation` | `list` |
| `json_variation` | `dict` |

### Errors

All errors derive from `VariationError`. It has a `flag_key` attribute and a
`result` attribute, which is a `VarResult` holding the default value:

- `FlagNotAvailableError` is raised when the cache raises `LookupError` for
  the flag.
- `WrongVariationError` is raised when the flag's value has a type that the
  method does not accept.

For a `WrongVariationError` on a flag that tracks events, the exporter
receives the evaluation with the default value before the error is raised.
If the flag could not be found, no event is sent.

### Raw values

`raw_variation(flag_key, user, default)` returns a `VarResult` with the
untyped value and a `VariationResult`. The `VariationResult` holds
`variation_type`, `failed`, `reason` (`Reason`), `error_code` (`ErrorCode`),
`track_events` and `version`. A missing flag raises `FlagNotAvailableError`.

### All flags

`all_flags_state(user)` evaluates every flag in the cache and returns an
`AllFlags` object. It sends no events. A flag whose value is not a bool,
number, string, list or dict is reported with its default variation, with
`failed` set and the `TYPE_MISMATCH` error code. The state becomes invalid as
soon as one flag fails. It is also invalid, and empty, when the cache raises
`LookupError`.

```python
state = client.all_flags_state(user)
state.is_valid()
state.to_dict()   # {"flags": {key: {"value", "timestamp", "variationType", "trackEvents", "failed", ...}}, "valid": ...}
print(state.to_json())
```

`errorCode` and `reason` appear in a flag's entry only when they are set.

`get_flags_from_cache()` returns the cache's flags, or raises the cache's
`LookupError`.

### Offline mode

With `Config(offline=True)` no flags are read and no events are sent. Every
variation returns the default you passed, marked `failed` with the variation
`"SdkDefault"`. `all_flags_state` returns an empty, valid state.

## Module-level helpers

Register a default client with `ffvariation.client.set_default_client(client)`.
Pass `None` to remove it. After that you can call the module-level functions
`bool_variation`, `int_variation`, `float_variation`, `string_variation`,
`json_array_variation`, `json_variation`, `all_flags_state` and
`get_flags_from_cache`. They raise `RuntimeError` if no default client is set.

## What the package does not do

It has no flag file format, no rule or percentage evaluation, no cache
implementation, no retrievers that load flags from files or remote storage,
no background polling, and no ready-made exporters. All of these come from the
`Flag`, `CacheManager` and `EventExporter` objects you supply.