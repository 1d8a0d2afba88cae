"""State construction and serialization for LEX markets.

`initial_state()` returns the state a market is created with: price 1,
notional price 1, empty moving average, bias at the engine's initial value.

Round-trip property (tested): `state_from_dict(state_to_dict(s)) == s`.
"""

from __future__ import annotations

from typing import Any, Mapping

from .types import LexParams, LexState

STATE_VAR_NAMES: tuple[str, ...] = tuple(LexState.__dataclass_fields__)


def initial_state(params: LexParams, *, base_token_price: int, now: int) -> LexState:
    return LexState(
        last_base_token_price=base_token_price,
        last_update_timestamp=now,
        last_ln_rate_bias=params.initial_ln_rate_bias,
    )


def state_to_dict(state: LexState) -> dict[str, int]:
    return {name: getattr(state, name) for name in STATE_VAR_NAMES}


def state_from_dict(d: Mapping[str, Any]) -> LexState:
    """Deserialize a dict to a LexState. Raises KeyError on missing fields."""
    kwargs: dict[str, int] = {}
    for name in STATE_VAR_NAMES:
        val = d[name]
        if isinstance(val, bool) or not isinstance(val, int):
            raise TypeError(f"state var {name!r} must be int, got {type(val).__name__}")
        kwargs[name] = int(val)
    return LexState(**kwargs)
