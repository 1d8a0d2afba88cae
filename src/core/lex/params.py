"""Construction and loading of `LexParams`.

Parameter files are YAML mappings read with PyYAML. Human-facing keys are
decimal strings (`edge_price_low: "0.25"`) and LTV limits in bps; raw Q96 /
WAD integers are accepted under the dataclass field names as well:

    edge_price_low / edge_sqrt_price_low
    edge_price_high / edge_sqrt_price_high
    limit_high_ltv_bps / limit_high_sqrt_price
    limit_max_ltv_bps / limit_max_sqrt_price
    debt_duration
    swap_fee                (decimal string or WAD int)
    initial_ln_rate_bias    (decimal string or signed WAD int)
"""

from __future__ import annotations

import math
from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..errors import InvalidParams
from ..fixed_point import Q192, WAD
from ..latent_math import sqrt_price_for_ltv
from .types import LexParams

PRESETS_DIR = Path(__file__).resolve().parent / "presets"


def make_lex_params(
    *,
    edge_sqrt_price_low: int,
    edge_sqrt_price_high: int,
    limit_high_sqrt_price: int,
    limit_max_sqrt_price: int,
    debt_duration: int,
    swap_fee: int,
    initial_ln_rate_bias: int = 0,
) -> LexParams:
    return LexParams(
        edge_sqrt_price_low=edge_sqrt_price_low,
        edge_sqrt_price_high=edge_sqrt_price_high,
        limit_high_sqrt_price=limit_high_sqrt_price,
        limit_max_sqrt_price=limit_max_sqrt_price,
        debt_duration=debt_duration,
        swap_fee=swap_fee,
        initial_ln_rate_bias=initial_ln_rate_bias,
    )


def _decimal(name: str, raw: Any) -> Fraction:
    if isinstance(raw, bool):
        raise InvalidParams(f"{name} must be a number")
    try:
        return Fraction(str(raw).strip())
    except (ValueError, ZeroDivisionError) as exc:
        raise InvalidParams(f"{name}: invalid decimal {raw!r}") from exc


def sqrt_price_from_decimal(name: str, raw: Any) -> int:
    """Q96 sqrt of a decimal price, rounded down."""
    price = _decimal(name, raw)
    if price <= 0:
        raise InvalidParams(f"{name} must be > 0")
    return math.isqrt(price.numerator * Q192 // price.denominator)


def wad_from_decimal(name: str, raw: Any) -> int:
    """Signed WAD of a decimal, truncated toward zero. Ints pass through as WAD."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    value = _decimal(name, raw) * WAD
    return math.trunc(value)


def _int(mapping: Mapping[str, Any], name: str) -> int:
    raw = mapping[name]
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidParams(f"{name} must be an int")
    return raw


def params_from_mapping(mapping: Mapping[str, Any]) -> LexParams:
    if not isinstance(mapping, Mapping):
        raise InvalidParams("params must be a mapping")
    try:
        if "edge_sqrt_price_low" in mapping:
            low = _int(mapping, "edge_sqrt_price_low")
        else:
            low = sqrt_price_from_decimal("edge_price_low", mapping["edge_price_low"])
        if "edge_sqrt_price_high" in mapping:
            high = _int(mapping, "edge_sqrt_price_high")
        else:
            high = sqrt_price_from_decimal("edge_price_high", mapping["edge_price_high"])

        if "limit_high_sqrt_price" in mapping:
            limit_high = _int(mapping, "limit_high_sqrt_price")
        else:
            limit_high = sqrt_price_for_ltv(low, high, _int(mapping, "limit_high_ltv_bps"))
        if "limit_max_sqrt_price" in mapping:
            limit_max = _int(mapping, "limit_max_sqrt_price")
        else:
            limit_max = sqrt_price_for_ltv(low, high, _int(mapping, "limit_max_ltv_bps"))

        debt_duration = _int(mapping, "debt_duration")
        swap_fee = wad_from_decimal("swap_fee", mapping.get("swap_fee", 0))
        bias = wad_from_decimal("initial_ln_rate_bias", mapping.get("initial_ln_rate_bias", 0))
    except KeyError as exc:
        raise InvalidParams(f"missing parameter: {exc.args[0]}") from exc
    except ValueError as exc:
        if isinstance(exc, InvalidParams):
            raise
        raise InvalidParams(str(exc)) from exc

    return make_lex_params(
        edge_sqrt_price_low=low,
        edge_sqrt_price_high=high,
        limit_high_sqrt_price=limit_high,
        limit_max_sqrt_price=limit_max,
        debt_duration=debt_duration,
        swap_fee=swap_fee,
        initial_ln_rate_bias=bias,
    )


def load_params_yaml(path: str | Path) -> LexParams:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, dict):
        raise InvalidParams(f"{path}: expected a YAML mapping")
    return params_from_mapping(obj)


def load_preset(name: str = "default") -> LexParams:
    path = PRESETS_DIR / f"{name}.yaml"
    if not path.is_file():
        raise InvalidParams(f"unknown preset: {name}")
    return load_params_yaml(path)
