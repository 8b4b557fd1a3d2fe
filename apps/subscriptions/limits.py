"""
Typed limit maps.

Limits are ``{limit_name: int}``. Layers merge in the order
module default <= plan permission <= tenant override; later layers win per key.
"""

import re
from numbers import Real
from typing import Any, Dict, Optional

LimitMap = Dict[str, int]

_WORD_START = re.compile(r"\b\w", re.ASCII)


def coerce_limits(raw: Any) -> LimitMap:
    """Numeric entries of a stored limits value; anything else is dropped."""
    if not isinstance(raw, dict):
        return {}
    limits = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, Real):
            continue
        if float(value).is_integer():
            limits[str(key)] = int(value)
    return limits


def merge_limits(*layers: Optional[Any]) -> LimitMap:
    merged: LimitMap = {}
    for layer in layers:
        merged.update(coerce_limits(layer))
    return merged


def format_limit_key(key: str) -> str:
    return key.replace("_", " ")


def module_label(name: str) -> str:
    """``talent_database`` -> ``Talent Database``; inner letters keep their case."""
    return _WORD_START.sub(lambda m: m.group(0).upper(), name.replace("_", " "))
