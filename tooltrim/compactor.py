"""Compactor helpers shared by every processor.

The compact models in ``models`` are the per-operation allow-lists; this
module measures them and checks that a projection stays faithful to its
canonical result.
"""

import json
import math

from . import config
from .models import Model


def footprint(value) -> int:
    """Serialized JSON size of a model (None fields dropped) or raw string."""
    if isinstance(value, str):
        return len(value)
    if isinstance(value, Model):
        return len(value.model_dump_json(exclude_none=True))
    return len(json.dumps(value, separators=(",", ":")))


def estimate_tokens(value) -> int:
    """Rough token estimate (chars / chars_per_token, rounded up)."""
    size = footprint(value)
    return math.ceil(size / config.get("chars_per_token")) if size else 0


def _is_subset(compact, full) -> bool:
    if isinstance(compact, dict):
        if not isinstance(full, dict):
            return False
        return all(key in full and _is_subset(val, full[key]) for key, val in compact.items())
    if isinstance(compact, list):
        if not isinstance(full, list):
            return False
        # ordered subsequence: each compact item consumes the next matching full item
        remaining = iter(full)
        return all(any(_is_subset(item, candidate) for candidate in remaining) for item in compact)
    return compact == full


def is_safe_projection(full: Model, compact: Model) -> bool:
    """True when every field of ``compact`` exists in ``full`` with an equal value.

    Lists may be trimmed: a compact list must be an ordered subsequence of
    the full list, each item itself a safe projection of its counterpart.
    """
    return _is_subset(compact.to_dict(), full.to_dict())
