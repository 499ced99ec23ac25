"""Reciprocal course-swap match detection.

Two requests match when they belong to the same semester and each one
holds exactly the section the other wants, for the same course. Sections
and course codes are compared with exact, case-sensitive equality; only
the pool *filters* in the service layer are case-insensitive.

Requests may be `models.SwapRequest` instances or mappings with the same
keys.
"""

from collections.abc import Mapping
from typing import Iterable, List


def _value(item, name):
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


def _owner(item):
    if isinstance(item, Mapping):
        return item.get("user_id")
    return getattr(item, "user_id", None)


def _as_dict(item) -> dict:
    if isinstance(item, Mapping):
        return dict(item)
    return item.model_dump()


def is_reciprocal(a, b) -> bool:
    """Return True if `a` and `b` satisfy each other.

    A request never matches itself, whatever the pool order. When both
    sides carry a `user_id`, requests from the same user never match.
    """
    if _value(a, "id") == _value(b, "id"):
        return False
    owner_a, owner_b = _owner(a), _owner(b)
    if owner_a is not None and owner_a == owner_b:
        return False
    if _value(a, "semester") != _value(b, "semester"):
        return False
    if _value(a, "course_code") != _value(b, "course_code"):
        return False
    return (_value(a, "current_section") == _value(b, "desired_section")
            and _value(a, "desired_section") == _value(b, "current_section"))


def annotate_matches(own_requests: Iterable, pool: Iterable) -> List[dict]:
    """Copy `pool` in order, adding `is_match` to every entry.

    An entry is a match when at least one of `own_requests` is reciprocal
    with it. Multiple counterparts are not ranked; `find_counterparts`
    lists them.
    """
    own = list(own_requests)
    out = []
    for request in pool:
        row = _as_dict(request)
        row["is_match"] = any(is_reciprocal(mine, request) for mine in own)
        out.append(row)
    return out


def find_counterparts(request, pool: Iterable) -> List:
    """Return every entry of `pool` reciprocal with `request`, in pool order."""
    return [other for other in pool if is_reciprocal(request, other)]
