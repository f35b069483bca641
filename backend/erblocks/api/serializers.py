from datetime import datetime
from typing import Any


PRIMITIVE_TYPES = (str, int, float, bool, type(None))


def serialize(obj: Any):
    """
    Serialize engine/parser results into JSON-compatible structures.
    Deterministic: sets come back sorted.
    """

    if isinstance(obj, PRIMITIVE_TYPES):
        return obj

    if isinstance(obj, datetime):
        return obj.isoformat()

    if isinstance(obj, (set, frozenset)):
        return sorted(serialize(item) for item in obj)

    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]

    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}

    # Edge, Directive, EntityInfo, DriftReport, ...
    if hasattr(obj, "to_dict"):
        return obj.to_dict()

    return str(obj)
