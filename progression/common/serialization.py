"""
Serialization Utilities

Helpers for turning engine value objects (dataclasses, enums, dates) into
plain dictionaries and JSON, used for pub/sub payloads and JSON columns.
"""

import json
import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import is_dataclass, asdict


def serialize(
    obj: Any,
    exclude_none: bool = False,
    exclude_fields: Optional[List[str]] = None
) -> Any:
    """
    Serialize an object into JSON-compatible Python values.

    Args:
        obj: The object to serialize
        exclude_none: Whether to exclude None values from mappings
        exclude_fields: Optional list of mapping keys to drop

    Returns:
        A value made only of dicts, lists, strings, numbers, booleans and None
    """
    exclude_fields = exclude_fields or []

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    # datetime is a subclass of date, so it is checked first
    if isinstance(obj, datetime.datetime):
        return obj.isoformat()

    if isinstance(obj, datetime.date):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj) if isinstance(obj, (set, frozenset)) else obj
        return [serialize(item, exclude_none, exclude_fields) for item in items]

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if key in exclude_fields:
                continue
            if exclude_none and value is None:
                continue
            result[key] = serialize(value, exclude_none, exclude_fields)
        return result

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict(), exclude_none, exclude_fields)

    if is_dataclass(obj):
        return serialize(asdict(obj), exclude_none, exclude_fields)

    return str(obj)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation
        exclude_none: Whether to exclude None values

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False, default=str)


class SerializableMixin:
    """
    Mixin that provides serialization capabilities to a class.

    Classes using this mixin define ``__serializable_fields__``, a list of
    ``(attribute, key)`` pairs or bare attribute names to include.
    """

    __serializable_fields__: List[Any] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for field in self.__serializable_fields__:
            attribute, key = field if isinstance(field, tuple) else (field, field)
            if hasattr(self, attribute):
                result[key] = serialize(getattr(self, attribute))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)
