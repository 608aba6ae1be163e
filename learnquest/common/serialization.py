"""
Serialization Utilities

Converts domain dataclasses, enums and timestamps into JSON-ready structures
for the HTTP layer and for structured logs.
"""

import datetime
from enum import Enum
from typing import Any, Dict, List
from dataclasses import is_dataclass, fields


def serialize(obj: Any) -> Any:
    """
    Serialize an object into plain dicts, lists and scalars.

    Args:
        obj: The object to serialize

    Returns:
        A structure that ``json.dumps`` accepts
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize(item) for item in obj]

    if isinstance(obj, dict):
        return {serialize(key): serialize(value) for key, value in obj.items()}

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict())

    # Shallow field walk, asdict() would deep-copy every nested value
    if is_dataclass(obj):
        return serialize({f.name: getattr(obj, f.name) for f in fields(obj)})

    return str(obj)


class SerializableMixin:
    """
    Mixin that gives a dataclass ``to_dict``.

    ``__serializable_fields__`` may list the fields (or properties) to expose;
    when empty every dataclass field is included.
    """

    __serializable_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        names = self.__serializable_fields__ or [f.name for f in fields(self)]
        return {name: serialize(getattr(self, name)) for name in names}
