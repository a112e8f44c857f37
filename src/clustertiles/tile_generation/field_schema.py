"""
Field Schema

Attribute schema accumulated across the whole traversal and published in the
``vector_layers`` entry of the container metadata.
"""

from typing import Any, Dict, Mapping


def value_kind(value: Any) -> str:
    """Kind name recorded for a tag value."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


class FieldSchema:
    """
    Property name to last-observed value kind.

    The schema only grows. It must be finalized once the traversal has
    finished; reading it earlier raises, since a partial schema would
    produce an incomplete layer descriptor.
    """

    def __init__(self):
        self._fields: Dict[str, str] = {}
        self._finalized = False

    def observe(self, tags: Mapping[str, Any]) -> None:
        if self._finalized:
            raise RuntimeError("Field schema is already finalized")
        for name, value in tags.items():
            self._fields[name] = value_kind(value)

    def finalize(self) -> Dict[str, str]:
        self._finalized = True
        return self.fields

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def fields(self) -> Dict[str, str]:
        if not self._finalized:
            raise RuntimeError("Field schema read before the traversal completed")
        return dict(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: str) -> bool:
        return name in self._fields
