"""
FormRules Value Sources
=======================

Abstract access to the current field values being validated.

The engine never reads forms, requests or widgets directly. Callers
supply a FieldValueSource that answers "what is the value of field X"
by name or by id. MappingValueSource covers the common case of plain
dictionaries (request bodies, JSON payloads, test fixtures).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from formrules.validation.values import (
    ABSENT,
    FieldKind,
    FieldValue,
    FileInfo,
    FileSet,
    Multi,
    Scalar,
    to_field_value,
)

SELECTORS = ("name", "id")


@dataclass(frozen=True)
class FieldEntry:
    """
    One addressable field.

    Attributes:
        name: Value of the field's name attribute
        value: Current value
        kind: Declared kind
        id: Value of the field's id attribute, if any
    """

    name: str
    value: FieldValue = ABSENT
    kind: FieldKind = FieldKind.TEXT
    id: Optional[str] = None

    def key(self, selector: str) -> Optional[str]:
        """Identifier of this entry under a selector."""
        return self.id if selector == "id" else self.name


class FieldValueSource(ABC):
    """
    Provider of field values.

    Implement `find_all` to plug the engine into another
    form representation.
    """

    @abstractmethod
    def find_all(self, identifier: str, selector: str = "name") -> List[FieldEntry]:
        """
        Find every entry matching an identifier.

        Args:
            identifier: Field name or id
            selector: "name" or "id"

        Returns:
            Matching entries in document order (may be empty)
        """
        ...

    def find(self, identifier: str, selector: str = "name") -> Optional[FieldEntry]:
        """Find the first entry matching an identifier."""
        entries = self.find_all(identifier, selector)
        return entries[0] if entries else None

    def __contains__(self, identifier: str) -> bool:
        return self.find(identifier) is not None


def _infer_kind(raw: Any) -> FieldKind:
    if isinstance(raw, FileInfo):
        return FieldKind.FILE
    if isinstance(raw, (list, tuple)):
        if raw and all(isinstance(item, FileInfo) for item in raw):
            return FieldKind.FILE
        return FieldKind.SELECT_MULTIPLE
    if isinstance(raw, FileSet):
        return FieldKind.FILE
    if isinstance(raw, Multi):
        return FieldKind.SELECT_MULTIPLE
    if isinstance(raw, bool) or (isinstance(raw, Scalar) and isinstance(raw.value, bool)):
        return FieldKind.CHECKBOX
    return FieldKind.TEXT


class MappingValueSource(FieldValueSource):
    """
    Value source backed by a mapping.

    Keys are field names and double as ids. Keys ending in ``[]``
    hold a list with one element per repeated field; a field declared
    as ``tags[]`` is also looked up under ``tags``.

    Example:
        source = MappingValueSource(
            {"email": "a@b.co", "skills[]": ["python", "", "go"]},
            kinds={"avatar": "file"},
        )
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        kinds: Optional[Mapping[str, Union[str, FieldKind]]] = None,
        ids: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Initialize source.

        Args:
            data: Field name to raw value
            kinds: Field name to declared kind (inferred when missing)
            ids: Field name to id attribute (defaults to the name)
        """
        self._entries: List[FieldEntry] = []
        kinds = kinds or {}
        ids = ids or {}

        for name, raw in (data or {}).items():
            kind = FieldKind.parse(kinds[name]) if name in kinds else None
            if name.endswith("[]") and isinstance(raw, (list, tuple)) and kind != FieldKind.FILE:
                for item in raw:
                    self._add(name, item, kind, ids.get(name, name))
            else:
                self._add(name, raw, kind, ids.get(name, name))

    def _add(
        self,
        name: str,
        raw: Any,
        kind: Optional[FieldKind],
        field_id: Optional[str],
    ) -> None:
        kind = kind or _infer_kind(raw)
        self._entries.append(
            FieldEntry(
                name=name,
                value=to_field_value(raw, kind),
                kind=kind,
                id=field_id,
            )
        )

    @classmethod
    def from_entries(cls, entries: Iterable[FieldEntry]) -> "MappingValueSource":
        """Build a source from prepared entries."""
        source = cls()
        source._entries = list(entries)
        return source

    def find_all(self, identifier: str, selector: str = "name") -> List[FieldEntry]:
        if selector not in SELECTORS:
            raise ValueError(f"Unknown selector: {selector!r}")

        found = [e for e in self._entries if e.key(selector) == identifier]
        if not found and identifier.endswith("[]"):
            base = identifier[:-2]
            found = [e for e in self._entries if e.key(selector) == base]
            if len(found) == 1 and isinstance(found[0].value, Multi):
                entry = found[0]
                found = [
                    FieldEntry(entry.name, Scalar(item), FieldKind.TEXT, entry.id)
                    for item in entry.value
                ]
        return found

    def entries(self) -> List[FieldEntry]:
        return list(self._entries)

    def as_dict(self) -> Dict[str, FieldValue]:
        """First value per field name."""
        result: Dict[str, FieldValue] = {}
        for entry in self._entries:
            result.setdefault(entry.name, entry.value)
        return result
