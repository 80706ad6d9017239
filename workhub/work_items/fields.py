from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True, slots=True)
class FieldValue:
    """A stored custom field value interpreted according to its field type."""

    raw: Any

    field_types: ClassVar[frozenset[str]] = frozenset()

    def is_empty(self) -> bool:
        return self.raw is None


@dataclass(frozen=True, slots=True)
class TextValue(FieldValue):
    field_types: ClassVar[frozenset[str]] = frozenset(
        {"text", "textarea", "rich_text", "dropdown", "user_picker", "email", "url", "phone"}
    )

    def is_empty(self) -> bool:
        if self.raw is None:
            return True
        return str(self.raw).strip() == ""


@dataclass(frozen=True, slots=True)
class DateValue(FieldValue):
    field_types: ClassVar[frozenset[str]] = frozenset({"date", "datetime"})

    def is_empty(self) -> bool:
        if not self.raw:
            return True
        return isinstance(self.raw, str) and self.raw.strip() == ""


@dataclass(frozen=True, slots=True)
class NumberValue(FieldValue):
    field_types: ClassVar[frozenset[str]] = frozenset({"number", "currency", "percentage"})

    def is_empty(self) -> bool:
        # zero is a value
        return self.raw is None or self.raw == ""


@dataclass(frozen=True, slots=True)
class CheckboxValue(FieldValue):
    field_types: ClassVar[frozenset[str]] = frozenset({"checkbox"})

    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class MultiSelectValue(FieldValue):
    field_types: ClassVar[frozenset[str]] = frozenset({"multi_select"})

    def is_empty(self) -> bool:
        if self.raw is None:
            return True
        if isinstance(self.raw, (list, tuple, set)):
            return len(self.raw) == 0
        return str(self.raw).strip() == ""


_VALUE_CLASSES: dict[str, type[FieldValue]] = {
    field_type: value_class
    for value_class in (TextValue, DateValue, NumberValue, CheckboxValue, MultiSelectValue)
    for field_type in value_class.field_types
}


def field_value_for(field_type: str, raw: Any) -> FieldValue:
    """Wrap ``raw`` in the value class for ``field_type``; unknown types compare as text."""

    value_class = _VALUE_CLASSES.get(field_type, TextValue)
    return value_class(raw)
