"""
Field Value Shapes.

Remote records carry three shapes of field value:

    Scalar      - plain str/int/float/bool/None (or a list of option ids)
    LabeledList - [{"label": "work", "value": "...", "primary": true}, ...]
    NestedBag   - {"key": value, ...} (custom attributes, address parts, ...)

`classify()` turns a raw JSON value into one of these so the normalizer and
the path resolver can branch on a type instead of probing dicts and lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class Scalar:
    """A plain value."""

    value: Any = None

    def is_empty(self) -> bool:
        return self.value is None or (isinstance(self.value, str) and not self.value.strip())


@dataclass(frozen=True, slots=True)
class LabeledItem:
    """One entry of a labeled contact array."""

    value: Any = None
    label: str | None = None
    primary: bool = False


@dataclass(frozen=True, slots=True)
class LabeledList:
    """Array of labeled items such as email or phone lists."""

    items: tuple[LabeledItem, ...] = ()

    def select(self, label: str | None = None) -> Any:
        """
        Pick one value from the list.

        Order of preference: item whose label matches `label`
        (case-insensitive), item flagged primary, first item with a value.

        Returns:
            The selected value, or None if the list holds nothing usable
        """
        if label:
            wanted = label.lower()
            for item in self.items:
                if item.label and item.label.lower() == wanted and _has_value(item.value):
                    return item.value

        for item in self.items:
            if item.primary and _has_value(item.value):
                return item.value

        for item in self.items:
            if _has_value(item.value):
                return item.value

        return None

    def at(self, index: int) -> LabeledItem | None:
        if 0 <= index < len(self.items):
            return self.items[index]
        return None


@dataclass(frozen=True, slots=True)
class NestedBag:
    """Generic nested container (custom fields, address, currency, ...)."""

    entries: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        return self.entries.get(key)

    def scalar(self) -> Any:
        """
        Best single value for display/comparison.

        Mirrors how the remote shapes composite values: a bag with a
        `value` key is represented by it (currency, ranges, addresses use
        their formatted form), option objects by their label, linked
        entities by their name.
        """
        if "formatted_address" in self.entries:
            return self.entries["formatted_address"]
        if "value" in self.entries:
            return self.entries["value"]
        if "label" in self.entries:
            return self.entries["label"]
        if "name" in self.entries:
            return self.entries["name"]
        return None


FieldValue = Union[Scalar, LabeledList, NestedBag]


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def is_labeled_array(raw: Any) -> bool:
    """Check if a raw list looks like a labeled contact array."""
    if not isinstance(raw, list) or not raw:
        return False
    present = [item for item in raw if item is not None]
    return bool(present) and all(isinstance(item, dict) and "value" in item for item in present)


def classify(raw: Any) -> FieldValue:
    """
    Classify a raw JSON value into its field shape.

    Args:
        raw: Value as found in a remote record or a sheet cell

    Returns:
        Scalar, LabeledList or NestedBag
    """
    if isinstance(raw, (Scalar, LabeledList, NestedBag)):
        return raw

    if is_labeled_array(raw):
        items = tuple(
            LabeledItem(
                value=item.get("value"),
                label=item.get("label"),
                primary=bool(item.get("primary")),
            )
            for item in raw
            if isinstance(item, dict)
        )
        return LabeledList(items=items)

    if isinstance(raw, dict):
        return NestedBag(entries=dict(raw))

    if isinstance(raw, (list, tuple)):
        return Scalar(value=tuple(raw))

    return Scalar(value=raw)


def to_scalar(value: FieldValue, label: str | None = None) -> Any:
    """Collapse any field shape to the single value it stands for."""
    if isinstance(value, LabeledList):
        return value.select(label)
    if isinstance(value, NestedBag):
        return value.scalar()
    return value.value


def display_value(raw: Any, label: str | None = None) -> Any:
    """
    Render a remote value the way it is written into a sheet cell.

    Lists of plain values are joined with ", ", booleans become Yes/No,
    composite shapes collapse to their representative scalar.
    """
    value = to_scalar(classify(raw), label)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, tuple):
        return ", ".join(str(v) for v in value if v is not None)
    if isinstance(value, (dict, list)):
        # nested composite without a representative key
        return str(value)
    return value


def json_safe(value: Any) -> Any:
    """
    Make a cell value storable as JSON.

    Dates become ISO text (midnight datetimes collapse to the date), so a
    value read back from the state store compares equal to the live cell.
    """
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, tuple):
        return [json_safe(v) for v in value]
    return value
