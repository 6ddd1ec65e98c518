"""
Field Path Resolver.

Maps a flat column identifier (a dotted field path used as the column
header) to a value inside a nested remote record, and back.

Path forms:
    name                        plain key
    address.locality            flattened key present verbatim on the record
    email.work                  labeled group: label match, else primary, else first
    phone.1 / phone.1.label     positional entry of a list
    custom_fields.abc[.value]   key inside a nested container
    owner_id.name               key inside any nested object

build_partial_record() is the inverse: it produces the fragment of a remote
record that sets a single path, in the shape the remote API expects.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sheetsync.domain.field_value import LabeledList, NestedBag, Scalar, classify, to_scalar

logger = logging.getLogger(__name__)


def _is_padding(item: Any) -> bool:
    """Placeholder entries inserted to reach a positional index."""
    return item is None or item == {"value": None}


class FieldPathResolver:
    """
    Resolve dotted field paths against nested records.

    Args:
        labeled_groups: Top-level fields stored as labeled arrays
        nested_containers: Top-level fields stored as key/value bags
    """

    def __init__(
        self,
        labeled_groups: Iterable[str] = ("email", "phone", "im"),
        nested_containers: Iterable[str] = ("custom_fields",),
    ) -> None:
        self.labeled_groups = set(labeled_groups)
        self.nested_containers = set(nested_containers)

    # ========================================================================
    # Resolve
    # ========================================================================

    def resolve_value(self, record: dict[str, Any] | None, path: str) -> Any:
        """
        Get the value a field path points at.

        Args:
            record: Remote record (JSON object)
            path: Dotted field path

        Returns:
            The resolved scalar (or list of plain values), None if the path
            does not resolve
        """
        try:
            return self._resolve(record, path)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug("Path %s did not resolve: %s", path, e)
            return None

    def _resolve(self, record: dict[str, Any] | None, path: str) -> Any:
        if not isinstance(record, dict) or not path:
            return None

        if path in record:
            return self._collapse(record[path])

        segments = path.split(".")
        head, rest = segments[0], segments[1:]
        if head not in record:
            return None

        current = record[head]
        if not rest:
            return self._collapse(current)

        first = rest[0]
        if first.isdigit():
            item = self._at(current, int(first))
            if item is None:
                return None
            return self._walk(item, rest[1:])

        shape = classify(current)
        if isinstance(shape, LabeledList):
            return shape.select(first)
        if isinstance(shape, Scalar) and head in self.labeled_groups:
            # group stored as a plain value on this record
            return self._collapse(current)

        return self._walk(current, rest)

    def _walk(self, value: Any, keys: list[str]) -> Any:
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            elif isinstance(value, list) and key.isdigit():
                value = self._at(value, int(key))
            else:
                return None
            if value is None:
                return None
        return self._collapse(value)

    @staticmethod
    def _at(value: Any, index: int) -> Any:
        if isinstance(value, list) and 0 <= index < len(value):
            return value[index]
        return None

    @staticmethod
    def _collapse(value: Any) -> Any:
        shape = classify(value)
        if isinstance(shape, Scalar):
            return list(shape.value) if isinstance(shape.value, tuple) else shape.value
        if isinstance(shape, NestedBag) and shape.scalar() is None:
            return None
        return to_scalar(shape)

    # ========================================================================
    # Build
    # ========================================================================

    def build_partial_record(self, field_name: str, flat_value: Any) -> dict[str, Any]:
        """
        Build the record fragment that sets one field path.

        Examples:
            "name", "Ann"              -> {"name": "Ann"}
            "email.work", "a@x.com"    -> {"email": [{"label": "work", "value": "a@x.com", "primary": True}]}
            "phone.1", "555"           -> {"phone": [{"value": None}, {"value": "555"}]}
            "custom_fields.abc", 5     -> {"custom_fields": {"abc": 5}}
        """
        if not field_name:
            return {}

        segments = field_name.split(".")
        head, rest = segments[0], segments[1:]

        if not rest:
            if head in self.labeled_groups:
                return {head: [{"value": flat_value, "primary": True}]}
            return {head: flat_value}

        first = rest[0]
        if first.isdigit():
            index = int(first)
            labeled = head in self.labeled_groups
            pad = {"value": None} if labeled else None
            items: list[Any] = [dict(pad) if labeled else None for _ in range(index)]
            if rest[1:]:
                items.append(self._nest(rest[1:], flat_value))
            elif labeled:
                items.append({"value": flat_value})
            else:
                items.append(flat_value)
            return {head: items}

        if head in self.labeled_groups:
            return {head: [{"label": first, "value": flat_value, "primary": True}]}

        return {head: self._nest(rest, flat_value)}

    @staticmethod
    def _nest(keys: list[str], value: Any) -> dict[str, Any]:
        result: Any = value
        for key in reversed(keys):
            result = {key: result}
        return result

    # ========================================================================
    # Merge
    # ========================================================================

    def merge_fragment(self, target: dict[str, Any], fragment: dict[str, Any]) -> dict[str, Any]:
        """
        Fold a partial record into an accumulating payload (in place).

        Nested objects merge key by key. Labeled entries (and the unlabeled
        entry of a bare group column) are appended, with only the first entry
        of a group kept primary. Positional lists merge index by index,
        padding entries never overwrite real ones.

        Returns:
            The updated target
        """
        for key, value in fragment.items():
            if key not in target:
                target[key] = value
                continue

            existing = target[key]
            if isinstance(existing, dict) and isinstance(value, dict):
                self.merge_fragment(existing, value)
            elif isinstance(existing, list) and isinstance(value, list):
                self._merge_lists(existing, value, key in self.labeled_groups)
            else:
                target[key] = value
        return target

    def _merge_lists(self, existing: list[Any], incoming: list[Any], labeled: bool = False) -> None:
        # bare group columns ("email") carry primary but no label
        if all(
            isinstance(item, dict) and ("label" in item or (labeled and "primary" in item))
            for item in incoming
        ):
            has_primary = any(isinstance(item, dict) and item.get("primary") for item in existing)
            for item in incoming:
                item = dict(item)
                if has_primary:
                    item["primary"] = False
                has_primary = has_primary or bool(item.get("primary"))
                existing.append(item)
            return

        for index, item in enumerate(incoming):
            if _is_padding(item):
                if index >= len(existing):
                    existing.append(item)
                continue
            while len(existing) <= index:
                existing.append(None)
            current = existing[index]
            if isinstance(current, dict) and isinstance(item, dict) and not _is_padding(current):
                self.merge_fragment(current, item)
            else:
                existing[index] = item
