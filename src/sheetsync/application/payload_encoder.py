"""
Payload Encoder - cell values to remote field values and back.

Outbound (encode):
    - option fields: labels mapped to option ids (case-insensitive);
      set fields are split on the delimiter, unmappable labels dropped
    - date-like paths: converted to YYYY-MM-DD
    - everything else passed through as-is

Inbound (decode) is used when pulling: option ids become labels so the
sheet shows what a person would type.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable

from sheetsync.domain.field_value import display_value, json_safe
from sheetsync.domain.row_rules import is_blank
from sheetsync.domain.settings import FieldOptions, SyncSettings

logger = logging.getLogger(__name__)

# Returned by encode() when the field must not be sent at all
DROP = object()

DATE_INPUT_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%b %d, %Y",
)


def to_standard_date(value: Any) -> Any:
    """
    Convert a date-ish value to YYYY-MM-DD.

    Returns the value unchanged when it cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return value

    text = value.strip()
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        logger.debug("Unrecognized date value %r, sending as-is", value)
        return value


class PayloadEncoder:
    """
    Encode cell values for the remote API.

    Args:
        field_options: Option sets keyed by field path
        date_markers: Trailing words of the last path segment that mark a
            date-like field ("close_date", "created_at", "birthday")
        delimiter: Separator of multi-option cells
    """

    def __init__(
        self,
        field_options: dict[str, FieldOptions] | None = None,
        date_markers: Iterable[str] = ("date", "_at", "_time", "deadline", "birthday"),
        delimiter: str = ",",
    ) -> None:
        self.field_options = field_options or {}
        self.date_markers = tuple(m.lower() for m in date_markers)
        self.delimiter = delimiter

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> PayloadEncoder:
        return cls(
            settings.field_options,
            settings.date_markers,
            settings.normalizer.list_delimiter,
        )

    def is_date_field(self, field_path: str) -> bool:
        leaf = (field_path or "").lower().rsplit(".", 1)[-1]
        for marker in self.date_markers:
            word = marker.strip("_")
            if word and (leaf == word or leaf.endswith("_" + word)):
                return True
        return False

    # ========================================================================
    # Outbound
    # ========================================================================

    def encode(self, field_path: str, value: Any) -> Any:
        """
        Encode one cell for sending.

        Returns:
            The value to send, or DROP when nothing should be sent
        """
        options = self.field_options.get(field_path)
        if options is not None:
            if options.kind == "set":
                return self._encode_set(field_path, options, value)
            return self._encode_enum(field_path, options, value)

        if self.is_date_field(field_path):
            return to_standard_date(value)

        return json_safe(value)

    def _option_id(self, options: FieldOptions, value: Any) -> Any:
        text = str(value).strip()
        option_id = options.id_for(text)
        if option_id is None and options.label_for(text) is not None:
            # already an id
            option_id = value
        return option_id

    def _encode_enum(self, field_path: str, options: FieldOptions, value: Any) -> Any:
        if is_blank(value):
            return None
        option_id = self._option_id(options, value)
        if option_id is None:
            logger.warning("Dropping unknown option %r for %s", value, field_path)
            return DROP
        return option_id

    def _encode_set(self, field_path: str, options: FieldOptions, value: Any) -> list[Any]:
        if is_blank(value):
            return []
        if isinstance(value, (list, tuple)):
            labels = [v for v in value if not is_blank(v)]
        else:
            labels = [part.strip() for part in str(value).split(self.delimiter) if part.strip()]

        ids = []
        for label in labels:
            option_id = self._option_id(options, label)
            if option_id is None:
                logger.warning("Dropping unknown option %r for %s", label, field_path)
                continue
            ids.append(option_id)
        return ids

    # ========================================================================
    # Inbound
    # ========================================================================

    def decode(self, field_path: str, value: Any) -> Any:
        """Render a resolved remote value as a cell value."""
        options = self.field_options.get(field_path)
        if options is not None and value is not None:
            if isinstance(value, (list, tuple)):
                ids = value
            elif options.kind == "set" and isinstance(value, str):
                ids = [part.strip() for part in value.split(",") if part.strip()]
            else:
                ids = [value]
            labels = [options.label_for(option_id) or str(option_id) for option_id in ids]
            return ", ".join(labels)
        return display_value(value)
