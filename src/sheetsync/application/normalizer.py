"""
Value Normalizer - canonical forms for change comparison.

Two cell values are considered the same when their canonical strings are
equal. The canonical form depends on the kind of field, derived from the
field path:

    phone        digits only ("+1 (415) 555-0100" -> "14155550100")
    email        lowercased, known domain typos corrected
    name         whitespace collapsed; near-miss keystrokes tolerated pairwise
    multi-option items trimmed, sorted, joined with ", "
    generic      whitespace collapsed, numbers in plain decimal form

Structural values (labeled arrays, nested bags) are collapsed to their
representative scalar first. Normalization never raises: any failure falls
back to the naive str() form.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable

from sheetsync.domain.field_value import classify, json_safe, to_scalar
from sheetsync.domain.settings import NormalizerSettings, SyncSettings

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_LEADING_ZERO_RE = re.compile(r"^0\d+$")
_NON_DIGIT_RE = re.compile(r"\D")

# Integral values with more digits than this keep scientific form
_MAX_PLAIN_DIGITS = 40


class FieldKind(str, Enum):
    """Comparison rules applied to a field."""

    PHONE = "phone"
    EMAIL = "email"
    NAME = "name"
    MULTI_OPTION = "multi_option"
    GENERIC = "generic"


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def naive_form(value: Any) -> str:
    """Plain string form used when no rule applies (None -> "")."""
    return "" if value is None else str(value)


def format_number(number: Decimal) -> str:
    """
    Render a decimal without exponent or trailing zeros.

    12300000000 and 1.23E+10 both render as "12300000000"; 2.50 as "2.5".
    """
    if number == number.to_integral_value():
        if number.adjusted() > _MAX_PLAIN_DIGITS:
            return str(number.normalize())
        return str(int(number))
    return format(number.normalize(), "f")


def parse_number(value: Any) -> Decimal | None:
    """Parse ints, floats and numeric strings; None if not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(repr(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, str):
        text = value.strip()
        if not _NUMBER_RE.match(text) or _LEADING_ZERO_RE.match(text):
            return None
        try:
            return Decimal(text)
        except InvalidOperation:
            return None
    return None


def names_near_miss(a: str, b: str, min_length: int = 3) -> bool:
    """
    Check if two names differ by a single trailing keystroke.

    Accepted differences:
        - one extra character at the last or second-to-last position
        - same length, one differing character within the last two positions
    The shorter name must have at least min_length characters.
    """
    if a == b:
        return False
    short, long = (a, b) if len(a) <= len(b) else (b, a)
    if len(short) < min_length:
        return False

    if len(long) == len(short) + 1:
        return long[:-1] == short or (long[:-2] + long[-1:]) == short

    if len(long) == len(short):
        diffs = [i for i, (x, y) in enumerate(zip(a, b)) if x != y]
        return len(diffs) == 1 and diffs[0] >= len(a) - 2

    return False


class ValueNormalizer:
    """
    Canonicalizes cell and record values for comparison.

    Usage:
        normalizer = ValueNormalizer.from_settings(settings)
        normalizer.normalize("J.Doe@GMAIL.COMM", "email.work")  # "j.doe@gmail.com"
        normalizer.equivalent("Simpson", "Simpsonm", "name")    # True
    """

    def __init__(
        self,
        settings: NormalizerSettings | None = None,
        multi_option_fields: Iterable[str] = (),
    ) -> None:
        self.settings = settings or NormalizerSettings()
        self.multi_option_fields = {f.strip() for f in multi_option_fields}

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> ValueNormalizer:
        multi = [path for path, opts in settings.field_options.items() if opts.kind == "set"]
        return cls(settings.normalizer, multi)

    # ========================================================================
    # Field Kinds
    # ========================================================================

    def kind_of(self, field_path: str) -> FieldKind:
        """Derive the comparison kind from a field path."""
        path = (field_path or "").strip()
        if path in self.multi_option_fields:
            return FieldKind.MULTI_OPTION

        segments = [s for s in path.lower().split(".") if s]
        if not segments:
            return FieldKind.GENERIC

        if segments[0] == "phone" or segments[-1] == "phone":
            return FieldKind.PHONE
        if segments[0] == "email" or segments[-1] == "email":
            return FieldKind.EMAIL
        if "name" in segments[-1]:
            return FieldKind.NAME
        return FieldKind.GENERIC

    @staticmethod
    def _label_of(field_path: str) -> str | None:
        """Label segment of a labeled-group path ("email.work" -> "work")."""
        segments = (field_path or "").split(".")
        if len(segments) >= 2 and not segments[1].isdigit():
            return segments[1]
        return None

    # ========================================================================
    # Public API
    # ========================================================================

    def normalize(self, value: Any, field_path: str = "") -> str:
        """
        Canonical string for a single value.

        Name near-misses are not folded here: normalize("Simpson") and
        normalize("Simpsonm") differ. Compare names with equivalent() or
        normalize_pair(), which look at both values together.

        Args:
            value: Raw cell value or remote field value (any shape)
            field_path: Column header / field path deciding the rules

        Returns:
            Canonical string; "" for None and blank values
        """
        try:
            return self._normalize(value, field_path)
        except Exception as e:  # comparison must never fail an edit
            logger.debug("Normalization fallback for %s (%r): %s", field_path, value, e)
            return naive_form(value)

    def normalize_pair(self, a: Any, b: Any, field_path: str = "") -> tuple[str, str]:
        """
        Canonical strings for two values compared against each other.

        Identical to normalize() applied to both, except that name fields
        within a single trailing keystroke of each other both collapse to
        their common prefix.
        """
        left = self.normalize(a, field_path)
        right = self.normalize(b, field_path)
        if (
            left != right
            and self.settings.name_tolerance_enabled
            and self.kind_of(field_path) is FieldKind.NAME
            and names_near_miss(left, right, self.settings.name_tolerance_min_length)
        ):
            common = os.path.commonprefix([left, right])
            return common, common
        return left, right

    def equivalent(self, a: Any, b: Any, field_path: str = "") -> bool:
        left, right = self.normalize_pair(a, b, field_path)
        return left == right

    # ========================================================================
    # Rules
    # ========================================================================

    def _normalize(self, value: Any, field_path: str) -> str:
        kind = self.kind_of(field_path)
        scalar = to_scalar(classify(value), self._label_of(field_path))

        if scalar is None:
            return ""

        if kind is FieldKind.MULTI_OPTION:
            return self._normalize_multi(scalar)

        if isinstance(scalar, tuple):
            # plain list of values outside a configured option field
            return ", ".join(self._normalize_generic(v) for v in scalar if v is not None)

        if kind is FieldKind.PHONE:
            return self._normalize_phone(scalar)
        if kind is FieldKind.EMAIL:
            return self._normalize_email(scalar)
        return self._normalize_generic(scalar)

    def _normalize_generic(self, value: Any) -> str:
        if isinstance(value, bool):
            return "Yes" if value else "No"

        if isinstance(value, (datetime, date, time)):
            return str(json_safe(value))

        number = parse_number(value)
        if number is not None:
            return format_number(number)

        return _collapse_whitespace(str(value))

    def _normalize_phone(self, value: Any) -> str:
        number = parse_number(value)
        text = format_number(number) if number is not None else str(value)
        return _NON_DIGIT_RE.sub("", text)

    def _normalize_email(self, value: Any) -> str:
        text = _collapse_whitespace(str(value)).lower()
        if "@" not in text:
            return text
        local, domain = text.rsplit("@", 1)
        domain = self.settings.email_domain_corrections.get(domain, domain)
        return f"{local}@{domain}"

    def _normalize_multi(self, value: Any) -> str:
        if isinstance(value, (tuple, list)):
            items = [self._normalize_generic(v) for v in value if v is not None]
        else:
            text = str(value)
            items = [
                _collapse_whitespace(part)
                for part in text.split(self.settings.list_delimiter)
            ]
        return ", ".join(sorted(item for item in items if item))
