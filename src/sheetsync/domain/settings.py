"""
Sync settings domain models.

Every heuristic threshold the engine relies on (debounce windows, metadata
row detection, name tolerance, e-mail typo table) lives here so it can be
tuned per sheet from the JSON config instead of being hardcoded.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_EMAIL_DOMAIN_CORRECTIONS: Dict[str, str] = {
    "gmail.comm": "gmail.com",
    "gmail.con": "gmail.com",
    "gmail.cmo": "gmail.com",
    "gmial.com": "gmail.com",
    "gmai.com": "gmail.com",
    "gamil.com": "gmail.com",
    "googlemail.comm": "googlemail.com",
    "hotmail.comm": "hotmail.com",
    "hotmail.con": "hotmail.com",
    "hotmial.com": "hotmail.com",
    "yahoo.comm": "yahoo.com",
    "yahoo.con": "yahoo.com",
    "yaho.com": "yahoo.com",
    "outlook.comm": "outlook.com",
    "outlook.con": "outlook.com",
    "outlok.com": "outlook.com",
    "icloud.comm": "icloud.com",
}


class NormalizerSettings(BaseModel):
    """Settings for value canonicalization."""

    email_domain_corrections: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_EMAIL_DOMAIN_CORRECTIONS),
        description="Known domain typos mapped to the intended domain",
    )
    name_tolerance_enabled: bool = Field(
        default=True,
        description="Treat single trailing-keystroke differences in name fields as equal",
    )
    name_tolerance_min_length: int = Field(
        default=3,
        ge=1,
        le=64,
        description="Shorter name must have at least this many characters for the tolerance to apply",
    )
    list_delimiter: str = Field(default=",", min_length=1, max_length=3)

    @field_validator("email_domain_corrections")
    @classmethod
    def lowercase_domains(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Domains are compared lowercase."""
        return {k.strip().lower(): val.strip().lower() for k, val in v.items()}


class TrackerSettings(BaseModel):
    """Settings for the change tracker and its guards."""

    debounce_seconds: float = Field(
        default=5.0,
        ge=0,
        le=300,
        description="Window in which an identical status write for a cell is dropped",
    )
    undo_cooldown_seconds: float = Field(
        default=10.0,
        ge=0,
        le=600,
        description="How long an undo guard stays active after a row reverts",
    )
    metadata_markers: List[str] = Field(
        default_factory=lambda: ["timestamp", "last", "updated", "synced"],
        description="Substrings of the first cell that mark a metadata row",
    )
    metadata_min_filled_cells: int = Field(
        default=3,
        ge=0,
        le=50,
        description="Rows with fewer non-empty cells are not tracked",
    )
    operation_timeout_seconds: float = Field(
        default=1800.0,
        ge=1,
        le=86400,
        description="A pull/push flag older than this is considered stale",
    )

    @field_validator("metadata_markers")
    @classmethod
    def lowercase_markers(cls, v: List[str]) -> List[str]:
        return [m.strip().lower() for m in v if m and m.strip()]


class ColumnSettings(BaseModel):
    """Layout of the mirrored sheet."""

    id_column: int = Field(default=1, ge=1, description="Column holding the record id")
    tracking_label: str = Field(default="Sync Status", min_length=1)
    tracking_note: str = Field(
        default="This column tracks changes for two-way sync",
    )
    note_markers: List[str] = Field(default_factory=lambda: ["sync", "track"])
    sample_size: int = Field(default=20, ge=1, le=1000, description="Cells sampled per column")
    fields: List[str] = Field(
        default_factory=lambda: ["id", "name", "email.work", "phone.mobile", "owner_id.name"],
        description="Field paths pulled into columns, in order",
    )

    @field_validator("tracking_label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tracking_label cannot be blank")
        return v


class FieldOptions(BaseModel):
    """Option set of an enumerated field (label -> remote id)."""

    kind: Literal["enum", "set"] = "enum"
    options: Dict[str, Union[int, str]] = Field(default_factory=dict)

    def id_for(self, label: str) -> Union[int, str, None]:
        """Look up an option id by label, case-insensitive."""
        wanted = label.strip().lower()
        for option_label, option_id in self.options.items():
            if option_label.strip().lower() == wanted:
                return option_id
        return None

    def label_for(self, option_id: object) -> Optional[str]:
        for option_label, known_id in self.options.items():
            if str(known_id) == str(option_id):
                return option_label
        return None


class ApiSettings(BaseModel):
    """Remote API connection."""

    base_url: str = Field(default="https://api.pipedrive.com/v1")
    api_token: Optional[str] = Field(default=None, description="Bearer token")
    token_file: Optional[str] = Field(default=None, description="JSON file holding {'api_token': ...}")
    entity_type: str = Field(default="persons")
    timeout: int = Field(default=30, ge=1, le=300)
    page_size: int = Field(default=100, ge=1, le=500)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class SyncSettings(BaseModel):
    """
    Root configuration for one mirrored sheet.

    Loaded from JSON by the infrastructure ConfigLoader.
    """

    model_config = ConfigDict(extra="allow")

    sheet_name: str = Field(default="Sheet1", min_length=1)
    workbook_path: str = Field(default="output/mirror.xlsx")
    state_db_path: str = Field(default="output/sync_state.db")
    filter_id: Optional[str] = None

    columns: ColumnSettings = Field(default_factory=ColumnSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    normalizer: NormalizerSettings = Field(default_factory=NormalizerSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    labeled_groups: List[str] = Field(
        default_factory=lambda: ["email", "phone", "im"],
        description="Fields the remote stores as labeled arrays",
    )
    nested_containers: List[str] = Field(
        default_factory=lambda: ["custom_fields"],
        description="Fields the remote stores as nested key/value bags",
    )
    date_markers: List[str] = Field(
        default_factory=lambda: ["date", "_at", "_time", "deadline", "birthday"],
        description="Trailing words of a field name that mark a date-like field",
    )
    field_options: Dict[str, FieldOptions] = Field(
        default_factory=dict,
        description="Enumerated fields keyed by field path",
    )
