"""Legacy (version 1) deposit column mapping.

A v1 mapping assigns legacy line field ids (see fields.py) to header names
and records what to do with every other column. New templates are saved as
v2; v1 is still read from older template configs and migrated on load.

Persisted shape (under the template config's 'depositMapping' key):

    {
        "version": 1,
        "line": {"usage": "Total Bill", "commission": "Total Commission"},
        "columns": {"Circuit": {"mode": "custom", "customKey": "cf_circuit"}},
        "customFields": {"cf_circuit": {"label": "Circuit", "section": "additional"}},
        "header": {"depositName": null, ...},
        "options": {"hasHeaderRow": true, ...}
    }
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .fields import AUTO_FIELD_SYNONYMS, AUTO_MAPPING_PRIORITY, DEPOSIT_FIELD_IDS
from .header_resolver import resolve_spreadsheet_header
from .normalize import header_looks_like_rate, header_mentions_rate, normalize_key

DEPOSIT_MAPPING_KEY = "depositMapping"

MODE_TARGET = "target"
MODE_CUSTOM = "custom"
MODE_ADDITIONAL = "additional"
MODE_PRODUCT = "product"
MODE_IGNORE = "ignore"

V1_COLUMN_MODES = (MODE_CUSTOM, MODE_ADDITIONAL, MODE_PRODUCT, MODE_IGNORE)

SECTION_ADDITIONAL = "additional"
SECTION_PRODUCT = "product"


class CustomFieldDefinition(BaseModel):
    """User-declared field for a column that has no catalog target."""

    label: str
    section: str = SECTION_ADDITIONAL


class MappingHeader(BaseModel):
    """Deposit-level values taken from the file rather than from line columns."""

    model_config = ConfigDict(populate_by_name=True)

    deposit_name: Optional[str] = Field(None, alias="depositName")
    payment_date_column: Optional[str] = Field(None, alias="paymentDateColumn")
    customer_account_column: Optional[str] = Field(None, alias="customerAccountColumn")


class MappingOptions(BaseModel):
    """Parsing hints stored with a template."""

    model_config = ConfigDict(populate_by_name=True)

    has_header_row: Optional[bool] = Field(None, alias="hasHeaderRow")
    date_format_hint: Optional[str] = Field(None, alias="dateFormatHint")
    number_format_hint: Optional[str] = Field(None, alias="numberFormatHint")


class ColumnConfigV1(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: str
    custom_key: Optional[str] = Field(None, alias="customKey")


class DepositMappingConfigV1(BaseModel):
    """Legacy mapping keyed by fixed line field ids."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    line: Dict[str, str] = Field(default_factory=dict)
    columns: Dict[str, ColumnConfigV1] = Field(default_factory=dict)
    custom_fields: Dict[str, CustomFieldDefinition] = Field(default_factory=dict, alias="customFields")
    header: Optional[MappingHeader] = None
    options: Optional[MappingOptions] = None


@dataclass(frozen=True)
class ColumnSelection:
    """What the user picked for one column.

    type is one of 'canonical' (v1 field), 'target' (v2 target), 'custom',
    'additional', 'product' (v1 only) or 'ignore'.
    """

    type: str
    field_id: Optional[str] = None
    target_id: Optional[str] = None
    custom_key: Optional[str] = None

    @classmethod
    def canonical(cls, field_id: str) -> "ColumnSelection":
        return cls(type="canonical", field_id=field_id)

    @classmethod
    def target(cls, target_id: str) -> "ColumnSelection":
        return cls(type=MODE_TARGET, target_id=target_id)

    @classmethod
    def custom(cls, custom_key: str) -> "ColumnSelection":
        return cls(type=MODE_CUSTOM, custom_key=custom_key)

    @classmethod
    def additional(cls) -> "ColumnSelection":
        return cls(type=MODE_ADDITIONAL)

    @classmethod
    def product(cls) -> "ColumnSelection":
        return cls(type=MODE_PRODUCT)

    @classmethod
    def ignore(cls) -> "ColumnSelection":
        return cls(type=MODE_IGNORE)


# Lenient readers shared by v1 and v2 extraction. Stored configs are user
# data and may be hand-edited, so invalid entries are dropped, not raised.

def read_object(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def read_trimmed_string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def read_custom_fields(raw: Any) -> Dict[str, CustomFieldDefinition]:
    custom_fields = {}
    for custom_key, definition in read_object(raw).items():
        if not custom_key.strip() or not isinstance(definition, dict):
            continue
        label = read_trimmed_string(definition.get("label"))
        if not label:
            continue
        section = SECTION_PRODUCT if definition.get("section") == SECTION_PRODUCT else SECTION_ADDITIONAL
        custom_fields[custom_key] = CustomFieldDefinition(label=label, section=section)
    return custom_fields


def read_header(raw: Any) -> MappingHeader:
    header = read_object(raw)

    def text(key: str) -> Optional[str]:
        value = header.get(key)
        return value if isinstance(value, str) else None

    return MappingHeader(
        deposit_name=text("depositName"),
        payment_date_column=text("paymentDateColumn"),
        customer_account_column=text("customerAccountColumn"),
    )


def read_options(raw: Any) -> MappingOptions:
    options = read_object(raw)
    has_header_row = options.get("hasHeaderRow")
    date_format_hint = options.get("dateFormatHint")
    number_format_hint = options.get("numberFormatHint")
    return MappingOptions(
        has_header_row=has_header_row if isinstance(has_header_row, bool) else None,
        date_format_hint=date_format_hint if isinstance(date_format_hint, str) else None,
        number_format_hint=number_format_hint if isinstance(number_format_hint, str) else None,
    )


def generate_custom_key(label: str, existing_keys) -> str:
    """
    Derive a readable custom field key from its label.

    'Circuit ID' becomes 'cf_circuit_id'; collisions get '_2', '_3', ...
    Blank labels fall back to 'cf_field'.
    """
    base_key = "cf_" + (normalize_key(label).replace(" ", "_") or "field")
    custom_key = base_key
    counter = 1
    while custom_key in existing_keys:
        counter += 1
        custom_key = f"{base_key}_{counter}"
    return custom_key


def amount_header_filter(field_id: str):
    """Header predicate keeping amount fields off rate-like headers."""
    if field_id == "commission":
        return lambda header: not header_looks_like_rate(header)
    if field_id == "usage":
        return lambda header: not header_mentions_rate(header)
    return None


def find_first_header(
    headers: List[str],
    candidates: List[str],
    used,
    predicate=None,
) -> Optional[str]:
    """First unclaimed header, in file order, matching any synonym."""
    normalized_candidates = {key for key in (normalize_key(candidate) for candidate in candidates) if key}
    for header in headers:
        if header in used:
            continue
        if normalize_key(header) not in normalized_candidates:
            continue
        if predicate and not predicate(header):
            continue
        return header
    return None


def find_best_header(
    headers: List[str],
    candidates: List[str],
    used,
    predicate=None,
) -> Optional[str]:
    """First unclaimed header matching a synonym, trying synonyms in order."""
    normalized_candidates = [key for key in (normalize_key(candidate) for candidate in candidates) if key]
    for candidate in normalized_candidates:
        for header in headers:
            if header in used:
                continue
            if normalize_key(header) != candidate:
                continue
            if predicate and not predicate(header):
                continue
            return header
    return None


def resolve_recorded_header(headers: List[str], recorded_header: str) -> Optional[str]:
    """Live header for a recorded one, or None when missing or ambiguous."""
    if not recorded_header or not recorded_header.strip():
        return None
    resolution = resolve_spreadsheet_header(headers, recorded_header)
    return resolution.header if resolution.ok else None


def create_empty_deposit_mapping() -> DepositMappingConfigV1:
    return DepositMappingConfigV1()


def extract_deposit_mapping_from_template_config(config: Any) -> DepositMappingConfigV1:
    """
    Read a v1 mapping from a stored template config.

    Anything that is not a version 1 'depositMapping' object yields an empty
    mapping. Line entries for unknown field ids, blank headers, columns with
    an unknown mode and custom fields without a label are dropped.
    """
    deposit_mapping = read_object(config).get(DEPOSIT_MAPPING_KEY)
    if not isinstance(deposit_mapping, dict) or deposit_mapping.get("version") != 1:
        return create_empty_deposit_mapping()

    raw_line = read_object(deposit_mapping.get("line"))
    line = {}
    for field_id in DEPOSIT_FIELD_IDS:
        header = read_trimmed_string(raw_line.get(field_id))
        if header:
            line[field_id] = header

    columns = {}
    for column_name, raw in read_object(deposit_mapping.get("columns")).items():
        if not column_name.strip() or not isinstance(raw, dict):
            continue
        mode = raw.get("mode")
        if mode not in V1_COLUMN_MODES:
            continue
        custom_key = read_trimmed_string(raw.get("customKey")) or None
        columns[column_name] = ColumnConfigV1(mode=mode, custom_key=custom_key)

    return DepositMappingConfigV1(
        line=line,
        columns=columns,
        custom_fields=read_custom_fields(deposit_mapping.get("customFields")),
        header=read_header(deposit_mapping.get("header")),
        options=read_options(deposit_mapping.get("options")),
    )


def serialize_deposit_mapping_for_template(mapping: DepositMappingConfigV1) -> Dict[str, Any]:
    """Wrap a v1 mapping for storage in a template config."""
    data = mapping.model_dump(by_alias=True, exclude_none=True)
    data["version"] = 1
    return {DEPOSIT_MAPPING_KEY: data}


def apply_auto_mapping(headers: List[str], mapping: DepositMappingConfigV1) -> DepositMappingConfigV1:
    """
    Fill unmapped line fields from header synonyms.

    Existing assignments are never changed and a header already assigned to
    a field is never claimed again.
    """
    next_mapping = mapping.model_copy(deep=True)
    used = {header for header in next_mapping.line.values() if header}

    for field_id in AUTO_MAPPING_PRIORITY:
        if field_id not in DEPOSIT_FIELD_IDS or next_mapping.line.get(field_id):
            continue
        candidates = AUTO_FIELD_SYNONYMS.get(field_id)
        if not candidates:
            continue
        match = find_first_header(headers, candidates, used, amount_header_filter(field_id))
        if match is None:
            continue
        next_mapping.line[field_id] = match
        used.add(match)

    return next_mapping


def get_column_selection(mapping: DepositMappingConfigV1, column_name: str) -> ColumnSelection:
    for field_id, mapped_column in mapping.line.items():
        if mapped_column == column_name:
            return ColumnSelection.canonical(field_id)

    column_config = mapping.columns.get(column_name)
    if column_config is None:
        return ColumnSelection.additional()

    if column_config.mode == MODE_CUSTOM:
        if column_config.custom_key and column_config.custom_key in mapping.custom_fields:
            return ColumnSelection.custom(column_config.custom_key)
        return ColumnSelection.additional()

    if column_config.mode == MODE_PRODUCT:
        return ColumnSelection.product()
    if column_config.mode == MODE_IGNORE:
        return ColumnSelection.ignore()
    return ColumnSelection.additional()


def set_column_selection(
    mapping: DepositMappingConfigV1,
    column_name: str,
    selection: ColumnSelection,
) -> DepositMappingConfigV1:
    """
    Record the user's choice for one column.

    A column maps to at most one field and a field to at most one column:
    any field pointing at the column is cleared, and a canonical selection
    moves the field off its previous column.
    """
    next_mapping = mapping.model_copy(deep=True)
    next_mapping.line = {
        field_id: mapped_column
        for field_id, mapped_column in next_mapping.line.items()
        if mapped_column != column_name
    }
    next_mapping.columns.pop(column_name, None)

    if selection.type == "canonical":
        next_mapping.line.pop(selection.field_id, None)
        next_mapping.line[selection.field_id] = column_name
    elif selection.type == MODE_CUSTOM:
        next_mapping.columns[column_name] = ColumnConfigV1(mode=MODE_CUSTOM, custom_key=selection.custom_key)
    elif selection.type in (MODE_PRODUCT, MODE_IGNORE):
        next_mapping.columns[column_name] = ColumnConfigV1(mode=selection.type)

    return next_mapping


def create_custom_field_for_column(
    mapping: DepositMappingConfigV1,
    column_name: str,
    label: str,
    section: str = SECTION_ADDITIONAL,
) -> Tuple[DepositMappingConfigV1, str]:
    """Declare a custom field for a column. Returns (new mapping, custom key)."""
    custom_key = generate_custom_key(label, mapping.custom_fields)
    next_mapping = set_column_selection(mapping, column_name, ColumnSelection.custom(custom_key))
    next_mapping.custom_fields[custom_key] = CustomFieldDefinition(label=label.strip(), section=section)
    return next_mapping, custom_key


def seed_deposit_mapping(
    headers: List[str],
    template_mapping: Optional[DepositMappingConfigV1] = None,
) -> DepositMappingConfigV1:
    """
    Build the starting mapping for an upload.

    Recorded headers of the template are re-resolved against the live
    headers; entries that cannot be resolved unambiguously are dropped.
    Auto-mapping then fills the remaining fields.
    """
    if template_mapping is None:
        return apply_auto_mapping(headers, create_empty_deposit_mapping())

    seeded = template_mapping.model_copy(deep=True)

    line = {}
    claimed = set()
    for field_id, recorded_header in template_mapping.line.items():
        resolved = resolve_recorded_header(headers, recorded_header)
        if resolved is None or resolved in claimed:
            continue
        line[field_id] = resolved
        claimed.add(resolved)
    seeded.line = line

    columns = {}
    for recorded_header, column_config in template_mapping.columns.items():
        resolved = resolve_recorded_header(headers, recorded_header)
        if resolved is None:
            continue
        columns[resolved] = column_config.model_copy()
    seeded.columns = columns

    return apply_auto_mapping(headers, seeded)
