"""Deposit column mapping, version 2.

v2 maps open-ended catalog target ids (see field_catalog.py) to header
names. Invariants kept by every function in this module:

1. every targets[t] = h has a mirrored columns[h] = {mode: target, targetId: t}
2. a header maps to at most one target
3. a target maps to at most one header

ensure_columns_for_targets() re-derives (1) and enforces (2) after every
construction, migration, auto-map and seed. Mutating functions return a new
mapping and never touch their input.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .field_catalog import LEGACY_FIELD_ID_TO_TARGET_ID, FieldTarget
from .fields import AUTO_FIELD_SYNONYMS, AUTO_MAPPING_PRIORITY
from .mapping_v1 import (
    DEPOSIT_MAPPING_KEY,
    MODE_ADDITIONAL,
    MODE_CUSTOM,
    MODE_IGNORE,
    MODE_TARGET,
    SECTION_ADDITIONAL,
    ColumnSelection,
    CustomFieldDefinition,
    DepositMappingConfigV1,
    MappingHeader,
    MappingOptions,
    amount_header_filter,
    extract_deposit_mapping_from_template_config,
    find_best_header,
    generate_custom_key,
    read_custom_fields,
    read_header,
    read_object,
    read_options,
    read_trimmed_string,
    resolve_recorded_header,
)

logger = logging.getLogger(__name__)

V2_COLUMN_MODES = (MODE_TARGET, MODE_CUSTOM, MODE_ADDITIONAL, MODE_IGNORE)


class ColumnConfigV2(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: str
    target_id: Optional[str] = Field(None, alias="targetId")
    custom_key: Optional[str] = Field(None, alias="customKey")


class DepositMappingConfigV2(BaseModel):
    """Current mapping format: catalog target id -> header name."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 2
    targets: Dict[str, str] = Field(default_factory=dict)
    columns: Dict[str, ColumnConfigV2] = Field(default_factory=dict)
    custom_fields: Dict[str, CustomFieldDefinition] = Field(default_factory=dict, alias="customFields")
    header: Optional[MappingHeader] = None
    options: Optional[MappingOptions] = None

    def is_empty(self) -> bool:
        return not (self.targets or self.columns or self.custom_fields)


def create_empty_deposit_mapping_v2() -> DepositMappingConfigV2:
    return DepositMappingConfigV2()


def ensure_columns_for_targets(mapping: DepositMappingConfigV2) -> DepositMappingConfigV2:
    """
    Normalize a mapping so that targets and columns agree.

    - a target whose header is already claimed by an earlier target is dropped
    - every remaining target gets a columns entry {mode: target, targetId}
    - target-mode columns no target points at are removed
    """
    next_mapping = mapping.model_copy(deep=True)

    targets: Dict[str, str] = {}
    claimed: Dict[str, str] = {}
    for target_id, column_name in next_mapping.targets.items():
        if not column_name.strip():
            continue
        if column_name in claimed:
            logger.debug(
                f"Dropping target {target_id}: column '{column_name}' already mapped to {claimed[column_name]}"
            )
            continue
        targets[target_id] = column_name
        claimed[column_name] = target_id
    next_mapping.targets = targets

    for column_name, config in list(next_mapping.columns.items()):
        if config.mode == MODE_TARGET and claimed.get(column_name) != config.target_id:
            del next_mapping.columns[column_name]

    for target_id, column_name in targets.items():
        existing = next_mapping.columns.get(column_name)
        if existing and existing.mode == MODE_TARGET and existing.target_id == target_id:
            continue
        next_mapping.columns[column_name] = ColumnConfigV2(mode=MODE_TARGET, target_id=target_id)

    return next_mapping


def _read_targets(raw: Any) -> Dict[str, str]:
    targets = {}
    for target_id, column_name in read_object(raw).items():
        column_name = read_trimmed_string(column_name)
        if not target_id.strip() or not column_name:
            continue
        targets[target_id.strip()] = column_name
    return targets


def _read_columns(raw: Any) -> Dict[str, ColumnConfigV2]:
    columns = {}
    for column_name, config in read_object(raw).items():
        if not column_name.strip() or not isinstance(config, dict):
            continue
        mode = config.get("mode")
        if mode not in V2_COLUMN_MODES:
            continue
        columns[column_name] = ColumnConfigV2(
            mode=mode,
            target_id=read_trimmed_string(config.get("targetId")) or None,
            custom_key=read_trimmed_string(config.get("customKey")) or None,
        )
    return columns


def extract_deposit_mapping_v2_from_template_config(config: Any) -> DepositMappingConfigV2:
    """
    Read the mapping stored in a template config as v2.

    Version 2 blobs are read leniently, version 1 blobs are read and
    migrated, anything else yields an empty mapping.
    """
    deposit_mapping = read_object(config).get(DEPOSIT_MAPPING_KEY)
    if not isinstance(deposit_mapping, dict):
        return create_empty_deposit_mapping_v2()

    version = deposit_mapping.get("version")
    if version == 2:
        return ensure_columns_for_targets(
            DepositMappingConfigV2(
                targets=_read_targets(deposit_mapping.get("targets")),
                columns=_read_columns(deposit_mapping.get("columns")),
                custom_fields=read_custom_fields(deposit_mapping.get("customFields")),
                header=read_header(deposit_mapping.get("header")),
                options=read_options(deposit_mapping.get("options")),
            )
        )

    if version == 1:
        return convert_deposit_mapping_v1_to_v2(extract_deposit_mapping_from_template_config(config))

    return create_empty_deposit_mapping_v2()


def serialize_deposit_mapping_for_template_v2(mapping: DepositMappingConfigV2) -> Dict[str, Any]:
    """Wrap a v2 mapping for storage in a template config."""
    data = mapping.model_dump(by_alias=True, exclude_none=True)
    data["version"] = 2
    return {DEPOSIT_MAPPING_KEY: data}


def convert_deposit_mapping_v1_to_v2(mapping: DepositMappingConfigV1) -> DepositMappingConfigV2:
    """
    Migrate a legacy mapping.

    Legacy field ids are translated to target ids, 'product' columns become
    'additional' (v2 has no product mode), custom fields, header and options
    carry over unchanged.
    """
    targets = {}
    for field_id, column_name in mapping.line.items():
        target_id = LEGACY_FIELD_ID_TO_TARGET_ID.get(field_id)
        if not target_id or not isinstance(column_name, str) or not column_name.strip():
            continue
        targets[target_id] = column_name.strip()

    columns = {}
    for column_name, config in mapping.columns.items():
        if not column_name.strip():
            continue
        if config.mode == MODE_CUSTOM:
            columns[column_name] = ColumnConfigV2(mode=MODE_CUSTOM, custom_key=config.custom_key)
        elif config.mode == MODE_IGNORE:
            columns[column_name] = ColumnConfigV2(mode=MODE_IGNORE)
        else:
            columns[column_name] = ColumnConfigV2(mode=MODE_ADDITIONAL)

    return ensure_columns_for_targets(
        DepositMappingConfigV2(
            targets=targets,
            columns=columns,
            custom_fields={key: value.model_copy() for key, value in mapping.custom_fields.items()},
            header=mapping.header.model_copy() if mapping.header else None,
            options=mapping.options.model_copy() if mapping.options else None,
        )
    )


def migrate_deposit_mapping_to_v2(mapping) -> DepositMappingConfigV2:
    """Return any mapping as a normalized v2 mapping (v2 input passes through)."""
    if isinstance(mapping, DepositMappingConfigV2):
        return ensure_columns_for_targets(mapping)
    return convert_deposit_mapping_v1_to_v2(mapping)


def apply_auto_mapping_v2(headers: List[str], mapping: DepositMappingConfigV2) -> DepositMappingConfigV2:
    """
    Fill unmapped targets from header synonyms.

    Targets are visited in AUTO_MAPPING_PRIORITY order; for each, synonyms
    are tried in order and the first unclaimed header whose normalized key
    equals the synonym wins. Existing assignments are never changed.
    """
    next_mapping = mapping.model_copy(deep=True)
    used = {column_name for column_name in next_mapping.targets.values() if column_name}
    used.update(
        column_name
        for column_name, config in next_mapping.columns.items()
        if config.mode == MODE_TARGET
    )

    for field_id in AUTO_MAPPING_PRIORITY:
        target_id = LEGACY_FIELD_ID_TO_TARGET_ID.get(field_id)
        if not target_id or next_mapping.targets.get(target_id):
            continue
        candidates = AUTO_FIELD_SYNONYMS.get(field_id)
        if not candidates:
            continue

        match = find_best_header(headers, candidates, used, amount_header_filter(field_id))
        if match is None:
            continue
        next_mapping.targets[target_id] = match
        used.add(match)

    return ensure_columns_for_targets(next_mapping)


def get_column_selection_v2(mapping: DepositMappingConfigV2, column_name: str) -> ColumnSelection:
    column_config = mapping.columns.get(column_name)
    if column_config and column_config.mode == MODE_TARGET and column_config.target_id:
        return ColumnSelection.target(column_config.target_id)

    for target_id, mapped_column in mapping.targets.items():
        if mapped_column == column_name:
            return ColumnSelection.target(target_id)

    if column_config is None:
        return ColumnSelection.additional()

    if column_config.mode == MODE_CUSTOM:
        if column_config.custom_key and column_config.custom_key in mapping.custom_fields:
            return ColumnSelection.custom(column_config.custom_key)
        return ColumnSelection.additional()

    if column_config.mode == MODE_IGNORE:
        return ColumnSelection.ignore()
    return ColumnSelection.additional()


def set_column_selection_v2(
    mapping: DepositMappingConfigV2,
    column_name: str,
    selection: ColumnSelection,
) -> DepositMappingConfigV2:
    """
    Record the user's choice for one column.

    Targets pointing at the column are cleared first. A target selection
    also moves the target off its previous column, whose stale target entry
    is removed. Any other selection records the column's mode.

    Raises:
        ValueError: If a target or custom selection lacks its id/key
    """
    next_mapping = mapping.model_copy(deep=True)
    next_mapping.targets = {
        target_id: mapped_column
        for target_id, mapped_column in next_mapping.targets.items()
        if mapped_column != column_name
    }

    if selection.type == MODE_TARGET:
        if not selection.target_id:
            raise ValueError("Target selection requires a target_id")
        previous_column = next_mapping.targets.pop(selection.target_id, None)
        if previous_column is not None:
            previous_config = next_mapping.columns.get(previous_column)
            if previous_config and previous_config.mode == MODE_TARGET:
                del next_mapping.columns[previous_column]
        next_mapping.targets[selection.target_id] = column_name
        next_mapping.columns[column_name] = ColumnConfigV2(mode=MODE_TARGET, target_id=selection.target_id)
        return next_mapping

    if selection.type == MODE_CUSTOM:
        if not selection.custom_key:
            raise ValueError("Custom selection requires a custom_key")
        next_mapping.columns[column_name] = ColumnConfigV2(mode=MODE_CUSTOM, custom_key=selection.custom_key)
    elif selection.type == MODE_IGNORE:
        next_mapping.columns[column_name] = ColumnConfigV2(mode=MODE_IGNORE)
    else:
        next_mapping.columns[column_name] = ColumnConfigV2(mode=MODE_ADDITIONAL)

    return next_mapping


def create_custom_field_for_column_v2(
    mapping: DepositMappingConfigV2,
    column_name: str,
    label: str,
    section: str = SECTION_ADDITIONAL,
) -> Tuple[DepositMappingConfigV2, str]:
    """
    Declare a custom field for a column and select it.

    Returns:
        (new mapping, generated custom key), e.g. 'cf_circuit_id'
    """
    custom_key = generate_custom_key(label, mapping.custom_fields)
    next_mapping = set_column_selection_v2(mapping, column_name, ColumnSelection.custom(custom_key))
    next_mapping.custom_fields[custom_key] = CustomFieldDefinition(label=label.strip(), section=section)
    return next_mapping, custom_key


def seed_deposit_mapping_v2(
    headers: List[str],
    template_mapping: Optional[DepositMappingConfigV2] = None,
) -> DepositMappingConfigV2:
    """
    Build the starting mapping for an upload.

    Args:
        headers: Live headers of the uploaded file
        template_mapping: Saved or reference template mapping, if any

    Returns:
        Template entries whose recorded header resolves unambiguously
        (renamed to the live header), completed by auto-mapping. Entries
        that are not found or ambiguous are dropped.
    """
    if template_mapping is None:
        return apply_auto_mapping_v2(headers, create_empty_deposit_mapping_v2())

    seeded = template_mapping.model_copy(deep=True)

    targets = {}
    dropped = 0
    for target_id, recorded_header in template_mapping.targets.items():
        resolved = resolve_recorded_header(headers, recorded_header)
        if resolved is None:
            dropped += 1
            continue
        targets[target_id] = resolved
    seeded.targets = targets

    columns = {}
    for recorded_header, config in template_mapping.columns.items():
        if config.mode == MODE_TARGET:
            continue
        resolved = resolve_recorded_header(headers, recorded_header)
        if resolved is None:
            continue
        columns[resolved] = config.model_copy()
    seeded.columns = columns

    if dropped:
        logger.info(f"Dropped {dropped} template targets whose headers are missing or ambiguous in this file")

    return apply_auto_mapping_v2(headers, ensure_columns_for_targets(seeded))


def get_mapped_targets(
    mapping: DepositMappingConfigV2,
    targets: Iterable[FieldTarget],
) -> Dict[str, str]:
    """Target label (or id, if not in the catalog) -> mapped header."""
    labels = {target.id: target.label for target in targets}
    return {
        labels.get(target_id, target_id): column_name
        for target_id, column_name in mapping.targets.items()
        if column_name
    }
