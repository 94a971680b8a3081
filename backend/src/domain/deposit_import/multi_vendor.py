"""Multi-vendor deposit files.

Some distributors send one report covering several vendors. Rows are grouped
by the vendor name column so each vendor's template can be applied, and the
templates of all vendors in a file are merged into one preview mapping.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from .mapping_v2 import (
    ColumnConfigV2,
    DepositMappingConfigV2,
    create_empty_deposit_mapping_v2,
    ensure_columns_for_targets,
    extract_deposit_mapping_v2_from_template_config,
)
from .normalize import normalize_key
from .template_fields import (
    TelarusTemplateFields,
    extract_template_fields_from_template_config,
    strip_telarus_generated_custom_fields_v2,
)

MAX_MISSING_VENDOR_ROWS = 25

MERGED_TEMPLATE_MAP_NAME = "Multi-vendor merged templates"
MERGED_ORIGIN = "multi-vendor-preview"
MERGED_COMPANY_NAME = "Multiple vendors"

_NON_NUMERIC = re.compile(r'[^0-9.\-]')


@dataclass
class VendorRowGroup:
    vendor_key: str
    vendor_name: str
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class VendorRowGrouping:
    """Rows per vendor plus the file line numbers of rows without a vendor."""

    groups: List[VendorRowGroup] = field(default_factory=list)
    missing_vendor_rows: List[int] = field(default_factory=list)


@dataclass
class MergedTemplateConfig:
    deposit_mapping_v2: Optional[DepositMappingConfigV2] = None
    template_fields: Optional[TelarusTemplateFields] = None


def parse_amount(value: Any) -> Optional[float]:
    """Lenient number parse for amount cells ('$1,234.50' -> 1234.5)."""
    if value is None:
        return None
    cleaned = _NON_NUMERIC.sub('', str(value))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _cell(row: List[str], index: Optional[int]) -> Optional[str]:
    if index is None or index < 0 or index >= len(row):
        return None
    value = row[index]
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def should_skip_multi_vendor_row(row: List[str], vendor_name: Optional[str]) -> bool:
    """True for summary lines such as 'Total' or 'Grand Totals'."""
    if vendor_name and vendor_name.lower().startswith("total"):
        return True
    first_cell = next((str(cell).strip() for cell in row if cell and str(cell).strip()), "")
    lowered = first_cell.lower()
    return lowered.startswith("total") or lowered.startswith("grand total")


def group_rows_by_vendor(
    rows: List[List[str]],
    vendor_name_index: int,
    usage_index: Optional[int] = None,
    commission_index: Optional[int] = None,
) -> VendorRowGrouping:
    """
    Group data rows by vendor name.

    Args:
        rows: Data rows (header row excluded)
        vendor_name_index: Column holding the vendor name
        usage_index: Column holding the usage amount, if mapped
        commission_index: Column holding the commission amount, if mapped

    Returns:
        Groups in first-seen order, keyed case-insensitively. Rows without a
        numeric usage or commission and summary rows are skipped; rows
        without a vendor are reported by file line number (header is line 1),
        at most MAX_MISSING_VENDOR_ROWS of them.
    """
    groups = {}
    missing_vendor_rows = []

    for row_index, row in enumerate(rows):
        row = row or []
        usage = parse_amount(_cell(row, usage_index))
        commission = parse_amount(_cell(row, commission_index))
        if usage is None and commission is None:
            continue

        vendor_name = _cell(row, vendor_name_index)
        if should_skip_multi_vendor_row(row, vendor_name):
            continue

        if not vendor_name:
            if len(missing_vendor_rows) < MAX_MISSING_VENDOR_ROWS:
                missing_vendor_rows.append(row_index + 2)
            continue

        vendor_key = vendor_name.lower()
        group = groups.get(vendor_key)
        if group is None:
            group = VendorRowGroup(vendor_key=vendor_key, vendor_name=vendor_name)
            groups[vendor_key] = group
        group.rows.append(row)

    return VendorRowGrouping(groups=list(groups.values()), missing_vendor_rows=missing_vendor_rows)


def merge_multi_vendor_template_configs(template_configs: Iterable[Any]) -> MergedTemplateConfig:
    """
    Merge the template configs of several vendors into one.

    The first config to define a target, column, custom field, header or
    options block wins. Generated reference custom fields are stripped
    before merging. Template field records are merged by normalized header
    name, first occurrence wins.
    """
    template_configs = list(template_configs)
    merged = create_empty_deposit_mapping_v2()
    has_mapping = False

    for config in template_configs:
        extracted = strip_telarus_generated_custom_fields_v2(
            extract_deposit_mapping_v2_from_template_config(config)
        )
        if extracted.is_empty():
            continue
        has_mapping = True

        for target_id, column_name in extracted.targets.items():
            if target_id and column_name and target_id not in merged.targets:
                merged.targets[target_id] = column_name

        for column_name, column_config in extracted.columns.items():
            if column_name not in merged.columns:
                merged.columns[column_name] = ColumnConfigV2(
                    mode=column_config.mode,
                    target_id=column_config.target_id,
                    custom_key=column_config.custom_key,
                )

        for custom_key, definition in extracted.custom_fields.items():
            if custom_key not in merged.custom_fields:
                merged.custom_fields[custom_key] = definition.model_copy()

        if merged.header is None and extracted.header is not None:
            merged.header = extracted.header.model_copy()
        if merged.options is None and extracted.options is not None:
            merged.options = extracted.options.model_copy()

    merged_fields = {}
    metadata = None
    for config in template_configs:
        template_fields = extract_template_fields_from_template_config(config)
        if template_fields is None:
            continue
        if metadata is None:
            metadata = template_fields
        for template_field in template_fields.fields:
            key = normalize_key(template_field.telarus_field_name) or template_field.telarus_field_name.strip().lower()
            if key and key not in merged_fields:
                merged_fields[key] = template_field

    merged_template_fields = None
    if merged_fields:
        merged_template_fields = TelarusTemplateFields(
            template_map_name=metadata.template_map_name or MERGED_TEMPLATE_MAP_NAME,
            origin=metadata.origin or MERGED_ORIGIN,
            company_name=metadata.company_name or MERGED_COMPANY_NAME,
            template_id=None,
            fields=list(merged_fields.values()),
        )

    return MergedTemplateConfig(
        deposit_mapping_v2=ensure_columns_for_targets(merged) if has_mapping else None,
        template_fields=merged_template_fields,
    )
