"""Telarus vendor map master table - known deposit report layouts.

The master CSV lists, per origin (distributor) and company (vendor), which
report header feeds which commissable field. It has two blocks, each opened
by its own header row:

    Template Map Name,Origin,Company Name,Template ID,Commission Type,Field ID,Telarus CommonFields,Commissable Field Label
    ... rows applying to every company of an origin ...
    Template Map Name,Origin,Company Name,Template ID,Commission Type,Field ID,Telarus fieldName,Commissable Field Label
    ... rows for one company ...

The table is loaded once per process and never modified.
"""

import csv
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from config import get_settings
from domain.deposit_import.field_catalog import LEGACY_FIELD_ID_TO_TARGET_ID
from domain.deposit_import.mapping_v1 import MODE_ADDITIONAL
from domain.deposit_import.mapping_v2 import (
    ColumnConfigV2,
    DepositMappingConfigV2,
    ensure_columns_for_targets,
)
from domain.deposit_import.normalize import normalize_key, tokenize
from domain.deposit_import.template_fields import (
    BLOCK_COMMON,
    BLOCK_TEMPLATE,
    TelarusTemplateField,
    TelarusTemplateFields,
)
from observability.metrics import template_matches_total

logger = logging.getLogger(__name__)

BLOCK_MARKER = "Template Map Name"
COMMON_FIELDS_MARKER = "Telarus CommonFields"
TEMPLATE_FIELDS_MARKER = "Telarus fieldName"

DEFAULT_ORIGIN = "Telarus"
DEFAULT_ALL = "ALL"

MIN_TOKEN_OVERLAP_RATIO = 0.6

# Commissable labels with a canonical line field.
COMMISSABLE_LABEL_TO_FIELD_ID: Dict[str, str] = {
    "Actual Usage - Gross": "usage",
    "Actual Usage": "usage",
    "Actual Commission": "commission",
    "Actual Commission Rate %": "commissionRate",
    "Account Legal Name": "accountNameRaw",
    "Company Name": "accountNameRaw",
    "Vendor - Account ID": "accountIdVendor",
    "Customer Account": "accountIdVendor",
    "Vendor Name": "vendorNameRaw",
    "Distributor Name": "distributorNameRaw",
    "Vendor - Customer ID": "customerIdVendor",
    "Vendor - Order ID": "orderIdVendor",
    "Vendor - Product Name": "productNameRaw",
    "Vendor - Location  ID": "locationId",
    "Payment Date": "paymentDate",
}


@dataclass(frozen=True)
class TelarusRow:
    template_map_name: str
    origin: str
    company_name: str
    template_id: str
    commission_type: str
    field_id: str
    telarus_field_name: str
    commissable_field_label: str
    block: str


@dataclass
class TelarusGroup:
    """All template rows of one company under one origin."""

    template_map_name: str
    origin: str
    company_name: str
    template_id: str
    origin_key: str
    company_key: str
    rows: List[TelarusRow] = field(default_factory=list)


class TelarusTemplateMatch(BaseModel):
    """A reference layout matched to a distributor/vendor pair."""

    model_config = ConfigDict(populate_by_name=True)

    template_map_name: str = Field(..., alias="templateMapName")
    origin: str
    company_name: str = Field(..., alias="companyName")
    template_id: Optional[str] = Field(None, alias="templateId")
    mapping: DepositMappingConfigV2
    template_fields: List[TelarusTemplateField] = Field(default_factory=list, alias="templateFields")

    def to_template_fields(self) -> TelarusTemplateFields:
        """Audit record to store with a template seeded from this match."""
        return TelarusTemplateFields(
            template_map_name=self.template_map_name,
            origin=self.origin,
            company_name=self.company_name,
            template_id=self.template_id,
            fields=[template_field.model_copy() for template_field in self.template_fields],
        )


def score_company_candidate(needle: str, haystack: str) -> int:
    """
    Score a normalized vendor name against a normalized company key.

    exact 1000 > prefix (900/880) > substring (800/780) > token overlap
    (700 + overlapping tokens, only with overlap ratio >= 0.6) > 0.
    Prefix and substring scores shrink with the length difference.
    """
    if not needle or not haystack:
        return 0
    if needle == haystack:
        return 1000

    if haystack.startswith(needle):
        return 900 - min(len(haystack) - len(needle), 50)
    if needle.startswith(haystack):
        return 880 - min(len(needle) - len(haystack), 50)

    if needle in haystack:
        return 800 - min(len(haystack) - len(needle), 80)
    if haystack in needle:
        return 780 - min(len(needle) - len(haystack), 80)

    needle_tokens = set(tokenize(needle))
    haystack_tokens = set(tokenize(haystack))
    if not needle_tokens or not haystack_tokens:
        return 0

    overlap = len(needle_tokens & haystack_tokens)
    ratio = overlap / max(len(needle_tokens), len(haystack_tokens))
    if ratio < MIN_TOKEN_OVERLAP_RATIO:
        return 0

    return 700 + overlap


def _is_vendor_product_label(label: str) -> bool:
    normalized = normalize_key(label)
    if not normalized.startswith("vendor"):
        return False
    return "product" in normalized or "part number" in normalized or "sku" in normalized


class TelarusTemplateMaster:
    """In-memory index of the master table."""

    def __init__(self, rows: List[TelarusRow]):
        self.groups: List[TelarusGroup] = []
        self.common_by_origin_key: Dict[str, List[TelarusRow]] = {}
        self._index(rows)

    @classmethod
    def from_csv(cls, csv_path) -> "TelarusTemplateMaster":
        """Load the master table from a CSV file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(csv_path)
        with path.open(newline="", encoding="utf-8-sig") as handle:
            rows = cls.parse_rows(csv.reader(handle))
        master = cls(rows)
        logger.info(
            f"Loaded reference layouts from {path.name}: {len(master.groups)} templates, "
            f"{len(master.common_by_origin_key)} origins with common fields"
        )
        return master

    @staticmethod
    def parse_rows(reader) -> List[TelarusRow]:
        """Split raw CSV rows into common-block and template-block rows."""
        rows = []
        block = None

        for raw in reader:
            if not raw or len(raw) < 4:
                continue
            cells = [(cell or "").strip() for cell in raw] + [""] * 8
            col0, col1, col2, col3, col4, col5, col6, col7 = cells[:8]

            if col0 == BLOCK_MARKER and col6 == COMMON_FIELDS_MARKER:
                block = BLOCK_COMMON
                continue
            if col0 == BLOCK_MARKER and col6 == TEMPLATE_FIELDS_MARKER:
                block = BLOCK_TEMPLATE
                continue

            if not col0 and not col1 and not col2:
                continue

            if block == BLOCK_COMMON:
                rows.append(TelarusRow(
                    template_map_name=col0 or DEFAULT_ALL,
                    origin=col1 or DEFAULT_ORIGIN,
                    company_name=col2 or DEFAULT_ALL,
                    template_id=col3 or DEFAULT_ALL,
                    commission_type=col4,
                    field_id=col5,
                    telarus_field_name=col6,
                    commissable_field_label=col7,
                    block=BLOCK_COMMON,
                ))
            elif block == BLOCK_TEMPLATE:
                rows.append(TelarusRow(
                    template_map_name=col0,
                    origin=col1,
                    company_name=col2,
                    template_id=col3,
                    commission_type=col4,
                    field_id=col5,
                    telarus_field_name=col6,
                    commissable_field_label=col7,
                    block=BLOCK_TEMPLATE,
                ))

        return rows

    def _index(self, rows: List[TelarusRow]) -> None:
        groups_by_key: Dict[Tuple[str, str], TelarusGroup] = {}

        for row in rows:
            origin_key = normalize_key(row.origin or DEFAULT_ORIGIN) or normalize_key(DEFAULT_ORIGIN)

            if row.block == BLOCK_COMMON:
                self.common_by_origin_key.setdefault(origin_key, []).append(row)
                continue

            company_key = normalize_key(row.company_name or DEFAULT_ALL)
            group = groups_by_key.get((origin_key, company_key))
            if group is None:
                group = TelarusGroup(
                    template_map_name=row.template_map_name or f"{row.origin}-{row.company_name}",
                    origin=row.origin or DEFAULT_ORIGIN,
                    company_name=row.company_name,
                    template_id=row.template_id,
                    origin_key=origin_key,
                    company_key=company_key,
                )
                groups_by_key[(origin_key, company_key)] = group
            group.rows.append(row)

        self.groups = list(groups_by_key.values())

    def _select_group(self, distributor_key: str, vendor_key: str) -> Optional[TelarusGroup]:
        origin_candidates = [
            group for group in self.groups
            if group.origin_key == distributor_key
            or group.origin_key in distributor_key
            or distributor_key in group.origin_key
        ]
        if not origin_candidates:
            template_matches_total.labels(outcome="no_origin").inc()
            return None

        scored = [
            (score_company_candidate(vendor_key, group.company_key), group)
            for group in origin_candidates
        ]
        scored = sorted((entry for entry in scored if entry[0] > 0), key=lambda entry: -entry[0])
        if not scored:
            template_matches_total.labels(outcome="no_company").inc()
            return None

        if len(scored) > 1 and scored[1][0] == scored[0][0]:
            logger.info(
                f"Ambiguous reference layout for vendor '{vendor_key}': "
                f"'{scored[0][1].company_name}' and '{scored[1][1].company_name}' both score {scored[0][0]}"
            )
            template_matches_total.labels(outcome="ambiguous").inc()
            return None

        return scored[0][1]

    def find_match(self, distributor_name: str, vendor_name: str) -> Optional[TelarusTemplateMatch]:
        """
        Find the reference layout for a distributor/vendor pair.

        Args:
            distributor_name: Distributor (origin) name, e.g. 'Telarus'
            vendor_name: Vendor (company) name, e.g. 'ACC Business'

        Returns:
            TelarusTemplateMatch with a v2 seed mapping, or None when no
            origin or company matches, the best company score is tied, or
            the layout yields no template fields
        """
        distributor_key = normalize_key(distributor_name)
        vendor_key = normalize_key(vendor_name)
        if not distributor_key or not vendor_key:
            return None

        group = self._select_group(distributor_key, vendor_key)
        if group is None:
            return None

        common_rows = self.common_by_origin_key.get(group.origin_key, [])
        mapping, template_fields = self._build_seed(common_rows + group.rows)

        if not template_fields:
            template_matches_total.labels(outcome="empty").inc()
            return None

        template_matches_total.labels(outcome="matched").inc()
        logger.info(
            f"Matched reference layout {group.template_map_name} (template {group.template_id or '-'}) "
            f"with {len(mapping.targets)} targets"
        )
        return TelarusTemplateMatch(
            template_map_name=group.template_map_name,
            origin=group.origin,
            company_name=group.company_name,
            template_id=group.template_id or None,
            mapping=mapping,
            template_fields=template_fields,
        )

    def _build_seed(self, rows: List[TelarusRow]) -> Tuple[DepositMappingConfigV2, List[TelarusTemplateField]]:
        mapping = DepositMappingConfigV2()
        template_fields: Dict[str, TelarusTemplateField] = {}

        for row in rows:
            label = row.commissable_field_label
            header_name = row.telarus_field_name
            if not label or not header_name:
                continue

            field_key = normalize_key(header_name) or header_name.lower()
            if field_key not in template_fields:
                template_fields[field_key] = TelarusTemplateField(
                    telarus_field_name=header_name,
                    commissable_field_label=label,
                    field_id=row.field_id or None,
                    commission_type=row.commission_type or None,
                    block=row.block,
                )

            field_id = COMMISSABLE_LABEL_TO_FIELD_ID.get(label)
            target_id = LEGACY_FIELD_ID_TO_TARGET_ID.get(field_id) if field_id else None
            if target_id:
                mapping.targets[target_id] = header_name
                continue

            if _is_vendor_product_label(label):
                mapping.columns[header_name] = ColumnConfigV2(mode=MODE_ADDITIONAL)

        return ensure_columns_for_targets(mapping), list(template_fields.values())


@lru_cache()
def get_telarus_template_master() -> TelarusTemplateMaster:
    """Get the cached master table loaded from Settings.TELARUS_MASTER_CSV_PATH.

    Call get_telarus_template_master.cache_clear() to reload.
    """
    return TelarusTemplateMaster.from_csv(get_settings().TELARUS_MASTER_CSV_PATH)


def find_telarus_template_match(
    distributor_name: str,
    vendor_name: str,
    master: Optional[TelarusTemplateMaster] = None,
) -> Optional[TelarusTemplateMatch]:
    """Match a distributor/vendor pair against the (cached) master table."""
    master = master or get_telarus_template_master()
    return master.find_match(distributor_name, vendor_name)
