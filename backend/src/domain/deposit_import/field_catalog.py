"""Catalog of canonical targets a deposit column can be mapped to.

The catalog is a fixed list (deposit line item, deposit, matching, opportunity
and product targets) extended at runtime with one target per opportunity
custom-field definition. Target ids are unique; static entries win.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENTITY_DEPOSIT_LINE_ITEM = "depositLineItem"
ENTITY_DEPOSIT = "deposit"
ENTITY_OPPORTUNITY = "opportunity"
ENTITY_PRODUCT = "product"
ENTITY_MATCHING = "matching"

PERSISTENCE_COLUMN = "column"
PERSISTENCE_METADATA = "metadata"


class FieldTarget(BaseModel):
    """A canonical destination for a deposit column."""

    id: str = Field(..., description="Stable target id, e.g. 'depositLineItem.usage'")
    label: str = Field(..., description="Display label")
    entity: str = Field(..., description="depositLineItem, deposit, opportunity, product or matching")
    data_type: str = Field(..., description="string, number, date or boolean")
    persistence: str = Field(..., description="column or metadata")
    column_name: Optional[str] = Field(None, description="Backing physical column")
    metadata_path: Optional[List[str]] = Field(None, description="Key path into the metadata bag")
    required: bool = False


class DepositImportTargetIds:
    """Target ids referenced by name elsewhere in the import."""

    DEPOSIT_NAME = "deposit.depositName"
    DEPOSIT_PAYMENT_DATE = "deposit.paymentDate"
    USAGE = "depositLineItem.usage"
    COMMISSION = "depositLineItem.commission"
    COMMISSION_RATE = "depositLineItem.commissionRate"
    COMMISSION_TYPE = "depositLineItem.commissionType"
    COMMISSION_DATE = "depositLineItem.commissionDate"
    EXTERNAL_SCHEDULE_ID = "matching.externalScheduleId"


def _line_item_column(name: str, label: str, data_type: str) -> FieldTarget:
    return FieldTarget(
        id=f"{ENTITY_DEPOSIT_LINE_ITEM}.{name}",
        label=label,
        entity=ENTITY_DEPOSIT_LINE_ITEM,
        data_type=data_type,
        persistence=PERSISTENCE_COLUMN,
        column_name=name,
    )


def _metadata(entity: str, name: str, label: str, data_type: str) -> FieldTarget:
    return FieldTarget(
        id=f"{entity}.{name}",
        label=label,
        entity=entity,
        data_type=data_type,
        persistence=PERSISTENCE_METADATA,
        metadata_path=[entity, name],
    )


DEPOSIT_LINE_ITEM_TARGETS: List[FieldTarget] = [
    _line_item_column("lineNumber", "Line Item", "number"),
    _line_item_column("paymentDate", "Payment Date", "date"),
    _metadata(ENTITY_DEPOSIT_LINE_ITEM, "commissionDate", "Commission Date", "date"),
    _metadata(ENTITY_DEPOSIT_LINE_ITEM, "commissionType", "Commission Type", "string"),
    _line_item_column("accountNameRaw", "Account Legal Name", "string"),
    _line_item_column("accountIdVendor", "Other - Account ID", "string"),
    _line_item_column("customerIdVendor", "Other - Customer ID", "string"),
    _line_item_column("orderIdVendor", "Other - Order ID", "string"),
    _line_item_column("productNameRaw", "Other - Product Name", "string"),
    _line_item_column("partNumberRaw", "Other - Part Number", "string"),
    _line_item_column("usage", "Actual Usage", "number"),
    _line_item_column("commission", "Actual Commission", "number"),
    _line_item_column("commissionRate", "Actual Commission Rate %", "number"),
    _line_item_column("locationId", "Location ID", "string"),
    _line_item_column("customerPurchaseOrder", "Customer PO #", "string"),
    _line_item_column("vendorNameRaw", "Vendor Name", "string"),
    _line_item_column("distributorNameRaw", "Distributor Name", "string"),
]

DEPOSIT_TARGETS: List[FieldTarget] = [
    FieldTarget(
        id=DepositImportTargetIds.DEPOSIT_NAME,
        label="Deposit Name",
        entity=ENTITY_DEPOSIT,
        data_type="string",
        persistence=PERSISTENCE_COLUMN,
        column_name="depositName",
    ),
    FieldTarget(
        id=DepositImportTargetIds.DEPOSIT_PAYMENT_DATE,
        label="Payment Date",
        entity=ENTITY_DEPOSIT,
        data_type="date",
        persistence=PERSISTENCE_COLUMN,
        column_name="paymentDate",
    ),
]

MATCHING_TARGETS: List[FieldTarget] = [
    _metadata(ENTITY_MATCHING, "externalScheduleId", "External Schedule ID", "string"),
]

STATIC_OPPORTUNITY_TARGETS: List[FieldTarget] = [
    _metadata(ENTITY_OPPORTUNITY, "name", "Opportunity Name", "string"),
    _metadata(ENTITY_OPPORTUNITY, "stage", "Opportunity Stage", "string"),
    _metadata(ENTITY_OPPORTUNITY, "status", "Status", "string"),
    _metadata(ENTITY_OPPORTUNITY, "type", "Opportunity Type", "string"),
    _metadata(ENTITY_OPPORTUNITY, "amount", "Amount", "number"),
    _metadata(ENTITY_OPPORTUNITY, "expectedCommission", "Expected Commission", "number"),
    _metadata(ENTITY_OPPORTUNITY, "estimatedCloseDate", "Estimated Close Date", "date"),
    _metadata(ENTITY_OPPORTUNITY, "actualCloseDate", "Actual Close Date", "date"),
    _metadata(ENTITY_OPPORTUNITY, "orderIdVendor", "Other - Order ID", "string"),
    _metadata(ENTITY_OPPORTUNITY, "accountIdVendor", "Other - Account ID", "string"),
    _metadata(ENTITY_OPPORTUNITY, "customerIdVendor", "Other - Customer ID", "string"),
    _metadata(ENTITY_OPPORTUNITY, "customerPurchaseOrder", "Customer PO #", "string"),
    _metadata(ENTITY_OPPORTUNITY, "locationId", "Location ID", "string"),
]

PRODUCT_TARGETS: List[FieldTarget] = [
    _metadata(ENTITY_PRODUCT, "productCode", "House - Part Number", "string"),
    _metadata(ENTITY_PRODUCT, "productNameHouse", "House - Product Name", "string"),
    _metadata(ENTITY_PRODUCT, "productNameVendor", "Other - Product Name", "string"),
    _metadata(ENTITY_PRODUCT, "description", "Other - Product Description", "string"),
    _metadata(ENTITY_PRODUCT, "revenueType", "Revenue Type", "string"),
    _metadata(ENTITY_PRODUCT, "priceEach", "Price Each", "number"),
    _metadata(ENTITY_PRODUCT, "commissionPercent", "Expected Commission Rate %", "number"),
    _metadata(ENTITY_PRODUCT, "partNumberVendor", "Other - Part Number", "string"),
    _metadata(ENTITY_PRODUCT, "productFamilyVendor", "Other - Product Family", "string"),
    _metadata(ENTITY_PRODUCT, "productSubtypeVendor", "Other - Product Subtype", "string"),
    _metadata(ENTITY_PRODUCT, "productNameDistributor", "Distributor - Product Name", "string"),
]

# Field definition data types. None means the type has no scalar column
# representation and the definition is not offered as a target.
FIELD_DATA_TYPE_MAP: Dict[str, Optional[str]] = {
    "Text": "string",
    "Number": "number",
    "Boolean": "boolean",
    "Date": "date",
    "Enum": "string",
    "Json": None,
}

LEGACY_FIELD_ID_TO_TARGET_ID: Dict[str, str] = {
    "lineNumber": "depositLineItem.lineNumber",
    "paymentDate": "depositLineItem.paymentDate",
    "accountNameRaw": "depositLineItem.accountNameRaw",
    "accountIdVendor": "depositLineItem.accountIdVendor",
    "customerIdVendor": "depositLineItem.customerIdVendor",
    "orderIdVendor": "depositLineItem.orderIdVendor",
    "productNameRaw": "depositLineItem.productNameRaw",
    "partNumberRaw": "depositLineItem.partNumberRaw",
    "usage": DepositImportTargetIds.USAGE,
    "commission": DepositImportTargetIds.COMMISSION,
    "commissionRate": DepositImportTargetIds.COMMISSION_RATE,
    "locationId": "depositLineItem.locationId",
    "customerPurchaseOrder": "depositLineItem.customerPurchaseOrder",
    "vendorNameRaw": "depositLineItem.vendorNameRaw",
    "distributorNameRaw": "depositLineItem.distributorNameRaw",
}

TARGET_ID_TO_LEGACY_FIELD_ID: Dict[str, str] = {
    target_id: field_id for field_id, target_id in LEGACY_FIELD_ID_TO_TARGET_ID.items()
}


def _read_definition_value(definition: Any, key: str) -> Any:
    if isinstance(definition, dict):
        return definition.get(key)
    return getattr(definition, key, None)


def map_field_definition_to_target(definition: Any) -> Optional[FieldTarget]:
    """
    Turn an opportunity custom-field definition into a catalog target.

    Args:
        definition: Dict or object with dataType, fieldCode and label

    Returns:
        FieldTarget with id 'opportunity.<fieldCode>', or None if the data
        type is unsupported or the field code is blank
    """
    data_type = FIELD_DATA_TYPE_MAP.get(_read_definition_value(definition, "dataType"))
    if not data_type:
        return None

    field_code = _read_definition_value(definition, "fieldCode")
    field_code = field_code.strip() if isinstance(field_code, str) else ""
    if not field_code:
        return None

    label = _read_definition_value(definition, "label")
    return FieldTarget(
        id=f"{ENTITY_OPPORTUNITY}.{field_code}",
        label=label or field_code,
        entity=ENTITY_OPPORTUNITY,
        data_type=data_type,
        persistence=PERSISTENCE_METADATA,
        metadata_path=[ENTITY_OPPORTUNITY, field_code],
    )


def build_deposit_import_field_catalog(
    opportunity_field_definitions: Optional[Iterable[Any]] = None,
) -> List[FieldTarget]:
    """
    Build the full list of mapping targets.

    Args:
        opportunity_field_definitions: Custom opportunity field definitions
            to expose as additional targets

    Returns:
        Static targets in fixed order followed by dynamic opportunity
        targets whose ids do not collide with an earlier entry
    """
    targets: List[FieldTarget] = [
        *DEPOSIT_LINE_ITEM_TARGETS,
        *DEPOSIT_TARGETS,
        *MATCHING_TARGETS,
        *STATIC_OPPORTUNITY_TARGETS,
        *PRODUCT_TARGETS,
    ]
    seen = {target.id for target in targets}

    skipped = 0
    for definition in opportunity_field_definitions or []:
        target = map_field_definition_to_target(definition)
        if target is None:
            skipped += 1
            continue
        if target.id in seen:
            continue
        targets.append(target)
        seen.add(target.id)

    if skipped:
        logger.debug(f"Skipped {skipped} opportunity field definitions without a catalog type")

    return targets


def build_field_catalog_index(targets: Iterable[FieldTarget]) -> Dict[str, FieldTarget]:
    """Index targets by id (later entries replace earlier ones)."""
    return {target.id: target for target in targets}
