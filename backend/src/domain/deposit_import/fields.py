"""Legacy deposit line fields and their header synonyms.

The fixed line-item field ids predate the open-ended target catalog. They
are still the keys of v1 mappings, and the synonym lists drive both
auto-mapping and the suggestion scorer.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DepositFieldDefinition(BaseModel):
    """Canonical line-item field of a deposit report."""

    id: str = Field(..., description="Stable legacy field id, e.g. 'usage'")
    label: str = Field(..., description="Display label")
    type: str = Field(..., description="Value type: string, number or date")
    scope: str = Field("line", description="header or line")
    description: Optional[str] = None
    required: bool = False


DEPOSIT_FIELD_DEFINITIONS: List[DepositFieldDefinition] = [
    DepositFieldDefinition(
        id="lineNumber",
        label="Line Number",
        type="number",
        description="Optional explicit row or reference number from the vendor file.",
    ),
    DepositFieldDefinition(
        id="paymentDate",
        label="Payment Date",
        type="date",
        description="Date of the individual deposit line. Falls back to deposit date if omitted.",
    ),
    DepositFieldDefinition(id="accountNameRaw", label="Account / Customer Name", type="string"),
    DepositFieldDefinition(id="accountIdVendor", label="Account ID (Vendor)", type="string"),
    DepositFieldDefinition(id="customerIdVendor", label="Customer ID (Vendor)", type="string"),
    DepositFieldDefinition(id="orderIdVendor", label="Order ID (Vendor)", type="string"),
    DepositFieldDefinition(id="productNameRaw", label="Product Name / SKU", type="string"),
    DepositFieldDefinition(
        id="usage",
        label="Usage Amount",
        type="number",
        required=True,
        description="Numeric value used for reconciliation.",
    ),
    DepositFieldDefinition(id="commission", label="Commission Amount", type="number", required=True),
    DepositFieldDefinition(id="commissionRate", label="Commission Rate (%)", type="number"),
    DepositFieldDefinition(id="locationId", label="Location ID", type="string"),
    DepositFieldDefinition(id="customerPurchaseOrder", label="Customer PO #", type="string"),
    DepositFieldDefinition(id="vendorNameRaw", label="Vendor Name (raw)", type="string"),
    DepositFieldDefinition(id="distributorNameRaw", label="Distributor Name (raw)", type="string"),
]

DEPOSIT_FIELD_IDS: List[str] = [field.id for field in DEPOSIT_FIELD_DEFINITIONS]

REQUIRED_DEPOSIT_FIELD_IDS: List[str] = [
    field.id for field in DEPOSIT_FIELD_DEFINITIONS if field.required
]

# Header spellings seen in vendor reports, matched after normalize_key().
# Order matters for v2 auto-mapping, which tries synonyms first-to-last.
# v1 auto-mapping takes the first matching header in file order.
AUTO_FIELD_SYNONYMS: Dict[str, List[str]] = {
    'usage': [
        'usage', 'usage amount', 'actual usage', 'actual usage gross',
        'actual usage  gross', 'gross usage', 'mrc', 'bill amount', 'billing amount',
    ],
    'commission': [
        'commission', 'total commission', 'actual commission', 'commission amount',
        'commission due', 'residual commission', 'commission converted',
    ],
    'accountNameRaw': [
        'customer name', 'account legal name', 'company name', 'account', 'customer',
    ],
    'accountIdVendor': [
        'vendor account id', 'account id vendor', 'account id', 'customer account',
        'nav id', 'nasp id', 'account number', 'former account number',
        'national account number',
    ],
    'vendorNameRaw': ['vendor name', 'vendor account', 'vendor'],
    'commissionRate': [
        'commission rate', 'commission percent', 'commission percentage',
        'residual percent', 'residual rate', 'rate', 'mrc percent',
        'recurring comm rate', 'usage rate',
    ],
    'paymentDate': ['payment date', 'deposit date', 'date'],
    'productNameRaw': ['product', 'product name', 'sku', 'service', 'plan'],
    'customerIdVendor': ['customer id', 'customer id vendor'],
    'orderIdVendor': ['order id', 'order number'],
    'locationId': ['location id', 'location'],
    'customerPurchaseOrder': ['customer po', 'purchase order', 'po', 'po number', 'customer po #'],
    'lineNumber': ['line', 'line number', 'row', 'row number'],
}

# Fixed auto-mapping order. Amount fields go first so their synonyms claim
# headers before looser fields (e.g. 'account') can.
AUTO_MAPPING_PRIORITY: List[str] = [
    'usage',
    'commission',
    'accountNameRaw',
    'accountIdVendor',
    'commissionRate',
    'productNameRaw',
    'partNumberRaw',
    'paymentDate',
    'customerIdVendor',
    'orderIdVendor',
    'locationId',
    'customerPurchaseOrder',
    'vendorNameRaw',
    'distributorNameRaw',
    'lineNumber',
]


def get_deposit_field(field_id: str) -> Optional[DepositFieldDefinition]:
    """Look up a legacy field definition by id."""
    for field in DEPOSIT_FIELD_DEFINITIONS:
        if field.id == field_id:
            return field
    return None
