from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Union

CostValue = Union[str, float, int, None]

# Display name -> LineItem attribute.
FIELD_NAMES = {
    "Project ID": "project_id",
    "Service Usage Details": "service_usage_details",
    "Product Code": "product_code",
    "Line-item Description": "description",
    "Cost": "cost",
    "Usage Quantity": "usage_quantity",
    "Period Start": "period_start",
    "Period End": "period_end",
    "Payment Method": "payment_method",
}

# Raw CUR header -> LineItem attribute (legacy CUR, CUR 2.0 / Athena).
CUR_COLUMNS = {
    "lineItem/UsageAccountId": "project_id",
    "line_item_usage_account_id": "project_id",
    "bill/PayerAccountId": "project_id",
    "bill_payer_account_id": "project_id",
    "lineItem/UsageType": "service_usage_details",
    "line_item_usage_type": "service_usage_details",
    "lineItem/ProductCode": "product_code",
    "line_item_product_code": "product_code",
    "lineItem/LineItemDescription": "description",
    "line_item_line_item_description": "description",
    "lineItem/UnblendedCost": "cost",
    "line_item_unblended_cost": "cost",
    "lineItem/UsageAmount": "usage_quantity",
    "line_item_usage_amount": "usage_quantity",
    "lineItem/UsageStartDate": "period_start",
    "line_item_usage_start_date": "period_start",
    "lineItem/UsageEndDate": "period_end",
    "line_item_usage_end_date": "period_end",
    "bill/BillingEntity": "payment_method",
    "bill_billing_entity": "payment_method",
}

_LEADING_NUMBER = re.compile(r"[+-]?[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")


def parse_cost(value: Any) -> float:
    """Normalize a cost cell to a float.

    Numbers pass through, text is read up to the first non-numeric character
    ("12.50 USD" -> 12.5) and anything unreadable counts as 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (numbers.Real, Decimal)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        return float(match.group(0)) if match is not None else 0.0
    return 0.0


def is_parsable_cost(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (numbers.Real, Decimal)):
        return True
    return isinstance(value, str) and _LEADING_NUMBER.match(value) is not None


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    # pandas.NA / NaT compare unequal to themselves
    try:
        if value != value:
            return None
    except (TypeError, ValueError):
        return None
    if hasattr(value, "isoformat") and not isinstance(value, str):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class LineItem:
    project_id: Optional[Any] = None
    service_usage_details: Optional[Any] = None
    product_code: Optional[Any] = None
    description: Optional[Any] = None
    cost: CostValue = None
    usage_quantity: Optional[Any] = None
    period_start: Optional[Any] = None
    period_end: Optional[Any] = None
    payment_method: Optional[Any] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "LineItem":
        """Build a line item from a display-name or raw-CUR-header mapping.

        Display names win over raw CUR headers when both are present; unknown
        keys are ignored.
        """
        values: Dict[str, Any] = {}
        for key, attr in CUR_COLUMNS.items():
            if key in raw and attr not in values:
                values[attr] = _clean(raw[key])
        for key, attr in FIELD_NAMES.items():
            if key in raw:
                values[attr] = _clean(raw[key])
        for f in fields(cls):
            if f.name in raw and f.name not in values:
                values[f.name] = _clean(raw[f.name])
        return cls(**values)

    def to_record(self) -> Dict[str, Any]:
        return {name: getattr(self, attr) for name, attr in FIELD_NAMES.items()}

    def to_display_record(self) -> Dict[str, Any]:
        record = {name: display(getattr(self, attr)) for name, attr in FIELD_NAMES.items()}
        record["Cost"] = display_number(self.cost)
        return record


def display(value: Any) -> Any:
    if value is None:
        return "N/A"
    if isinstance(value, str) and not value.strip():
        return "N/A"
    return value


def display_number(value: Any) -> Any:
    if value is None:
        return "0"
    if isinstance(value, str) and not value.strip():
        return "0"
    return value
