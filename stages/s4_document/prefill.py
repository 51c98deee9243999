"""Prefill invoice sections from organization or customer records"""

from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

from core.models import TemplateField

NAME_LABELS = {"company name", "name", "customer name"}
ADDRESS_LABELS = {"address", "company address"}


def format_address(address: Optional[Mapping[str, Any]]) -> str:
    """street, city, state - zip"""
    if not address:
        return ""
    parts = [str(address[key]) for key in ("street", "city") if address.get(key)]
    region = " - ".join(str(address[key]) for key in ("state", "zip_code") if address.get(key))
    if region:
        parts.append(region)
    return ", ".join(parts)


def prefill_value(label: str, record: Mapping[str, Any], today: date) -> Optional[str]:
    label = (label or "").strip().lower()
    address = record.get("address") or {}

    if label in NAME_LABELS:
        return record.get("org_name") or record.get("customer_name") or record.get("name") or ""
    if "gst" in label or "tax" in label:
        return record.get("gst_no") or record.get("gstNo") or ""
    if label == "state":
        return address.get("state", "") if isinstance(address, Mapping) else ""
    if label in ADDRESS_LABELS:
        return format_address(address) if isinstance(address, Mapping) else str(address)
    if label == "date":
        return today.isoformat()
    return None


def prefill_section(
    fields: Iterable[TemplateField],
    record: Optional[Mapping[str, Any]],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Initial values for a section, matched by field label.

    Fields whose label is not recognised are left out, so the caller can
    merge the result over whatever the user already typed.
    """
    if not record:
        return {}
    today = today or date.today()
    values: Dict[str, Any] = {}
    for field in fields:
        value = prefill_value(field.label, record, today)
        if value is not None:
            values[field.key] = value
    return values
