from datetime import date

import pytest

from core.models import TemplateField
from stages.s0_normalization import normalize
from stages.s4_document import (
    DocumentAssembler, assemble_document, build_save_payload, format_address, prefill_section,
)
from utils.numbers import format_amount, format_fixed
from utils.words import amount_in_words

TEMPLATE = {
    "template_id": "tpl-1",
    "accent_color": "#2563eb",
    "header": {"fields": [{"key": "company", "label": "Company Name"}]},
    "invoice_meta": {"fields": [
        {"key": "invoice_no", "label": "Invoice #"},
        {"key": "date", "label": "Date"},
    ]},
    "customer_details": {"bill_to": {"fields": [{"key": "name", "label": "Name"}]}},
    "items": {"columns": [
        {"key": "sno", "label": "S.No", "width": "10%"},
        {"key": "description", "label": "Item & Description", "width": "40%"},
        {"key": "quantity", "label": "Quantity", "type": "number", "width": "15%"},
        {"key": "price", "label": "Price", "type": "number", "width": "15%"},
        {"key": "total", "label": "Total", "type": "formula", "formula": "[Quantity] * [Price]", "width": "20%"},
    ]},
    "summary": {"fields": [
        {"key": "grand_total", "label": "Grand Total", "bold": True, "analytics_column": "Total",
         "aggregations": [{"function": "sum", "source_column": "total", "operator": "+"}]},
        {"key": "subtotal", "label": "Sub Total", "source_column": "total"},
        {"key": "units", "label": "Units", "source_column": "quantity", "analytics_column": "Quantity"},
        {"key": "round_off", "label": "Round Off"},
        {"key": "hidden", "label": "Hidden", "source_column": "total", "visible": False},
    ]},
    "footer": {"fields": [{"key": "bank", "label": "Bank", "value": "HDFC"}]},
}

INVOICE = {
    "customer_id": 42,
    "header": {"fields": [{"key": "company", "value": "Acme Traders"}]},
    "invoice_meta": {"invoice_no": "INV-7", "date": "2026-10-12"},
    "items": [
        {"description": "Widget", "quantity": "3", "price": "12.5"},
        {"description": "Gadget", "quantity": 2, "price": 11.25},
    ],
}


@pytest.fixture
def schema():
    return normalize(TEMPLATE)


def test_rows_are_computed_and_displayed(schema):
    document = assemble_document(schema, INVOICE)
    first, second = document.rows
    assert first.values["total"] == 37.5
    assert first.display["total"] == "37.50"
    assert first.display["sno"] == "1"
    assert first.display["description"] == "Widget"
    assert second.display["sno"] == "2"
    assert second.values["total"] == 22.5


def test_summary_lines_order_and_display(schema):
    document = assemble_document(schema, INVOICE)
    assert [line.key for line in document.summary] == ["subtotal", "units", "round_off", "grand_total"]
    displays = {line.key: line.display for line in document.summary}
    assert displays["subtotal"] == "₹ 60.00"
    assert displays["units"] == "5"
    assert displays["round_off"] == "--"
    assert displays["grand_total"] == "₹ 60.00"
    assert document.summary[-1].bold


def test_grand_total_words_and_totals(schema):
    document = assemble_document(schema, INVOICE)
    assert document.grand_total == 60.0
    assert document.amount_in_words == "Sixty Rupees Only"
    assert document.totals.total == 60.0
    assert document.totals.quantity == 5.0
    assert document.totals.tax is None
    assert document.summary_values["hidden"] == 60.0


def test_grand_total_falls_back_to_total_column():
    schema = normalize({**TEMPLATE, "summary": {"fields": [{"key": "grand_total", "label": "Total"}]}})
    document = assemble_document(schema, INVOICE)
    assert document.grand_total == 60.0
    assert document.summary[0].display == "₹ 60.00"


def test_manual_summary_value_is_displayed(schema):
    invoice = {**INVOICE, "summary": {"fields": [{"key": "round_off", "value": "0.5"}]}}
    document = assemble_document(schema, invoice)
    displays = {line.key: line.display for line in document.summary}
    assert displays["round_off"] == "₹ 0.50"


def test_section_values_and_fallbacks(schema):
    document = assemble_document(schema, INVOICE)
    assert document.header == {"company": "Acme Traders"}
    assert document.meta == {"invoice_no": "INV-7", "date": "12 Oct 2026"}
    assert document.bill_to == {"name": "--"}
    assert document.ship_to == {}
    assert document.footer == {"bank": "HDFC"}


def test_layout_and_style_are_attached(schema):
    document = assemble_document(schema, INVOICE)
    assert document.layout.total_percent == 100
    assert document.layout.page_width_mm == pytest.approx(210.0)
    assert document.style.accent_color == "#2563eb"


def test_empty_invoice(schema):
    document = assemble_document(schema, None)
    assert document.rows == []
    assert document.grand_total == 0.0
    assert document.amount_in_words == "Zero Rupees Only"


def test_save_payload_shape(schema):
    payload = build_save_payload(schema, INVOICE)
    assert payload["template_id"] == "tpl-1"
    assert payload["customer_id"] == 42
    assert payload["header"] == {"fields": [{"key": "company", "label": "Company Name", "value": "Acme Traders"}]}
    assert payload["invoice_meta"]["fields"][0] == {"key": "invoice_no", "label": "Invoice #", "value": "INV-7"}
    assert payload["customer_details"]["bill_to"]["fields"] == [{"key": "name", "label": "Name", "value": ""}]
    assert payload["items"]["fields"][0]["total"] == 37.5
    assert payload["items"]["fields"][0]["description"] == "Widget"
    summary = {field["key"]: field["value"] for field in payload["summary"]["fields"]}
    assert summary["grand_total"] == 60.0
    assert summary["units"] == 5.0
    assert payload["total"] == 60.0
    assert payload["quantity"] == 5.0
    assert "tax" not in payload


def test_document_assembler_stage(schema):
    stage = DocumentAssembler()
    assert not stage.validate_input({"schema": None})
    document = stage.execute({"schema": schema, "invoice": INVOICE})
    assert document.grand_total == 60.0


def test_amounts_use_indian_grouping():
    assert format_amount(123456.5) == "1,23,456.50"
    assert format_amount(-1234567) == "-12,34,567.00"
    assert format_amount(999) == "999.00"
    assert format_fixed(2.5) == "2.50"


def test_amount_in_words():
    assert amount_in_words(0) == "Zero Rupees Only"
    assert amount_in_words(2) == "Two Rupees Only"
    assert amount_in_words(1.5) == "One Rupees And Fifty Paise Only"


def test_format_address():
    address = {"street": "1 MG Road", "city": "Pune", "state": "MH", "zip_code": "411001"}
    assert format_address(address) == "1 MG Road, Pune, MH - 411001"
    assert format_address({"street": "1 MG Road", "state": "MH"}) == "1 MG Road, MH"
    assert format_address(None) == ""


def test_prefill_section_by_label():
    fields = [
        TemplateField(key="company", label="Company Name"),
        TemplateField(key="gstin", label="GSTIN"),
        TemplateField(key="state", label="State"),
        TemplateField(key="addr", label="Address"),
        TemplateField(key="date", label="Date"),
        TemplateField(key="po", label="PO Number"),
    ]
    org = {
        "org_name": "Acme Traders",
        "gst_no": "27ABCDE1234F1Z5",
        "address": {"street": "1 MG Road", "city": "Pune", "state": "MH", "zip_code": "411001"},
    }
    values = prefill_section(fields, org, today=date(2026, 10, 19))
    assert values == {
        "company": "Acme Traders",
        "gstin": "27ABCDE1234F1Z5",
        "state": "MH",
        "addr": "1 MG Road, Pune, MH - 411001",
        "date": "2026-10-19",
    }
    assert prefill_section(fields, None) == {}


def test_number_helpers_handle_extreme_values():
    assert format_fixed(1e30) == "1000000000000000019884624838656.00"
    assert format_amount(float("inf")) == "--"
    assert format_fixed(float("nan")) == "--"
    assert amount_in_words(float("inf")) == "--"
    assert amount_in_words(1e12) == "--"
    assert amount_in_words(9999999999).endswith("Nine Rupees Only")
