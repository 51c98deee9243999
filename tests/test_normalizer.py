import logging

from core.enums import AggregateFunction, AnalyticsColumn, ChainOperator, ColumnType, DisplayLayout
from core.models import Filled, TemplateSchema, Unfilled
from stages.s0_normalization import TemplateNormalizer, default_template, normalize, normalize_items


def test_empty_or_invalid_input_yields_defaults():
    for external in (None, {}, "not a template", 42, []):
        schema = normalize(external)
        assert isinstance(schema, TemplateSchema)
        assert schema.columns == ()
        assert schema.header.title == "INVOICE"
        assert schema.customer.billing.title == "Bill To"
        assert schema.footer.signature_label == "Authorized Signatory"


def test_accent_colour_tri_state():
    assert normalize({}).header.accent_color == Filled(value="#2563eb")
    assert normalize({"accent_color": None}).header.accent_color == Unfilled()
    assert normalize({"accent_color": ""}).header.accent_color == Unfilled()
    assert normalize({"accent_color": "#ff0000"}).header.accent_color == Filled(value="#ff0000")


def test_header_text_colour_defaults_follow_accent():
    assert normalize({"accent_color": "#ff0000"}).table.header_text_color == "#ffffff"
    assert normalize({"accent_color": None}).table.header_text_color == "#000000"
    filled_but_null = {"accent_color": "#ff0000", "items": {"header_text_color": None}}
    assert normalize(filled_but_null).table.header_text_color == "#000000"
    explicit = {"items": {"header_text_color": "#333333"}}
    assert normalize(explicit).table.header_text_color == "#333333"


def test_percent_opacity_becomes_fraction():
    assert normalize({"header": {"title_opacity": 25}}).header.title_opacity == 0.25
    assert normalize({"header": {"title_opacity": 25, "text_opacity": 40}}).header.title_opacity == 0.4
    assert normalize({"items": {"border_opacity": 50}}).table.border_opacity == 0.5
    assert normalize({"items": {"border_opacity": 0.3}}).table.border_opacity == 0.3


def test_header_wire_fields():
    schema = normalize({
        "font_family": "Roboto",
        "font_size": 0,
        "header": {"logo": False, "logo_url": "https://example.com/logo.png", "title": "TAX INVOICE",
                   "title_font_size": 48},
    })
    assert schema.header.font_family == "Roboto"
    assert schema.header.body_font_size == 14
    assert schema.header.show_logo is False
    assert schema.header.logo_url == "https://example.com/logo.png"
    assert schema.header.title == "TAX INVOICE"
    assert schema.header.title_font_size == 48
    assert normalize({"header": {"font_size": 32}}).header.title_font_size == 32


def test_display_style_aliases():
    schema = normalize({
        "invoice_meta": {"column_layout": 2, "display_style": {"labelBold": False, "layout": "row"}},
        "customer_details": {"display_style": {"show_label": False}},
    })
    assert schema.meta.column_count == 2
    assert schema.meta.display_style.label_bold is False
    assert schema.meta.display_style.layout == DisplayLayout.ROW
    assert schema.customer.display_style.show_label is False
    assert schema.customer.display_style.label_bold is True
    assert normalize({"invoice_meta": {"column_count": 3}}).meta.column_count == 3


def test_columns_default_visible_and_keep_order():
    schema = normalize({"items": {"columns": [
        {"key": "qty", "label": "Qty", "type": "number", "width": "20%"},
        {"key": "note", "label": "Note", "visible": False},
        {"key": "amount", "label": "Amount", "type": "formula", "formula": "[Qty] * 2", "width": 30},
    ]}})
    assert [col.key for col in schema.columns] == ["qty", "note", "amount"]
    assert [col.visible for col in schema.columns] == [True, False, True]
    assert schema.columns[2].is_formula
    assert schema.columns[2].width == "30"
    assert [col.key for col in schema.visible_columns] == ["qty", "amount"]


def test_unknown_column_type_falls_back_to_text():
    schema = normalize({"items": {"columns": [{"key": "c", "label": "C", "type": "currency"}]}})
    assert schema.columns[0].type == ColumnType.TEXT


def test_malformed_entries_are_skipped_and_logged(caplog):
    with caplog.at_level(logging.WARNING):
        schema = normalize({
            "header": {"fields": ["oops", {"label": "No key"}, {"key": "name", "label": "Company Name"}]},
            "items": {"columns": "not a list"},
        })
    assert [field.key for field in schema.header.fields] == ["name"]
    assert schema.columns == ()
    assert "skipping" in caplog.text


def test_summary_fields_and_aggregation_defaults():
    schema = normalize({"summary": {"title": "Totals", "fields": [
        {"key": "subtotal", "label": "Sub Total", "sourceColumn": "total"},
        {"key": "net", "label": "Net", "aggregations": [
            {"source_column": "total"},
            {"function": "sum", "sourceColumn": "discount", "operator": "-"},
        ]},
        {"key": "gst", "label": "GST", "source_column": "tax", "analytics_column": "Tax", "visible": False},
    ]}})
    subtotal, net, gst = schema.summary.fields
    assert schema.summary.title == "Totals"
    assert subtotal.source_column == "total"
    assert subtotal.function is None
    assert net.aggregations[0].function == AggregateFunction.SUM
    assert net.aggregations[0].operator == ChainOperator.ADD
    assert net.aggregations[1].source_column == "discount"
    assert net.aggregations[1].operator == ChainOperator.SUBTRACT
    assert gst.analytics_column == AnalyticsColumn.TAX
    assert gst.visible is False


def test_total_section_is_summary_fallback():
    schema = normalize({"total": {"fields": [{"key": "grand_total", "label": "Total", "source_column": "total"}]}})
    assert [field.key for field in schema.summary.fields] == ["grand_total"]

    both = normalize({
        "summary": {"fields": [{"key": "subtotal"}]},
        "total": {"fields": [{"key": "grand_total"}]},
    })
    assert [field.key for field in both.summary.fields] == ["subtotal"]


def test_footer_and_customer_sections():
    schema = normalize({
        "customer_details": {"bill_to": {"title": "Billed To", "fields": [{"key": "name", "label": "Name"}]}},
        "footer": {"title": "Bank", "signature_label": "Proprietor", "show_bank_details": False,
                   "fields": [{"key": "ifsc", "label": "IFSC", "value": "HDFC0001"}]},
    })
    assert schema.customer.billing.title == "Billed To"
    assert schema.customer.shipping.title == "Ship To"
    assert schema.footer.title == "Bank"
    assert schema.footer.signature_label == "Proprietor"
    assert schema.footer.show_bank_details is False
    assert schema.footer.fields[0].value == "HDFC0001"


def test_api_envelope_and_identity():
    schema = normalize({"data": {"template_id": 7, "name": "Retail", "items": {"columns": [{"key": "a"}]}}})
    assert schema.template_id == "7"
    assert schema.name == "Retail"
    assert [col.key for col in schema.columns] == ["a"]


def test_normalize_items_shapes():
    rows = [{"qty": 1}, {"qty": 2}]
    assert normalize_items(rows) == rows
    assert normalize_items({"fields": rows}) == rows
    assert normalize_items({"rows": rows}) == rows
    assert normalize_items(None) == []
    assert normalize_items("junk") == []
    assert normalize_items([{"qty": 1}, "junk"]) == [{"qty": 1}]


def test_normalize_items_flattens_field_lists():
    rows = normalize_items([{"id": 1, "fields": [{"key": "qty", "value": "3"}, {"key": "price", "value": 4}]}])
    assert rows == [{"id": 1, "qty": "3", "price": 4}]


def test_default_template():
    schema = default_template()
    assert [col.key for col in schema.columns] == ["sno", "description", "qty", "rate", "total"]
    assert schema.columns[-1].formula == "[Qty] * [Rate]"
    assert schema.summary.fields[-1].key == "grand_total"
    assert schema.header.accent_color.is_filled


def test_normalizer_stage_passes_schemas_through():
    stage = TemplateNormalizer()
    schema = default_template()
    assert stage.validate_input(None)
    assert stage.execute(schema) is schema
    assert stage.execute({"name": "X"}).name == "X"
