"""Resolved colours, borders and spacing for a template"""

from config import settings
from core.models import DocumentStyle, TemplateSchema


def alpha_hex(opacity: float) -> str:
    """Two-digit hex alpha channel for a 0-1 opacity"""
    opacity = min(max(opacity, 0.0), 1.0)
    return format(int(opacity * 255 + 0.5), "02x")


def border_css(width: float, opacity: float) -> str:
    return f"{width or settings.DEFAULT_BORDER_WIDTH:g}px solid rgba(0, 0, 0, {opacity:g})"


def resolve_style(schema: TemplateSchema) -> DocumentStyle:
    header = schema.header
    table = schema.table
    accent = header.accent_color
    color = accent.resolve()

    # Title is drawn in the accent colour at the header opacity; 0 falls back to the default
    opacity = header.title_opacity or settings.DEFAULT_HEADER_OPACITY

    return DocumentStyle(
        accent_filled=accent.is_filled,
        accent_color=color,
        border_color=color,
        header_background=color if accent.is_filled else "transparent",
        header_text_color=table.header_text_color or (
            settings.FILLED_HEADER_TEXT_COLOR if accent.is_filled else settings.UNFILLED_ACCENT_COLOR
        ),
        title_color=color + alpha_hex(opacity),
        table_border=border_css(table.border_width, table.border_opacity),
        font_family=header.font_family,
        body_font_size=header.body_font_size,
        title_font_size=header.title_font_size,
        header_padding=table.header_padding,
        row_padding=table.row_padding,
    )
