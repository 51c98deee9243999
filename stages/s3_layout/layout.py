"""Stage 3: Layout - physical column widths and page geometry"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from config import settings
from core.interfaces import Stage
from core.models import Column, ColumnBand, PageLayout

logger = logging.getLogger(__name__)


def total_width_percent(columns: Iterable[Column]) -> float:
    """Sum of the declared widths of visible columns; unparseable widths count as 0"""
    return sum(col.width_percent for col in columns if col.visible)


def width_scale(total_percent: float) -> float:
    """Stretch factor that makes an under-filled table span the page"""
    if 0 < total_percent < 100:
        return 100 / total_percent
    return 1.0


def build_bands(columns: Iterable[Column], widths: dict) -> List[ColumnBand]:
    """
    Group adjacent visible columns that share a group name.

    Columns without a group each form their own unnamed band. A group name
    that reappears after a different column starts a new band.
    """
    bands: List[ColumnBand] = []
    for col in columns:
        if not col.visible:
            continue
        last = bands[-1] if bands else None
        if col.group and last is not None and last.name == col.group:
            last.column_keys.append(col.key)
            last.width_mm += widths[col.key]
        else:
            bands.append(ColumnBand(name=col.group or None, column_keys=[col.key], width_mm=widths[col.key]))
    return bands


def compute_layout(columns: Iterable[Column], content_width_mm: Optional[float] = None) -> PageLayout:
    """
    Lay out the item table on a standard page.

    Widths are percentages of the printable width. A table narrower than
    100% is stretched to fill it; a wider one widens the page instead.

    Args:
        columns: Item table columns in display order; hidden columns get no width
        content_width_mm: Printable width, defaults to page width minus padding

    Returns:
        PageLayout with per-column widths in mm, bands and page width
    """
    columns = list(columns)
    content = settings.content_width_mm if content_width_mm is None else content_width_mm
    padding = settings.PAGE_WIDTH_MM - settings.content_width_mm
    visible = [col for col in columns if col.visible]

    total = total_width_percent(columns)
    scale = width_scale(total)

    if total <= 0 and visible:
        # No widths declared anywhere: share the row equally
        share = content / len(visible)
        widths = {col.key: share for col in visible}
        logger.debug(f"No column widths set; {len(visible)} columns share {content}mm")
    else:
        widths = {col.key: col.width_percent * scale / 100 * content for col in visible}

    page_width = max(settings.PAGE_WIDTH_MM, total / 100 * content + padding)

    return PageLayout(
        total_percent=total,
        scale=scale,
        content_width_mm=content,
        page_width_mm=page_width,
        page_height_mm=settings.PAGE_HEIGHT_MM,
        column_widths=widths,
        bands=build_bands(columns, widths),
    )


def fit_scale(
    container_width: float,
    container_height: float,
    content_width: float,
    content_height: float,
    edit_panel_open: bool = True,
) -> float:
    """
    Auto-fit zoom for the on-screen preview.

    With the edit panel open the page must fit both ways and is never
    enlarged; with it closed only the width has to fit and the page may grow
    slightly. The result never drops below the minimum preview scale.
    """
    if content_width <= 0 or content_height <= 0:
        return 1.0

    padding = settings.PREVIEW_PADDING_PX
    scale_x = (container_width - padding) / content_width
    scale_y = (container_height - padding) / content_height

    if edit_panel_open:
        scale = min(scale_x, scale_y, settings.PREVIEW_MAX_SCALE_OPEN)
    else:
        scale = min(scale_x, settings.PREVIEW_MAX_SCALE_CLOSED)
    return max(scale, settings.PREVIEW_MIN_SCALE)


def clamp_zoom(scale: float) -> float:
    """Keep a manual zoom level within 25%-200%"""
    return min(max(scale, settings.ZOOM_MIN), settings.ZOOM_MAX)


class LayoutEngine(Stage[Iterable[Column], PageLayout]):
    """Stage 3: Layout"""

    @property
    def name(self) -> str:
        return "Layout"

    @property
    def stage_number(self) -> int:
        return 3

    def validate_input(self, input_data: Iterable[Column]) -> bool:
        return input_data is not None

    def execute(self, input_data: Iterable[Column]) -> PageLayout:
        return compute_layout(input_data)
