"""Stage 3: Layout"""

from .layout import LayoutEngine, compute_layout, fit_scale, clamp_zoom
from .styling import resolve_style

__all__ = [
    "LayoutEngine",
    "compute_layout",
    "fit_scale",
    "clamp_zoom",
    "resolve_style",
]
