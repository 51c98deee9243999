"""Stage 0: Normalization"""

from .normalizer import TemplateNormalizer, normalize, normalize_items, default_template, flatten_fields

__all__ = [
    "TemplateNormalizer",
    "normalize",
    "normalize_items",
    "default_template",
    "flatten_fields",
]
