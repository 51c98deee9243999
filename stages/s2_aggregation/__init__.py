"""Stage 2: Aggregation"""

from .aggregator import (
    SummaryAggregator,
    aggregate_column,
    aggregate_chain,
    resolve_summary_field,
    resolve_summary,
    analytics_totals,
)

__all__ = [
    "SummaryAggregator",
    "aggregate_column",
    "aggregate_chain",
    "resolve_summary_field",
    "resolve_summary",
    "analytics_totals",
]
