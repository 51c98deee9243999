"""Render orchestrator"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from core.models import InvoiceDocument, PageLayout, RowComputation, TemplateSchema
from core.exceptions import PipelineError, StageError
from stages import (
    TemplateNormalizer, RowComputer, SummaryAggregator, LayoutEngine, DocumentAssembler,
)
from stages.s0_normalization import normalize_items
from stages.s4_document import build_save_payload, section_data
from ui.progress import LoggingProgress, ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class RenderContext:
    """Shared context passed through one render"""
    template: Any
    invoice: Dict[str, Any] = field(default_factory=dict)
    schema: Optional[TemplateSchema] = None
    items: List[Dict[str, Any]] = field(default_factory=list)
    rows: Optional[List[RowComputation]] = None
    summary_values: Optional[Dict[str, float]] = None
    layout: Optional[PageLayout] = None
    document: Optional[InvoiceDocument] = None

    @property
    def circular_columns(self) -> List[str]:
        """Every column flagged circular in any row"""
        seen: List[str] = []
        for row in self.rows or []:
            for key in row.circular_columns:
                if key not in seen:
                    seen.append(key)
        return seen


class DocumentRenderer:
    """Render coordinator: template and invoice in, document out"""

    def __init__(self, progress: Optional[ProgressTracker] = None):
        self.progress = progress or LoggingProgress()

        self.stages = {
            0: TemplateNormalizer(),
            1: RowComputer(),
            2: SummaryAggregator(),
            3: LayoutEngine(),
            4: DocumentAssembler(),
        }

    def run(self, template: Any, invoice: Optional[Mapping[str, Any]] = None) -> RenderContext:
        """Execute all stages for one invoice"""
        ctx = RenderContext(template=template, invoice=dict(invoice or {}))

        try:
            # Stage 0: Normalization
            ctx.schema = self._execute_stage(0, ctx.template)
            ctx.items = normalize_items(ctx.invoice.get("items"))

            # Stage 1: Row computation
            ctx.rows = self._execute_stage(1, {"columns": ctx.schema.columns, "items": ctx.items})
            if ctx.circular_columns:
                logger.warning(f"Circular formulas in columns {ctx.circular_columns}")

            # Stage 2: Aggregation
            ctx.summary_values = self._execute_stage(2, {
                "fields": ctx.schema.summary.fields,
                "rows": [row.values for row in ctx.rows],
                "manual_values": section_data(ctx.invoice, "summary"),
            })

            # Stage 3: Layout
            ctx.layout = self._execute_stage(3, ctx.schema.columns)

            # Stage 4: Document
            ctx.document = self._execute_stage(4, {
                "schema": ctx.schema,
                "invoice": ctx.invoice,
                "rows": ctx.rows,
                "summary_values": ctx.summary_values,
                "layout": ctx.layout,
            })

            self.progress.complete()
            return ctx

        except StageError as e:
            self.progress.fail(e.stage, str(e))
            raise PipelineError(f"Render failed at stage {e.stage}: {e}", stage=e.stage) from e

    def render(self, template: Any, invoice: Optional[Mapping[str, Any]] = None) -> InvoiceDocument:
        return self.run(template, invoice).document

    def save_payload(
        self,
        template: Any,
        invoice: Optional[Mapping[str, Any]] = None,
        customer_id: Optional[Any] = None,
    ) -> Dict[str, Any]:
        """Invoice save body for a template and the values entered against it"""
        try:
            schema = self._execute_stage(0, template)
        except StageError as e:
            self.progress.fail(e.stage, str(e))
            raise PipelineError(f"Save failed at stage {e.stage}: {e}", stage=e.stage) from e
        return build_save_payload(schema, invoice, customer_id=customer_id)

    def _execute_stage(self, stage_num: int, input_data) -> Any:
        """Execute a single stage with progress tracking"""
        stage = self.stages[stage_num]
        self.progress.start_stage(stage_num, stage.name)

        if not stage.validate_input(input_data):
            raise StageError(stage_num, "Invalid input")

        try:
            result = stage.execute(input_data)
        except StageError:
            raise
        except Exception as e:
            raise StageError(stage_num, f"Unexpected error: {e}") from e

        self.progress.complete_stage(stage_num)
        return result
