"""Main entry point for Billsmith"""

import argparse
import json
import logging
import sys
from pathlib import Path

from orchestrator import DocumentRenderer
from core.exceptions import PipelineError, TemplateFileError
from stages.s0_normalization import default_template
from ui.progress import ConsoleProgress
from config import settings


def load_json(path: Path) -> dict:
    """Read a template or invoice file"""
    if not path.exists():
        raise TemplateFileError(f"File not found: {path}", file_path=str(path))
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TemplateFileError(f"Could not read {path}: {e}", file_path=str(path)) from e


def configure_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Billsmith - Invoice template renderer",
    )
    parser.add_argument("template", type=Path, nargs="?", help="Template JSON file")
    parser.add_argument("--invoice", type=Path, help="Invoice JSON file (sections and items)")
    parser.add_argument("--output", type=Path, help="Write the rendered document as JSON")
    parser.add_argument(
        "--default-template",
        action="store_true",
        help="Render against the built-in starter template",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.template is None and not args.default_template:
        parser.error("a template file or --default-template is required")

    try:
        template = default_template() if args.default_template else load_json(args.template)
        invoice = load_json(args.invoice) if args.invoice else {}
    except TemplateFileError as e:
        print(f"Error: {e}")
        return 1

    renderer = DocumentRenderer(progress=ConsoleProgress())

    try:
        ctx = renderer.run(template, invoice)
    except PipelineError as e:
        print(f"\n✗ Render failed: {e}")
        return 1

    document = ctx.document
    print(f"\n✓ Render complete")
    print(f"  Rows: {len(document.rows)}")
    for line in document.summary:
        print(f"  {line.label}: {line.display}")
    print(f"  Amount in words: {document.amount_in_words}")
    print(f"  Page width: {document.layout.page_width_mm:.1f}mm")
    if ctx.circular_columns:
        print(f"  Circular formulas: {', '.join(ctx.circular_columns)}")

    if args.output:
        args.output.write_text(document.model_dump_json(indent=2), encoding="utf-8")
        print(f"  Document: {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
