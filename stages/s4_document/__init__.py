"""Stage 4: Document"""

from .assembler import DocumentAssembler, assemble_document, build_save_payload, section_data
from .prefill import format_address, prefill_section

__all__ = [
    "DocumentAssembler",
    "assemble_document",
    "build_save_payload",
    "section_data",
    "format_address",
    "prefill_section",
]
