"""Size-standard ingestion."""

from garmentqc.standards.ingestion import (
    StandardRow,
    build_standard,
    decode_rows,
    ingest_standards,
    pivot_sizes,
    read_standard_table,
)

__all__ = [
    'StandardRow',
    'build_standard',
    'decode_rows',
    'ingest_standards',
    'pivot_sizes',
    'read_standard_table',
]
