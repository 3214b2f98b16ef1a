"""Size-standard ingestion from spreadsheet exports.

Expected column order (0-based)::

    0  include      TRUE / 1 keeps the row, anything else drops it
    1  POM code
    2  description
    3  minus tolerance
    4  plus tolerance
    5+ one column per size label (header row holds the labels)

Processing runs in three stages so malformed input fails early with a
row/column locator:

1. ``read_standard_table``: CSV -> string DataFrame (pandas)
2. ``decode_rows``: DataFrame -> size labels + typed ``StandardRow`` records
3. ``pivot_sizes``: included rows -> ``{size: [PomEntry, ...]}``

``ingest_standards`` runs all three and upserts the result.
Descriptions, tolerances and values are kept as the exact cell text; only
the include and POM code cells are trimmed. Nothing is parsed as a number.
"""

import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from garmentqc.contracts.failure import StandardsDecodeError, ValidationError
from garmentqc.contracts.standards import assert_standard_shape
from garmentqc.schemas.domain import PomEntry, SizeStandard

__all__ = [
    'StandardRow',
    'read_standard_table',
    'decode_rows',
    'pivot_sizes',
    'build_standard',
    'ingest_standards',
    'is_included',
]

logger = logging.getLogger(__name__)

SIZE_COLUMN_OFFSET = 5
INCLUDE_VALUES = {"TRUE", "1"}


class StandardRow(BaseModel):
    """One decoded data row. ``row`` is the 1-based table row (header = 1, blank lines skipped)."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    row: int = Field(ge=2)
    include: str = ""
    code: str = ""
    description: str = ""
    tol_minus: str = ""
    tol_plus: str = ""
    values: Tuple[str, ...] = ()

    @property
    def included(self) -> bool:
        return is_included(self.include)


def is_included(value) -> bool:
    """True when the include cell reads TRUE or 1 (trimmed, case-insensitive)."""
    if value is None:
        return False
    return str(value).strip().upper() in INCLUDE_VALUES


def read_standard_table(source) -> pd.DataFrame:
    """Read a standards CSV into an all-string DataFrame without a header.

    Parameters
    ----------
    source : str, Path or file-like
        Path to a CSV file, CSV text (anything containing a newline), or
        an open text/binary file.

    Returns
    -------
    pd.DataFrame
        Every cell a string; missing cells are ``""``. Row 0 is the header.

    Raises
    ------
    StandardsDecodeError
        If the input is empty or not parseable as CSV.
    """
    if isinstance(source, str) and "\n" in source:
        source = io.StringIO(source)

    try:
        df = pd.read_csv(
            source,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise StandardsDecodeError("Standards table is empty") from e
    except pd.errors.ParserError as e:
        raise StandardsDecodeError(f"Standards table is not valid CSV: {e}") from e

    return df.fillna("")


def _cell(values: list, index: int, strip: bool = False) -> str:
    if index >= len(values):
        return ""
    text = str(values[index])
    return text.strip() if strip else text


def decode_rows(df: pd.DataFrame, offset: int = SIZE_COLUMN_OFFSET) -> Tuple[List[str], List[StandardRow]]:
    """Split a raw table into size labels and typed rows.

    Trailing blank header cells (spreadsheet padding) are ignored.

    Raises
    ------
    StandardsDecodeError
        If the header has no size columns, a size label is blank or
        repeated, or an included row has no POM code.
    """
    if df.empty:
        raise StandardsDecodeError("Standards table has no header row", row=1)

    header = [str(v).strip() for v in df.iloc[0].tolist()]
    while header and not header[-1]:
        header.pop()

    if len(header) <= offset:
        raise StandardsDecodeError(
            f"Header has {len(header)} column(s); size labels start at column {offset + 1}",
            row=1,
        )

    labels = header[offset:]
    seen = set()
    for i, label in enumerate(labels):
        column_number = offset + i + 1
        if not label:
            raise StandardsDecodeError("Blank size label", row=1, column=f"#{column_number}")
        if label in seen:
            raise StandardsDecodeError("Duplicate size label", row=1, column=label)
        seen.add(label)

    code_column = header[1] or "#2"
    rows = []
    for position, values in enumerate(df.iloc[1:].itertuples(index=False, name=None), start=2):
        values = list(values)
        decoded = StandardRow(
            row=position,
            include=_cell(values, 0, strip=True),
            code=_cell(values, 1, strip=True),
            description=_cell(values, 2),
            tol_minus=_cell(values, 3),
            tol_plus=_cell(values, 4),
            values=tuple(_cell(values, offset + i) for i in range(len(labels))),
        )
        if decoded.included and not decoded.code:
            raise StandardsDecodeError("Included row has no POM code", row=position, column=code_column)
        rows.append(decoded)

    return labels, rows


def pivot_sizes(labels: List[str], rows: List[StandardRow]) -> Dict[str, List[PomEntry]]:
    """Build the per-size mapping from included rows.

    Every size gets one entry per included row, in row order; a missing
    cell becomes ``""``.
    """
    included = [r for r in rows if r.included]
    sizes: Dict[str, List[PomEntry]] = {}
    for i, label in enumerate(labels):
        sizes[label] = [
            PomEntry(
                code=r.code,
                description=r.description,
                tol_minus=r.tol_minus,
                tol_plus=r.tol_plus,
                value=r.values[i] if i < len(r.values) else "",
            )
            for r in included
        ]
    return sizes


def build_standard(df: pd.DataFrame, garment_type: str, style_code: str,
                   unit: str = "cm", offset: int = SIZE_COLUMN_OFFSET) -> SizeStandard:
    """Decode, filter and pivot a raw table into a ``SizeStandard``.

    Raises
    ------
    ValidationError
        Empty garment type or style code, or no included rows.
    StandardsDecodeError
        Malformed table.
    """
    garment_type = (garment_type or "").strip()
    style_code = (style_code or "").strip()
    if not garment_type:
        raise ValidationError("garment_type is required")
    if not style_code:
        raise ValidationError("style_code is required")

    labels, rows = decode_rows(df, offset)
    included = [r for r in rows if r.included]
    if not included:
        raise ValidationError(
            f"No rows selected for {garment_type}-{style_code}: "
            "mark rows with TRUE or 1 in the first column"
        )

    logger.debug(f"{len(included)}/{len(rows)} row(s) included, sizes={labels}")
    standard = SizeStandard(
        garment_type=garment_type,
        style_code=style_code,
        unit=unit,
        sizes=pivot_sizes(labels, rows),
    )
    assert_standard_shape(standard)
    return standard


def ingest_standards(store, source, garment_type: str, style_code: Optional[str] = None,
                     unit: str = "cm", offset: int = SIZE_COLUMN_OFFSET) -> SizeStandard:
    """Ingest one standards table and upsert it.

    Parameters
    ----------
    store : RecordStore
        Target store; ``upsert_standard`` replaces any previous size map.
    source : str, Path or file-like
        CSV input, see ``read_standard_table``.
    garment_type : str
        Garment type the table applies to.
    style_code : str, optional
        Defaults to the file name without extension when ``source`` is a path.
    unit : str
        Unit of the values and tolerances.
    offset : int
        0-based column index of the first size label.

    Returns
    -------
    SizeStandard
        The standard as stored.

    Examples
    --------
    >>> ingest_standards(store, "specs/ST-204.csv", "trousers").standard_id
    'trousers-ST-204'
    """
    if style_code is None:
        if isinstance(source, (str, Path)) and "\n" not in str(source):
            style_code = Path(source).stem
        else:
            raise ValidationError("style_code is required when ingesting from a stream")

    df = read_standard_table(source)
    standard = build_standard(df, garment_type, style_code, unit=unit, offset=offset)
    stored = store.upsert_standard(standard.garment_type, standard.style_code, standard.sizes, standard.unit)
    logger.info(
        f"Ingested standard {standard.standard_id}: "
        f"{len(standard.sizes)} size(s) x {len(next(iter(standard.sizes.values())))} POM row(s)"
    )
    return stored
