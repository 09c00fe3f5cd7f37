"""CSV ingest: delimited text to typed, immutable datasets (and back).

Rules applied to every file:

- the first non-blank line is the header; a repeated name is rejected;
- CRLF, LF, LFCR and CR line endings are accepted; blank lines are skipped
  unless they sit inside a quoted field;
- a field that starts with a double quote may contain the delimiter, line
  breaks and doubled quotes; its enclosing quotes are removed. A quote in the
  middle of an unquoted field is kept as text;
- each cell becomes ``int`` if it looks like an integer, ``float`` if it looks
  like a float (using the configured decimal separator), ``str`` otherwise;
- rows longer than the header are truncated to it, shorter rows are padded
  with ``0`` so every record carries the full column set.

Parsing is all-or-nothing: an error raised for any row means no dataset.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

import pandas as pd

from .dataset import Dataset, Record, Scalar
from .errors import DuplicateColumnError, MalformedRowError

logger = logging.getLogger("gazetrace.core.ingest")

LINE_SPLIT_RE = re.compile(r"\r\n|\n\r|\n|\r")
QUOTE = '"'
PAD_VALUE = 0

_INT_RE = re.compile(r"[+-]?\d+")


def _float_re(decimal: str) -> re.Pattern:
    d = re.escape(decimal)
    return re.compile(rf"[+-]?(?:\d+(?:{d}\d*)?|{d}\d+)(?:[eE][+-]?\d+)?")


def coerce_value(raw: str, decimal: str = ".") -> Scalar:
    """Coerce one field to ``int``, ``float`` or leave it as ``str``."""
    text = raw.strip()
    if _INT_RE.fullmatch(text):
        return int(text)
    if _float_re(decimal).fullmatch(text):
        return float(text.replace(decimal, ".") if decimal != "." else text)
    return raw


def _ends_in_quotes(text: str, delimiter: str) -> bool:
    """Return whether ``text`` ends inside a quoted field.

    A quote opens a field only as the first character of the field; a quote
    anywhere else in an unquoted field is literal text.
    """
    in_quotes = False
    field_start = True
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < n and text[i + 1] == QUOTE:
                    i += 2
                    continue
                in_quotes = False
        elif ch == QUOTE and field_start:
            in_quotes = True
            field_start = False
        else:
            field_start = ch == delimiter
        i += 1
    return in_quotes


def _split_records(text: str, delimiter: str) -> List[str]:
    """Split ``text`` into logical rows.

    Line breaks inside a quoted field belong to the field, blank lines there
    included. Blank lines outside quoted fields are dropped.

    Raises:
        MalformedRowError: If the text ends inside a quoted field.
    """
    records: List[str] = []
    pending: List[str] = []
    for line in LINE_SPLIT_RE.split(text):
        if not pending and not line.strip():
            continue
        pending.append(line)
        if _ends_in_quotes("\n".join(pending), delimiter):
            continue
        records.append("\n".join(pending))
        pending = []
    if pending:
        raise MalformedRowError("unterminated quoted field", row=len(records))
    return records


def _tokenise(text: str, delimiter: str) -> Tuple[List[str], List[List[str]]]:
    lines = _split_records(text, delimiter)
    if not lines:
        return [], []
    body = "\n".join(lines)

    def _read(**kwargs) -> pd.DataFrame:
        return pd.read_csv(
            io.StringIO(body),
            sep=delimiter,
            header=None,
            dtype=object,
            na_filter=False,
            skip_blank_lines=True,
            index_col=False,
            quotechar=QUOTE,
            engine="python",
            **kwargs,
        )

    try:
        head = _read(nrows=1)
        width = head.shape[1]
        frame = _read(names=list(range(width)), on_bad_lines=lambda fields: fields[:width])
    except pd.errors.ParserError as exc:
        raise MalformedRowError(f"cannot tokenise input: {exc}") from exc

    rows = frame.values.tolist()
    header = [str(v) for v in rows[0]]
    return header, rows[1:]


def _check_header(header: Sequence[str]) -> None:
    seen = set()
    for name in header:
        if name in seen:
            raise DuplicateColumnError(f"duplicate column name in header: {name!r}")
        seen.add(name)


def _normalise_row(cells: Sequence[object], width: int, decimal: str, number: int) -> Tuple[Scalar, ...]:
    present = [c for c in cells[:width] if isinstance(c, str)]
    if not present:
        raise MalformedRowError("no fields", row=number)
    values = [coerce_value(c, decimal) for c in present]
    if len(values) < width:
        values.extend([PAD_VALUE] * (width - len(values)))
    return tuple(values)


def _parse(text: str, delimiter: str, decimal: str) -> Tuple[List[str], List[Tuple[Scalar, ...]]]:
    if delimiter == decimal:
        raise ValueError("delimiter and decimal separator must differ")
    header, raw_rows = _tokenise(text, delimiter)
    _check_header(header)
    width = len(header)
    padded = 0
    rows = []
    for number, cells in enumerate(raw_rows, start=1):
        row = _normalise_row(cells, width, decimal, number)
        if any(not isinstance(c, str) for c in cells[:width]):
            padded += 1
        rows.append(row)
    if padded:
        logger.warning("padded %d short row(s) to %d columns", padded, width)
    return header, rows


def iter_records(text: str, *, delimiter: str = ",", decimal: str = ".") -> Iterator[Record]:
    """Yield the records of ``text`` one by one, in row order."""
    header, rows = _parse(text, delimiter, decimal)
    columns = tuple(header)
    index = {name: i for i, name in enumerate(columns)}
    for row in rows:
        yield Record(columns, row, index)


def parse_csv(text: str, *, delimiter: str = ",", decimal: str = ".") -> Dataset:
    """Parse delimited text into a :class:`Dataset`.

    Args:
        text: Whole file contents, header first.
        delimiter: Field separator (``;`` for the toolkit's own logs).
        decimal: Decimal separator used when recognising floats.

    Returns:
        The materialised dataset. Text without any line yields an empty
        dataset with no columns.

    Raises:
        DuplicateColumnError: The header repeats a column name.
        MalformedRowError: A row cannot be tokenised.
    """
    header, rows = _parse(text, delimiter, decimal)
    dataset = Dataset(header, rows)
    logger.info("ingested %d row(s) x %d column(s)", len(dataset), len(header))
    return dataset


def read_csv(path: str | Path, *, delimiter: str = ",", decimal: str = ".", encoding: str = "utf-8-sig") -> Dataset:
    """Read and parse a CSV file."""
    p = Path(path)
    logger.info("read: %s", p)
    return parse_csv(p.read_text(encoding=encoding), delimiter=delimiter, decimal=decimal)


def dumps_csv(dataset: Dataset, *, delimiter: str = ",") -> str:
    """Serialise a dataset back to CSV text (header row first, LF endings)."""
    return dataset.to_frame().to_csv(index=False, sep=delimiter, lineterminator="\n")


def write_csv(dataset: Dataset, path: str | Path, *, delimiter: str = ",", encoding: str = "utf-8") -> str:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    dataset.to_frame().to_csv(out_path, index=False, sep=delimiter, lineterminator="\n", encoding=encoding)
    return str(out_path)


__all__ = [
    "coerce_value",
    "iter_records",
    "parse_csv",
    "read_csv",
    "dumps_csv",
    "write_csv",
]
