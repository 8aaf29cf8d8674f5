"""
loader.py - workbook loader for obfusheet

Supports: .csv .tsv .txt .xlsx .xlsm .xls .ods

Public API:
    loaded   = load_workbook_file("path/to/file.xlsx")
    workbook = loaded.workbook     # {sheet name: grid of raw cells}

Every sheet of a workbook is loaded (hidden ones included). Delimited text
files produce a single sheet named after the file stem. Text cells stay
unclassified StringCells; the obfuscation pass classifies them.
"""

from __future__ import annotations

import csv
import io
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from obfusheet.cells import EMPTY, FormulaCell, Grid, RawCell, StringCell, Workbook, from_python
from obfusheet.errors import LoadError

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS   = {".csv", ".tsv", ".txt"}
OOXML_FORMATS  = {".xlsx", ".xlsm"}
LEGACY_FORMATS = {".xls", ".ods"}
ALL_FORMATS    = TEXT_FORMATS | OOXML_FORMATS | LEGACY_FORMATS


@dataclass
class LoadedWorkbook:
    workbook: Workbook
    detected_format: str
    sheet_names: list[str]
    encoding: str | None = None
    delimiter: str | None = None
    warnings: list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    import chardet

    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Embedded null bytes and a leading byte-order mark are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).removeprefix("\ufeff")


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    csv.Sniffer first; otherwise the candidate giving the most consistent
    multi-column width wins.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        widths = [
            len(row)
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not widths:
            continue
        mode_width, mode_count = Counter(widths).most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(widths)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _plain_value(value: Any) -> Any:
    # numpy scalars from pandas -> builtin Python values
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (TypeError, ValueError):
            return value
    return value


def _text_cell(value: str) -> RawCell:
    return EMPTY if value == "" else StringCell(value)


def _load_text(path: Path, suffix: str) -> LoadedWorkbook:
    """
    Load .csv, .tsv, or .txt into a single sheet.

    Rows are read with csv.reader rather than pandas so that ragged rows keep
    their own length; the obfuscation pass pads them.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise LoadError(f"Could not read {path}: {exc}") from exc
    encoding = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    try:
        rows = list(csv.reader(io.StringIO(text), delimiter=delimiter))
    except csv.Error as exc:
        raise LoadError(f"Could not parse {suffix} file: {exc}") from exc

    grid: Grid = [[_text_cell(value) for value in row] for row in rows]
    sheet_name = path.stem or "Sheet1"
    return LoadedWorkbook(
        workbook={sheet_name: _trim_grid(grid)},
        detected_format=suffix.lstrip("."),
        sheet_names=[sheet_name],
        encoding=encoding,
        delimiter=delimiter,
    )


def is_encrypted_ooxml(path: Path) -> bool:
    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile:
        return False
    return {"EncryptedPackage", "EncryptionInfo"}.issubset(names)


def _ooxml_cell(cell, cached_value: Any) -> RawCell:
    value = cell.value
    if value is None:
        return EMPTY
    if cell.data_type == "f":
        # ArrayFormula / DataTableFormula carry their text on .text
        formula = getattr(value, "text", value)
        return FormulaCell(formula=str(formula), cached=cached_value)
    return from_python(value)


def _load_ooxml(path: Path, suffix: str) -> LoadedWorkbook:
    from openpyxl import load_workbook

    if is_encrypted_ooxml(path):
        raise LoadError("Password-protected / encrypted OOXML workbooks are not supported")

    keep_vba = suffix == ".xlsm"
    try:
        formulas = load_workbook(path, keep_vba=keep_vba)
        cached = load_workbook(path, data_only=True, keep_vba=keep_vba)
    except Exception as exc:
        raise LoadError(f"Could not read workbook: {exc}") from exc

    workbook: Workbook = {}
    warnings: list[str] = []
    for sheet in formulas.worksheets:
        cached_sheet = cached[sheet.title]
        grid: Grid = []
        for row in sheet.iter_rows(min_row=1, max_row=sheet.max_row, max_col=sheet.max_column):
            cells: list[RawCell] = []
            for cell in row:
                cached_value = None
                if cell.data_type == "f":
                    cached_value = cached_sheet.cell(row=cell.row, column=cell.column).value
                cells.append(_ooxml_cell(cell, cached_value))
            grid.append(cells)
        grid = _trim_grid(grid)
        if not grid:
            warnings.append(f"Sheet '{sheet.title}' is empty")
        workbook[sheet.title] = grid
    if formulas.chartsheets:
        warnings.append(f"Skipped {len(formulas.chartsheets)} chart sheet(s)")

    return LoadedWorkbook(
        workbook=workbook,
        detected_format=suffix.lstrip("."),
        sheet_names=list(workbook),
        warnings=warnings,
    )


def _load_legacy(path: Path, suffix: str) -> LoadedWorkbook:
    """
    Load .xls (xlrd) or .ods (odfpy) through pandas.

    Formulas are not visible through pandas, so cells arrive as their values.
    """
    import pandas as pd

    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise LoadError(".xls files require xlrd; run: pip install xlrd")
        engine = "xlrd"
    else:
        try:
            import odf  # noqa: F401
        except ImportError:
            raise LoadError(".ods files require odfpy; run: pip install odfpy")
        engine = "odf"

    try:
        frames = pd.read_excel(path, sheet_name=None, header=None, dtype=object, engine=engine)
    except Exception as exc:
        raise LoadError(f"Could not open {suffix} file: {exc}") from exc

    workbook: Workbook = {}
    for name, df in frames.items():
        grid: Grid = [
            [EMPTY if pd.isna(value) else from_python(_plain_value(value)) for value in row]
            for row in df.itertuples(index=False, name=None)
        ]
        workbook[str(name)] = _trim_grid(grid)

    return LoadedWorkbook(
        workbook=workbook,
        detected_format=suffix.lstrip("."),
        sheet_names=list(workbook),
        warnings=["Formulas are not readable from legacy formats; cached values were loaded instead"],
    )


def _trim_grid(grid: Grid) -> Grid:
    """Drop trailing empty rows and trailing empty columns."""
    rows = [list(row) for row in grid]
    while rows and all(cell == EMPTY for cell in rows[-1]):
        rows.pop()
    width = 0
    for row in rows:
        for idx in range(len(row) - 1, -1, -1):
            if row[idx] != EMPTY:
                width = max(width, idx + 1)
                break
    return [row[:width] for row in rows]


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_workbook_file(path: str | Path) -> LoadedWorkbook:
    """
    Load any supported file into a workbook of raw cells.

    Raises:
        LoadError  if the file is missing, unsupported, or unreadable.
    """
    path   = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise LoadError(f"File not found: {path}")
    if not path.is_file():
        raise LoadError(f"Not a file: {path}")

    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise LoadError(f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}")

    if suffix in TEXT_FORMATS:
        return _load_text(path, suffix)
    if suffix in OOXML_FORMATS:
        return _load_ooxml(path, suffix)
    return _load_legacy(path, suffix)
