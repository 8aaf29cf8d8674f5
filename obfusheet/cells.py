"""
cells.py - cell value model and classification

A loaded sheet is a grid of raw cells. Text cells arrive unclassified as
StringCell; typed workbook cells arrive as NumberCell / BooleanCell; formulas
arrive as FormulaCell carrying their cached result.

classify() turns raw text into exactly one of the four value kinds:

    ""  / "   "         -> EmptyCell
    "42" / "-1.5e3"     -> NumberCell
    "yes" / "FALSE"     -> BooleanCell
    anything else       -> StringCell (text unchanged)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Union

DECIMAL_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
TRUE_TOKENS = {"true", "yes", "1"}
FALSE_TOKENS = {"false", "no", "0"}


@dataclass(frozen=True)
class StringCell:
    text: str


@dataclass(frozen=True)
class NumberCell:
    value: float


@dataclass(frozen=True)
class BooleanCell:
    value: bool


@dataclass(frozen=True)
class EmptyCell:
    pass


@dataclass(frozen=True)
class FormulaCell:
    formula: str
    cached: Any = None


EMPTY = EmptyCell()

CellValue = Union[StringCell, NumberCell, BooleanCell, EmptyCell]
RawCell = Union[StringCell, NumberCell, BooleanCell, EmptyCell, FormulaCell]
Grid = list[list[RawCell]]
Workbook = dict[str, Grid]


def parse_decimal(raw: str) -> float | None:
    candidate = raw.strip()
    if not DECIMAL_RE.match(candidate):
        return None
    return float(candidate)


def classify(raw: str) -> CellValue:
    if raw.strip() == "":
        return EMPTY

    number = parse_decimal(raw)
    if number is not None:
        return NumberCell(number)

    lowered = raw.lower()
    if lowered in TRUE_TOKENS:
        return BooleanCell(True)
    if lowered in FALSE_TOKENS:
        return BooleanCell(False)

    return StringCell(raw)


def from_python(value: Any) -> CellValue:
    """Map a plain Python value (as read by openpyxl or pandas) to a cell."""
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return BooleanCell(value)
    if isinstance(value, (int, float)):
        return NumberCell(float(value))
    if isinstance(value, (datetime, date, time)):
        return StringCell(value.isoformat())
    text = str(value)
    if text.strip() == "":
        return EMPTY
    return StringCell(text)


def as_cell_value(raw: RawCell) -> CellValue:
    """Resolve a raw cell to the value kind used for replacement."""
    if isinstance(raw, StringCell):
        return classify(raw.text)
    if isinstance(raw, (NumberCell, BooleanCell, EmptyCell)):
        return raw
    if isinstance(raw, FormulaCell):
        cached = raw.cached
        if isinstance(cached, str):
            return classify(cached)
        return from_python(cached)
    raise TypeError(f"Unknown cell type: {type(raw).__name__}")


def cell_text(cell: RawCell) -> str:
    """Render a cell the way it appears in delimited text output."""
    if isinstance(cell, StringCell):
        return cell.text
    if isinstance(cell, NumberCell):
        return repr(cell.value)
    if isinstance(cell, BooleanCell):
        return "true" if cell.value else "false"
    if isinstance(cell, EmptyCell):
        return ""
    if isinstance(cell, FormulaCell):
        return cell.formula
    raise TypeError(f"Unknown cell type: {type(cell).__name__}")
