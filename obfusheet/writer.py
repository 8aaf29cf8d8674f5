from __future__ import annotations

import os
import re
import tempfile
from collections import Counter
from pathlib import Path

from obfusheet.cells import BooleanCell, EmptyCell, FormulaCell, NumberCell, RawCell, StringCell, Workbook, cell_text
from obfusheet.errors import CellWriteError, UnsupportedOutputError

OUTPUT_FORMATS = ("xlsx", "csv")
XLSX_SUFFIXES = {".xlsx"}
MAX_SHEET_TITLE = 31
INVALID_TITLE_RE = re.compile(r"[\\/*?:\[\]]")
INVALID_FILENAME_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def resolve_output_format(output_path: Path, requested: str | None = None) -> str:
    """
    Pick the writer for an output path.

    An explicit request wins; otherwise an existing directory or a path
    without a suffix means CSV files, and .xlsx means a workbook.
    """
    if requested is not None:
        if requested not in OUTPUT_FORMATS:
            raise UnsupportedOutputError(f"Unsupported output format '{requested}'. Supported: {', '.join(OUTPUT_FORMATS)}")
        return requested
    if output_path.is_dir() or not output_path.suffix:
        return "csv"
    if output_path.suffix.lower() in XLSX_SUFFIXES:
        return "xlsx"
    raise UnsupportedOutputError(
        f"Unsupported output target '{output_path.suffix}'. "
        "Use an .xlsx file, or a directory together with --csv."
    )


def check_output_target(output_path: Path, output_format: str) -> None:
    if output_format == "xlsx":
        if output_path.suffix.lower() not in XLSX_SUFFIXES:
            raise UnsupportedOutputError(
                f"Workbook output must be an .xlsx file, got '{output_path.suffix or '[missing extension]'}'"
            )
        if output_path.is_dir():
            raise UnsupportedOutputError(f"Workbook output path is a directory: {output_path}")
    elif output_format == "csv":
        if output_path.exists() and not output_path.is_dir():
            raise UnsupportedOutputError(f"CSV output must be a directory, but a file exists at: {output_path}")
    else:
        raise UnsupportedOutputError(f"Unsupported output format '{output_format}'")


def safe_sheet_title(name: str, taken: set[str], index: int) -> str:
    title = INVALID_TITLE_RE.sub("_", name).strip("'")[:MAX_SHEET_TITLE] or f"Sheet{index + 1}"
    if title.lower() not in taken:
        return title
    suffix = f"_{index}"
    return title[: MAX_SHEET_TITLE - len(suffix)] + suffix


def excel_value(cell: RawCell):
    if isinstance(cell, StringCell):
        return cell.text
    if isinstance(cell, NumberCell):
        return cell.value
    if isinstance(cell, BooleanCell):
        return cell.value
    if isinstance(cell, EmptyCell):
        return None
    if isinstance(cell, FormulaCell):
        formula = cell.formula
        return formula if formula.startswith("=") else f"={formula}"
    raise TypeError(f"Unknown cell type: {type(cell).__name__}")


def write_xlsx(workbook: Workbook, output_path: Path, stats: Counter) -> list[str]:
    from openpyxl import Workbook as XlsxWorkbook
    from openpyxl.utils import get_column_letter
    from openpyxl.utils.exceptions import IllegalCharacterError

    warnings: list[str] = []
    wb = XlsxWorkbook()
    wb.remove(wb.active)
    taken: set[str] = set()

    for index, (name, grid) in enumerate(workbook.items()):
        title = safe_sheet_title(name, taken, index)
        if title != name:
            warnings.append(f"Sheet '{name}' written as '{title}'")
        taken.add(title.lower())
        ws = wb.create_sheet(title)

        for row_idx, row in enumerate(grid, start=1):
            for col_idx, cell in enumerate(row, start=1):
                if isinstance(cell, EmptyCell):
                    continue
                try:
                    target = ws.cell(row=row_idx, column=col_idx)
                    target.value = excel_value(cell)
                    if isinstance(cell, StringCell):
                        # text such as "=abc" must not turn into a formula
                        target.data_type = "s"
                except (IllegalCharacterError, ValueError, TypeError) as exc:
                    error = CellWriteError(title, f"{get_column_letter(col_idx)}{row_idx}", exc)
                    warnings.append(str(error))
                    stats["cells_skipped_on_write"] += 1

    if not wb.worksheets:
        wb.create_sheet("Sheet1")
        warnings.append("No sheets to write; created an empty 'Sheet1'")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.stem}.", suffix=output_path.suffix, dir=str(output_path.parent))
    os.close(fd)
    temp_path = Path(tmp_name)
    try:
        wb.save(temp_path)
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return warnings


def csv_filename(name: str, taken: set[str]) -> str:
    stem = INVALID_FILENAME_RE.sub("_", name).strip() or "sheet"
    candidate = stem
    counter = 2
    while candidate.lower() in taken:
        candidate = f"{stem}_{counter}"
        counter += 1
    taken.add(candidate.lower())
    return f"{candidate}.csv"


def write_csv_directory(workbook: Workbook, output_dir: Path) -> list[str]:
    import pandas as pd

    warnings: list[str] = []
    output_dir.mkdir(parents=True, exist_ok=True)
    taken: set[str] = set()
    for name, grid in workbook.items():
        filename = csv_filename(name, taken)
        if filename != f"{name}.csv":
            warnings.append(f"Sheet '{name}' written as '{filename}'")
        frame = pd.DataFrame([[cell_text(cell) for cell in row] for row in grid], dtype=object)
        frame.to_csv(output_dir / filename, header=False, index=False, lineterminator="\n")
    return warnings


def save_workbook(
    workbook: Workbook,
    output_path: str | Path,
    output_format: str,
    stats: Counter | None = None,
) -> list[str]:
    """
    Persist an obfuscated workbook; returns human-readable warnings.

    Cells that cannot be written are skipped and reported, never fatal.
    """
    output_path = Path(output_path)
    check_output_target(output_path, output_format)
    stats = stats if stats is not None else Counter()
    if output_format == "xlsx":
        return write_xlsx(workbook, output_path, stats)
    return write_csv_directory(workbook, output_path)
