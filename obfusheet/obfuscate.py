"""
obfuscate.py - the per-sheet obfuscation pass

For every sheet, in order:
  1. pad ragged rows with empty cells
  2. start fresh replacement memos
  3. shuffle rows (header row pinned when preserve_headers)
  4. shuffle columns (header cells travel with their column)
  5. classify and replace every cell outside the exemptions

The caller's workbook is never mutated; a new workbook is returned.
"""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from obfusheet import __version__ as TOOL_VERSION
from obfusheet.cells import (
    EMPTY,
    BooleanCell,
    EmptyCell,
    FormulaCell,
    Grid,
    NumberCell,
    RawCell,
    StringCell,
    Workbook,
    as_cell_value,
)
from obfusheet.contracts import build_contract, build_run_summary
from obfusheet.loader import load_workbook_file
from obfusheet.replacement import ReplacementMemo, replace_value
from obfusheet.shuffle import apply_column_permutation, apply_row_permutation, permute_columns, permute_rows
from obfusheet.writer import save_workbook

STRING_POLICIES = ("random", "consistent", "none")
NUMBER_POLICIES = ("jitter", "random", "consistent", "none")


@dataclass(frozen=True)
class ObfuscationOptions:
    preserve_headers: bool = False
    preserve_formulas: bool = False
    preserve_numbers: bool = False
    shuffle_rows: bool = False
    shuffle_columns: bool = False
    string_policy: str = "random"
    number_policy: str = "jitter"
    jitter_percent: float = 15.0

    def __post_init__(self) -> None:
        if self.string_policy not in STRING_POLICIES:
            raise ValueError(f"Invalid string replacement type: {self.string_policy}")
        if self.number_policy not in NUMBER_POLICIES:
            raise ValueError(f"Invalid number replacement type: {self.number_policy}")
        if self.jitter_percent < 0:
            raise ValueError("jitter_percent must not be negative")

    @property
    def effective_number_policy(self) -> str:
        return "none" if self.preserve_numbers else self.number_policy

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["effective_number_policy"] = self.effective_number_policy
        return payload


@dataclass
class ObfuscationRun:
    stats: Counter
    warnings: list[str] = field(default_factory=list)
    sheet_shapes: dict[str, tuple[int, int]] = field(default_factory=dict)


def rectangularize(grid: Grid) -> tuple[Grid, int]:
    """Copy grid with every row padded to the widest row; returns (grid, cells padded)."""
    width = max((len(row) for row in grid), default=0)
    padded = 0
    result: Grid = []
    for row in grid:
        missing = width - len(row)
        padded += missing
        result.append(list(row) + [EMPTY] * missing)
    return result, padded


def _count_replacement(stats: Counter, value, replaced) -> None:
    if isinstance(value, StringCell):
        stats["strings_replaced" if replaced is not value else "strings_kept"] += 1
    elif isinstance(value, NumberCell):
        stats["numbers_replaced" if replaced is not value else "numbers_kept"] += 1
    elif isinstance(value, BooleanCell):
        stats["booleans_kept"] += 1
    elif isinstance(value, EmptyCell):
        stats["empty_cells"] += 1


def obfuscate_cell(
    cell: RawCell,
    options: ObfuscationOptions,
    memo: ReplacementMemo,
    rng: random.Random,
    stats: Counter,
) -> RawCell:
    if isinstance(cell, FormulaCell):
        if options.preserve_formulas:
            stats["formulas_preserved"] += 1
            return cell
        # the cached result stands in for the formula
        value = as_cell_value(cell)
        replaced = replace_value(value, options, memo, rng)
        stats["formula_results_replaced"] += 1
        _count_replacement(stats, value, replaced)
        return replaced

    value = as_cell_value(cell)
    replaced = replace_value(value, options, memo, rng)
    _count_replacement(stats, value, replaced)
    # untouched values keep their original representation ("yes" stays "yes")
    return cell if replaced is value else replaced


def process_sheet(
    grid: Grid,
    options: ObfuscationOptions,
    rng: random.Random,
    stats: Counter | None = None,
) -> Grid:
    stats = stats if stats is not None else Counter()
    sheet, padded = rectangularize(grid)
    stats["cells_padded"] += padded
    memo = ReplacementMemo()

    if options.shuffle_rows and sheet:
        sheet = apply_row_permutation(sheet, permute_rows(len(sheet), options.preserve_headers, rng))
        stats["row_shuffles"] += 1
    if options.shuffle_columns and sheet and sheet[0]:
        sheet = apply_column_permutation(sheet, permute_columns(len(sheet[0]), rng))
        stats["column_shuffles"] += 1

    result: Grid = []
    for row_idx, row in enumerate(sheet):
        if row_idx == 0 and options.preserve_headers:
            stats["header_cells_preserved"] += len(row)
            result.append(list(row))
            continue
        result.append([obfuscate_cell(cell, options, memo, rng, stats) for cell in row])
    memo.clear()
    return result


def process_workbook(
    workbook: Workbook,
    options: ObfuscationOptions,
    rng: random.Random,
    stats: Counter | None = None,
) -> Workbook:
    stats = stats if stats is not None else Counter()
    result: Workbook = {}
    for name, grid in workbook.items():
        stats["sheets_processed"] += 1
        if not grid:
            stats["empty_sheets"] += 1
        result[name] = process_sheet(grid, options, rng, stats)
    return result


def make_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)


def obfuscate_file(
    input_path: Path,
    output_path: Path,
    options: ObfuscationOptions,
    *,
    output_format: str,
    rng: random.Random,
) -> ObfuscationRun:
    """Load, obfuscate and save one file. Load failures raise LoadError."""
    loaded = load_workbook_file(input_path)
    stats = Counter()
    obfuscated = process_workbook(loaded.workbook, options, rng, stats)
    warnings = list(loaded.warnings)
    warnings.extend(save_workbook(obfuscated, output_path, output_format, stats))
    shapes = {name: (len(grid), len(grid[0]) if grid else 0) for name, grid in obfuscated.items()}
    return ObfuscationRun(stats=stats, warnings=warnings, sheet_shapes=shapes)


def build_structured_summary(
    *,
    input_path: Path,
    output_path: Path,
    output_format: str,
    options: ObfuscationOptions,
    run: ObfuscationRun,
    seed: int | None = None,
) -> dict:
    contract = build_contract("obfusheet.run_summary")
    assumptions = [
        "Boolean cells are never obfuscated",
        "Replacement memos are per sheet; the same value may map differently on another sheet",
        "Column shuffling also moves header cells",
    ]
    if options.effective_number_policy == "random":
        assumptions.append("Random number replacement orders the [0, 2x] interval for negative values")
    if not options.preserve_formulas:
        assumptions.append("Formula cells are replaced by their (obfuscated) cached result")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "input_file": str(input_path),
        "output_file": str(output_path),
        "output_format": output_format,
        "seed": seed,
        "options": options.as_dict(),
        "sheets": {name: {"rows": rows, "columns": cols} for name, (rows, cols) in run.sheet_shapes.items()},
        "stats": dict(run.stats),
        "warnings": list(run.warnings),
        "assumptions": assumptions,
        "run_summary": build_run_summary(
            input_path=input_path,
            output_path=output_path,
            output_format=output_format,
            status="partial" if run.stats["cells_skipped_on_write"] else "ok",
            metrics={
                "sheets_processed": run.stats["sheets_processed"],
                "strings_replaced": run.stats["strings_replaced"],
                "numbers_replaced": run.stats["numbers_replaced"],
                "formulas_preserved": run.stats["formulas_preserved"],
                "header_cells_preserved": run.stats["header_cells_preserved"],
                "cells_skipped_on_write": run.stats["cells_skipped_on_write"],
            },
            warnings=run.warnings,
        ),
    }
