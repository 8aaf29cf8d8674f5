from __future__ import annotations

import random
import re
import unittest
from collections import Counter
from pathlib import Path
from unittest import mock

from obfusheet.cells import EMPTY, BooleanCell, FormulaCell, NumberCell, StringCell
from obfusheet.obfuscate import (
    ObfuscationOptions,
    ObfuscationRun,
    build_structured_summary,
    process_sheet,
    process_workbook,
    rectangularize,
)
from obfusheet.replacement import ReplacementMemo

TOKEN_RE = re.compile(r"^[A-Za-z0-9]{3,}$")


def people_sheet():
    return [
        [StringCell("Name"), StringCell("Age")],
        [StringCell("Alice"), StringCell("30")],
        [StringCell("Bob"), StringCell("25")],
    ]


class EndToEndSheetTests(unittest.TestCase):
    def test_consistent_strings_with_numbers_left_alone(self):
        options = ObfuscationOptions(preserve_headers=True, string_policy="consistent", number_policy="none")
        result = process_sheet(people_sheet(), options, random.Random(7))

        self.assertEqual(result[0], [StringCell("Name"), StringCell("Age")])
        self.assertRegex(result[1][0].text, TOKEN_RE)
        self.assertRegex(result[2][0].text, TOKEN_RE)
        self.assertNotEqual(result[1][0], StringCell("Alice"))
        self.assertEqual(result[1][1], StringCell("30"))
        self.assertEqual(result[2][1], StringCell("25"))

    def test_shuffled_rows_keep_header_and_every_record(self):
        options = ObfuscationOptions(
            preserve_headers=True,
            shuffle_rows=True,
            string_policy="none",
            number_policy="none",
        )
        original = people_sheet()
        for seed in range(20):
            result = process_sheet(original, options, random.Random(seed))
            self.assertEqual(result[0], original[0])
            self.assertCountEqual(result[1:], original[1:])

    def test_repeated_values_share_a_replacement_within_a_sheet(self):
        grid = [[StringCell("Oslo"), NumberCell(12.0)], [StringCell("Oslo"), NumberCell(12.0)]]
        options = ObfuscationOptions(string_policy="consistent", number_policy="consistent")
        result = process_sheet(grid, options, random.Random(1))
        self.assertEqual(result[0], result[1])

    def test_seeded_runs_are_reproducible(self):
        options = ObfuscationOptions(shuffle_rows=True, shuffle_columns=True)
        first = process_sheet(people_sheet(), options, random.Random(42))
        second = process_sheet(people_sheet(), options, random.Random(42))
        self.assertEqual(first, second)


class SheetStructureTests(unittest.TestCase):
    def test_rectangularize_pads_short_rows(self):
        grid = [[StringCell("a")], [StringCell("b"), StringCell("c"), StringCell("d")], []]
        padded, count = rectangularize(grid)
        self.assertEqual([len(row) for row in padded], [3, 3, 3])
        self.assertEqual(padded[0], [StringCell("a"), EMPTY, EMPTY])
        self.assertEqual(count, 5)
        self.assertEqual(len(grid[0]), 1)

    def test_ragged_sheet_survives_column_shuffle(self):
        grid = [[StringCell("h1"), StringCell("h2"), StringCell("h3")], [StringCell("x")]]
        options = ObfuscationOptions(shuffle_columns=True, string_policy="none")
        stats = Counter()
        result = process_sheet(grid, options, random.Random(3), stats)
        self.assertEqual([len(row) for row in result], [3, 3])
        self.assertEqual(stats["cells_padded"], 2)

    def test_header_moves_with_its_column(self):
        grid = [
            [StringCell("Name"), StringCell("City"), StringCell("Team")],
            [StringCell("Ann"), StringCell("Rome"), StringCell("Blue")],
        ]
        options = ObfuscationOptions(preserve_headers=True, shuffle_columns=True, string_policy="none")
        result = process_sheet(grid, options, random.Random(9))
        pairs = {result[0][col].text: result[1][col].text for col in range(3)}
        self.assertEqual(pairs, {"Name": "Ann", "City": "Rome", "Team": "Blue"})

    def test_input_grid_is_not_mutated(self):
        grid = people_sheet()
        snapshot = [list(row) for row in grid]
        options = ObfuscationOptions(shuffle_rows=True, shuffle_columns=True)
        process_sheet(grid, options, random.Random(0))
        self.assertEqual(grid, snapshot)

    def test_empty_sheet_stays_empty(self):
        stats = Counter()
        result = process_workbook({"Blank": []}, ObfuscationOptions(shuffle_rows=True), random.Random(0), stats)
        self.assertEqual(result, {"Blank": []})
        self.assertEqual(stats["empty_sheets"], 1)


class CellHandlingTests(unittest.TestCase):
    def test_none_policies_reproduce_the_sheet(self):
        grid = [
            [StringCell("id"), StringCell("active"), StringCell("score")],
            [StringCell("7"), StringCell("yes"), NumberCell(3.5)],
            [StringCell("x1"), BooleanCell(False), EMPTY],
        ]
        options = ObfuscationOptions(string_policy="none", number_policy="none")
        self.assertEqual(process_sheet(grid, options, random.Random(0)), grid)

    def test_booleans_pass_through_under_every_policy(self):
        grid = [[BooleanCell(True), StringCell("no")]]
        options = ObfuscationOptions(string_policy="random", number_policy="random")
        result = process_sheet(grid, options, random.Random(4))
        self.assertEqual(result[0], [BooleanCell(True), StringCell("no")])

    def test_numeric_text_is_obfuscated_as_a_number(self):
        grid = [[StringCell("100")]]
        options = ObfuscationOptions(number_policy="jitter")
        result = process_sheet(grid, options, random.Random(2))
        self.assertIsInstance(result[0][0], NumberCell)
        self.assertLessEqual(abs(result[0][0].value - 100.0), 15.0 + 1e-9)

    def test_preserved_formulas_are_kept_verbatim(self):
        formula = FormulaCell("=SUM(A1:A3)", 60)
        options = ObfuscationOptions(preserve_formulas=True)
        stats = Counter()
        result = process_sheet([[NumberCell(1.0), formula]], options, random.Random(0), stats)
        self.assertIs(result[0][1], formula)
        self.assertEqual(stats["formulas_preserved"], 1)

    def test_unpreserved_formulas_become_obfuscated_results(self):
        options = ObfuscationOptions(number_policy="consistent")
        stats = Counter()
        result = process_sheet([[FormulaCell("=A1*2", 84)]], options, random.Random(0), stats)
        self.assertIsInstance(result[0][0], NumberCell)
        self.assertTrue(0.0 <= result[0][0].value <= 1000.0)
        self.assertEqual(stats["formula_results_replaced"], 1)

    def test_formula_without_cached_result_becomes_empty(self):
        result = process_sheet([[FormulaCell("=NOW()", None)]], ObfuscationOptions(), random.Random(0))
        self.assertEqual(result, [[EMPTY]])

    def test_preserved_header_is_not_classified(self):
        grid = [[StringCell("2024"), StringCell("TRUE")], [StringCell("1"), StringCell("a")]]
        options = ObfuscationOptions(preserve_headers=True)
        result = process_sheet(grid, options, random.Random(0))
        self.assertEqual(result[0], grid[0])


class MemoScopeTests(unittest.TestCase):
    def test_each_sheet_gets_a_fresh_memo(self):
        created = []

        class RecordingMemo(ReplacementMemo):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                created.append(self)

        workbook = {
            "First": [[StringCell("Alice")]],
            "Second": [[StringCell("Alice")]],
        }
        options = ObfuscationOptions(string_policy="consistent")
        with mock.patch("obfusheet.obfuscate.ReplacementMemo", RecordingMemo):
            process_workbook(workbook, options, random.Random(0))

        self.assertEqual(len(created), 2)
        self.assertIsNot(created[0], created[1])
        self.assertTrue(all(not memo.strings for memo in created))


class SummaryTests(unittest.TestCase):
    def test_summary_reports_partial_status_when_cells_were_skipped(self):
        run = ObfuscationRun(
            stats=Counter({"sheets_processed": 1, "cells_skipped_on_write": 1}),
            warnings=["Could not write cell Data!A1: bad"],
            sheet_shapes={"Data": (2, 2)},
        )
        summary = build_structured_summary(
            input_path=Path("in.xlsx"),
            output_path=Path("out.xlsx"),
            output_format="xlsx",
            options=ObfuscationOptions(),
            run=run,
            seed=3,
        )
        self.assertEqual(summary["contract"]["name"], "obfusheet.run_summary")
        self.assertEqual(summary["run_summary"]["status"], "partial")
        self.assertEqual(summary["sheets"], {"Data": {"rows": 2, "columns": 2}})
        self.assertEqual(summary["seed"], 3)
        self.assertIn("Boolean cells are never obfuscated", summary["assumptions"])


if __name__ == "__main__":
    unittest.main()
