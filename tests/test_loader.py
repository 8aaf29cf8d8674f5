from __future__ import annotations

import importlib.util
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from openpyxl import Workbook

from obfusheet.cells import EMPTY, BooleanCell, FormulaCell, NumberCell, StringCell
from obfusheet.errors import LoadError
from obfusheet.loader import is_encrypted_ooxml, load_workbook_file

_XLRD_AVAILABLE = importlib.util.find_spec("xlrd") is not None


class TextLoaderTests(unittest.TestCase):
    def test_csv_rows_keep_their_own_length(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "people.csv"
            path.write_text("Name,Age,City\nAlice,30\nBob,25,Oslo,extra\nCarol,41,Rome\n", encoding="utf-8")

            loaded = load_workbook_file(path)

            self.assertEqual(loaded.detected_format, "csv")
            self.assertEqual(loaded.sheet_names, ["people"])
            self.assertEqual(loaded.delimiter, ",")
            grid = loaded.workbook["people"]
            self.assertEqual([len(row) for row in grid], [3, 2, 4, 3])
            self.assertEqual(grid[1], [StringCell("Alice"), StringCell("30")])

    def test_semicolon_delimiter_is_detected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "export.csv"
            path.write_text("a;b;c\n1;2;3\n4;5;6\n", encoding="utf-8")

            loaded = load_workbook_file(path)

            self.assertEqual(loaded.delimiter, ";")
            self.assertEqual(loaded.workbook["export"][0], [StringCell("a"), StringCell("b"), StringCell("c")])

    def test_tsv_uses_tabs_and_blank_fields_are_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "scores.tsv"
            path.write_text("name\tscore\nAnn\t\nBen\t7\n", encoding="utf-8")

            grid = load_workbook_file(path).workbook["scores"]

            self.assertEqual(grid[1], [StringCell("Ann"), EMPTY])
            self.assertEqual(grid[2], [StringCell("Ben"), StringCell("7")])

    def test_utf8_byte_order_mark_is_dropped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "excel_export.csv"
            path.write_bytes("Name,Age\nAlice,30\n".encode("utf-8-sig"))

            grid = load_workbook_file(path).workbook["excel_export"]

            self.assertEqual(grid[0], [StringCell("Name"), StringCell("Age")])
            self.assertEqual(grid[1], [StringCell("Alice"), StringCell("30")])


class WorkbookLoaderTests(unittest.TestCase):
    def test_xlsx_cells_map_to_raw_cells(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "book.xlsx"
            wb = Workbook()
            ws = wb.active
            ws.title = "Data"
            ws.append(["Name", "Age", "Active", "Joined", "Double"])
            ws.append(["Alice", 30, True, datetime(2024, 5, 1), "=B2*2"])
            wb.create_sheet("Notes")["A1"] = "hidden remarks"
            wb.create_sheet("Blank")
            wb.save(path)

            loaded = load_workbook_file(path)

            self.assertEqual(loaded.sheet_names, ["Data", "Notes", "Blank"])
            header, row = loaded.workbook["Data"]
            self.assertEqual(header[0], StringCell("Name"))
            self.assertEqual(row[0], StringCell("Alice"))
            self.assertEqual(row[1], NumberCell(30.0))
            self.assertEqual(row[2], BooleanCell(True))
            self.assertEqual(row[3], StringCell("2024-05-01T00:00:00"))
            # openpyxl never computes formulas, so there is no cached result
            self.assertEqual(row[4], FormulaCell("=B2*2", None))
            self.assertEqual(loaded.workbook["Notes"], [[StringCell("hidden remarks")]])
            self.assertEqual(loaded.workbook["Blank"], [])
            self.assertIn("Sheet 'Blank' is empty", loaded.warnings)

    def test_trailing_empty_rows_and_columns_are_trimmed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sparse.xlsx"
            wb = Workbook()
            ws = wb.active
            ws["A1"] = "x"
            ws["B2"] = 2
            ws["E9"] = None
            ws["D7"] = ""
            wb.save(path)

            grid = load_workbook_file(path).workbook[ws.title]

            self.assertEqual(grid, [[StringCell("x"), EMPTY], [EMPTY, NumberCell(2.0)]])

    def test_corrupt_xlsx_raises_load_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "corrupt.xlsx"
            path.write_bytes(b"this is not a zip archive")

            self.assertFalse(is_encrypted_ooxml(path))
            with self.assertRaisesRegex(LoadError, "Could not read workbook"):
                load_workbook_file(path)

    @unittest.skipIf(_XLRD_AVAILABLE, "xlrd installed; the missing-engine message is not reachable")
    def test_xls_without_xlrd_explains_the_install(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "legacy.xls"
            path.write_bytes(b"not-a-real-xls")

            with self.assertRaisesRegex(LoadError, "pip install xlrd"):
                load_workbook_file(path)


class LoaderErrorTests(unittest.TestCase):
    def test_missing_file(self):
        with self.assertRaisesRegex(LoadError, "File not found"):
            load_workbook_file("does/not/exist.xlsx")

    def test_directory_is_not_a_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            folder = Path(tmpdir) / "looks.csv"
            folder.mkdir()
            with self.assertRaisesRegex(LoadError, "Not a file"):
                load_workbook_file(folder)

    def test_unsupported_suffix(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "report.pdf"
            path.write_bytes(b"%PDF-1.4")
            with self.assertRaisesRegex(LoadError, "Unsupported format '.pdf'"):
                load_workbook_file(path)


if __name__ == "__main__":
    unittest.main()
