#!/usr/bin/env python3
"""
Generates sample-data/customers_sample.xlsx, a small workbook that exercises
every obfusheet option.

Run from the repo root:
    python sample-data/generate_xlsx.py
    obfusheet -ph -pf --string-replacement=consistent sample-data/customers_sample.xlsx /tmp/out.xlsx

What is inside:
  Sheet "Customers"
    - Header row (try --preserve-headers)
    - Repeated names and cities (try --string-replacement=consistent)
    - Booleans as real cells and as "yes"/"no" text (never obfuscated)
    - Ragged row: row 7 has only two cells
    - Dates, which are obfuscated as text
  Sheet "Totals"
    - Formulas referencing Customers (try --preserve-formulas)
  Sheet "Empty"
    - No data; kept as an empty sheet in the output
  Sheet "Archive"
    - Hidden sheet; still obfuscated
"""

from datetime import date
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "customers_sample.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Customers ───────────────────────────────────────────────────────
ws = wb.active
ws.title = "Customers"

ws.append(["customer_id", "name", "city", "balance", "vip", "newsletter", "joined"])
data = [
    # id      name      city       balance   vip    newsletter  joined
    ["C001",  "Alice",  "Oslo",    1250.75,  True,  "yes",      date(2021, 3, 14)],
    ["C002",  "Bob",    "Bergen",  -80.00,   False, "no",       date(2022, 7, 1)],
    ["C003",  "Alice",  "Oslo",    310.00,   False, "yes",      date(2020, 11, 30)],
    ["C004",  "Dagny",  "Tromsø",  0,        True,  "no",       date(2023, 1, 2)],
    ["C005",  "Erik",   "Bergen",  "42",     False, "TRUE",     None],
]
for row in data:
    ws.append(row)

# Ragged row: only two cells written
ws.append(["C006", "Frida"])

# ── Sheet 2: Totals (formulas) ───────────────────────────────────────────────
ws_totals = wb.create_sheet("Totals")
ws_totals.append(["metric", "value"])
ws_totals.append(["Total balance", "=SUM(Customers!D2:D7)"])
ws_totals.append(["VIP customers", '=COUNTIF(Customers!E2:E7,TRUE)'])
ws_totals.append(["Average balance", "=AVERAGE(Customers!D2:D7)"])

# ── Sheet 3: Empty ───────────────────────────────────────────────────────────
wb.create_sheet("Empty")

# ── Sheet 4: Archive (hidden) ────────────────────────────────────────────────
ws_archive = wb.create_sheet("Archive")
ws_archive.append(["customer_id", "name", "closed"])
ws_archive.append(["C000", "Gunnar", "2019-12-31"])
ws_archive.append(["C099", "Hedda", "2018-06-15"])
ws_archive.sheet_state = "hidden"

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
