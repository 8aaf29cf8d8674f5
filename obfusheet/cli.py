from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from obfusheet import __version__ as TOOL_VERSION
from obfusheet.errors import EXIT_FAILURE, EXIT_SUCCESS, ArgumentError, ObfusheetError, RunConfigurationError
from obfusheet.obfuscate import (
    NUMBER_POLICIES,
    STRING_POLICIES,
    ObfuscationOptions,
    build_structured_summary,
    make_rng,
    obfuscate_file,
)
from obfusheet.writer import check_output_target, resolve_output_format

SEED_ENV_VAR = "OBFUSHEET_SEED"

EPILOG = """\
By default, creates a single XLSX file with obfuscated data.
With --csv, creates one CSV file per sheet in the output directory.

Examples:
  obfusheet --preserve-headers input.xlsx output.xlsx
  obfusheet --csv --preserve-headers input.xlsx ./obfuscated_csvs/
  obfusheet --string-replacement=consistent input.xlsx output.xlsx
"""


class ObfusheetArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        raise ArgumentError(message, EXIT_FAILURE)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_dumps(payload), encoding="utf-8")


def policy_choice(choices: tuple[str, ...], label: str):
    def parse(value: str) -> str:
        lowered = value.strip().lower()
        if lowered not in choices:
            raise argparse.ArgumentTypeError(
                f"Invalid {label} replacement type: {value} (choose from {', '.join(choices)})"
            )
        return lowered

    return parse


def resolve_seed(cli_seed: int | None) -> int | None:
    if cli_seed is not None:
        return cli_seed
    raw = os.environ.get(SEED_ENV_VAR)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise RunConfigurationError(f"{SEED_ENV_VAR} must be an integer, got {raw!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = ObfusheetArgumentParser(
        prog="obfusheet",
        description="Obfuscate spreadsheet values while keeping the workbook's shape.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", help="Input spreadsheet (.xlsx .xlsm .xls .ods .csv .tsv .txt)")
    parser.add_argument("output", help="Output .xlsx file, or output directory with --csv")
    parser.add_argument("--csv", action="store_true", help="Output as CSV files (one per sheet) instead of XLSX")
    parser.add_argument("-ph", "--preserve-headers", action="store_true", help="Preserve header values in the first row")
    parser.add_argument("-pf", "--preserve-formulas", action="store_true", help="Preserve formulas instead of replacing their results")
    parser.add_argument("-pn", "--preserve-numbers", action="store_true", help="Keep numeric values unchanged")
    parser.add_argument("-sr", "--shuffle-rows", action="store_true", help="Shuffle the order of rows (except headers if preserved)")
    parser.add_argument("-sc", "--shuffle-columns", action="store_true", help="Shuffle the order of columns")
    parser.add_argument(
        "--string-replacement",
        dest="string_policy",
        type=policy_choice(STRING_POLICIES, "string"),
        default="random",
        metavar="{" + ",".join(STRING_POLICIES) + "}",
        help="How to replace string values (default: random)",
    )
    parser.add_argument(
        "--number-replacement",
        dest="number_policy",
        type=policy_choice(NUMBER_POLICIES, "number"),
        default="jitter",
        metavar="{" + ",".join(NUMBER_POLICIES) + "}",
        help="How to replace numeric values (default: jitter)",
    )
    parser.add_argument("--seed", type=int, default=None, help=f"Random seed for reproducible output (env: {SEED_ENV_VAR})")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    parser.add_argument("--json", action="store_true", help="Write the machine JSON run summary to stdout")
    parser.add_argument("--json-summary", dest="json_summary", help="Write the JSON run summary to this path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Per-sheet human logs")
    parser.add_argument("--version", action="version", version=TOOL_VERSION)
    return parser


def options_from_args(args: argparse.Namespace) -> ObfuscationOptions:
    return ObfuscationOptions(
        preserve_headers=args.preserve_headers,
        preserve_formulas=args.preserve_formulas,
        preserve_numbers=args.preserve_numbers,
        shuffle_rows=args.shuffle_rows,
        shuffle_columns=args.shuffle_columns,
        string_policy=args.string_policy,
        number_policy="none" if args.preserve_numbers else args.number_policy,
    )


def render_summary(summary: dict[str, Any], *, verbose: bool = False) -> str:
    stats = summary.get("stats", {})
    options = summary.get("options", {})
    lines = [
        "obfusheet",
        f"Input: {summary.get('input_file', '[unknown]')}",
        f"Output: {summary.get('output_file', '[unknown]')} ({summary.get('output_format', '?')})",
        f"String replacement: {options.get('string_policy')}",
        f"Number replacement: {options.get('effective_number_policy')}",
        f"Sheets processed: {stats.get('sheets_processed', 0)}",
        f"Strings replaced: {stats.get('strings_replaced', 0)}",
        f"Numbers replaced: {stats.get('numbers_replaced', 0)}",
    ]
    if stats.get("header_cells_preserved"):
        lines.append(f"Header cells preserved: {stats['header_cells_preserved']}")
    if stats.get("formulas_preserved"):
        lines.append(f"Formulas preserved: {stats['formulas_preserved']}")
    if stats.get("formula_results_replaced"):
        lines.append(f"Formula results replaced: {stats['formula_results_replaced']}")
    if verbose:
        for name, shape in summary.get("sheets", {}).items():
            lines.append(f"- Sheet '{name}': {shape['rows']} rows x {shape['columns']} columns")
    if summary.get("warnings"):
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in summary["warnings"])
    return "\n".join(lines) + "\n"


def run_obfuscate(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    output_path = Path(args.output)

    options = options_from_args(args)
    seed = resolve_seed(args.seed)
    output_format = resolve_output_format(output_path, "csv" if args.csv else None)
    check_output_target(output_path, output_format)
    if output_format == "xlsx" and output_path.exists() and not args.force:
        raise RunConfigurationError(f"Refusing to overwrite existing output: {output_path} (use --force)")
    if input_path.resolve() == output_path.resolve():
        raise RunConfigurationError("Input and output must be different paths")

    emit_human(f"Processing file: {input_path}", quiet=args.quiet or args.json)
    run = obfuscate_file(input_path, output_path, options, output_format=output_format, rng=make_rng(seed))
    summary = build_structured_summary(
        input_path=input_path,
        output_path=output_path,
        output_format=output_format,
        options=options,
        run=run,
        seed=seed,
    )
    if args.json_summary:
        write_json(Path(args.json_summary), summary)
    if args.json:
        print(json_dumps(summary))
    else:
        emit_human(render_summary(summary, verbose=args.verbose).rstrip(), quiet=args.quiet)
        if args.json_summary:
            emit_human(f"Run summary: {args.json_summary}", quiet=args.quiet)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        return run_obfuscate(args)
    except ObfusheetError as exc:
        eprint(str(exc))
        return exc.code
    except OSError as exc:
        eprint(f"Could not write output: {exc}")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
