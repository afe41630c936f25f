from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from csv_static_table import __version__ as TOOL_VERSION
from csv_static_table import fs
from csv_static_table.config import ConfigError, TableConfig, render_starter_config, resolve_config
from csv_static_table.contracts import build_contract, build_run_summary
from csv_static_table.diagnostics import LoggingDiagnostics, configure_logging
from csv_static_table.errors import OverwriteRefused, ShapeError, TableIOError
from csv_static_table.flags import LoadFlags
from csv_static_table.table import CSVStaticTable
from csv_static_table.tokenizer import NEWLINE_POLICIES

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_SHAPE_ERROR = 2
EXIT_IO_ERROR = 3
EXIT_OVERWRITE_REFUSED = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class CsvTableArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, OverwriteRefused):
        return EXIT_OVERWRITE_REFUSED
    if isinstance(exc, ShapeError):
        return EXIT_SHAPE_ERROR
    if isinstance(exc, TableIOError):
        return EXIT_IO_ERROR
    return EXIT_COMMAND_ERROR


# ── Loading ────────────────────────────────────────────────────────────────────

def resolve_load_config(args: argparse.Namespace) -> TableConfig:
    try:
        config = resolve_config(Path(args.config) if args.config else None)
        flags = LoadFlags.parse(args.flags) if args.flags else None
        if args.headerless:
            flags = (config.flags if flags is None else flags) | LoadFlags.HEADERLESS_SINGLEFIELD
        return config.with_overrides(flags=flags, newline=args.newline, encoding=args.encoding)
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


def load_with_counts(
    input_path: Path,
    config: TableConfig,
    diagnostics: LoggingDiagnostics,
) -> tuple[CSVStaticTable, dict[str, int]]:
    """Load without pruning, then prune step by step so each count is known."""
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_IO_ERROR)
    flags = config.flags
    table = CSVStaticTable.load(
        input_path,
        flags & LoadFlags.HEADERLESS_SINGLEFIELD,
        newline=config.newline,
        encoding=config.encoding,
        diagnostics=diagnostics,
    )
    original_rows = table.row_count
    original_fields = table.field_count
    pruned_columns = table.prune_columns() if flags & LoadFlags.PRUNE_EMPTY_COLUMNS else 0
    pruned_rows = table.prune_rows(flags)
    return table, {
        "original_rows": original_rows,
        "original_fields": original_fields,
        "pruned_columns": pruned_columns,
        "pruned_rows": pruned_rows,
    }


def build_inspect_payload(
    table: CSVStaticTable,
    input_path: Path,
    config: TableConfig,
    counts: dict[str, int],
    warnings: list[str],
) -> dict[str, Any]:
    try:
        size = fs.file_size(input_path)
    except TableIOError as exc:
        raise CliError(str(exc), EXIT_IO_ERROR) from exc
    contract = build_contract("csv_static_table.inspect")
    metrics = {
        "rows": table.row_count,
        "fields": table.field_count,
        **counts,
    }
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "file": input_path.name,
        "bytes": size,
        "encoding": table.encoding,
        "flags": config.flags.describe(),
        "newline": config.newline,
        "header": table.header(),
        "metrics": metrics,
        "run_summary": build_run_summary(
            command="inspect",
            input_path=input_path,
            metrics=metrics,
            warnings=warnings,
        ),
    }


def render_inspect_text(payload: dict[str, Any]) -> str:
    metrics = payload["metrics"]
    lines = [
        f"File: {payload['file']}",
        f"Encoding: {payload['encoding']}",
        f"Shape: {metrics['rows']} rows x {metrics['fields']} fields",
        f"Header: {', '.join(payload['header'])}",
        f"Pruned: {metrics['pruned_columns']} columns, {metrics['pruned_rows']} rows",
    ]
    warnings = payload["run_summary"]["warnings"]
    if warnings:
        lines.append(f"Warnings ({len(warnings)}):")
        lines.extend(f"  - {warning}" for warning in warnings)
    return "\n".join(lines)


# ── Commands ───────────────────────────────────────────────────────────────────

def run_show(args: argparse.Namespace) -> int:
    config = resolve_load_config(args)
    diagnostics = LoggingDiagnostics()
    table, _ = load_with_counts(Path(args.input), config, diagnostics)
    with table:
        if args.frame:
            print(table.to_dataframe().to_string(index=False))
        else:
            table.print_table(sys.stdout, include_debug_info=args.debug)
    return EXIT_SUCCESS


def run_inspect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    config = resolve_load_config(args)
    diagnostics = LoggingDiagnostics()
    table, counts = load_with_counts(input_path, config, diagnostics)
    with table:
        payload = build_inspect_payload(table, input_path, config, counts, diagnostics.warnings)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(render_inspect_text(payload))
    return EXIT_SUCCESS


def resolve_field_index(table: CSVStaticTable, field: str) -> int:
    if field.isdigit():
        index = int(field)
    else:
        header = table.header()
        if field not in header:
            raise CliError(f"Unknown field name: {field}", EXIT_COMMAND_ERROR)
        index = header.index(field)
    if index >= table.field_count:
        raise CliError(f"Field {index} out of range (table has {table.field_count} fields)", EXIT_COMMAND_ERROR)
    return index


def run_cell(args: argparse.Namespace) -> int:
    config = resolve_load_config(args)
    diagnostics = LoggingDiagnostics()
    table, _ = load_with_counts(Path(args.input), config, diagnostics)
    with table:
        if not 0 <= args.row < table.row_count:
            raise CliError(f"Row {args.row} out of range (table has {table.row_count} rows)", EXIT_COMMAND_ERROR)
        field_index = resolve_field_index(table, args.field)
        print(table.cell(args.row, field_index))
    return EXIT_SUCCESS


def run_clean(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    output_path = Path(args.output)
    config = resolve_load_config(args)
    diagnostics = LoggingDiagnostics()
    table, counts = load_with_counts(input_path, config, diagnostics)
    with table:
        table.write(output_path, overwrite=args.overwrite, newline=config.line_terminator)
        metrics = {"rows": table.row_count, "fields": table.field_count, **counts}

    contract = build_contract("csv_static_table.clean_summary")
    summary = {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "run_summary": build_run_summary(
            command="clean",
            input_path=input_path,
            output_path=output_path,
            metrics=metrics,
            warnings=diagnostics.warnings,
        ),
    }
    if args.json:
        maybe_emit_json_stdout(summary, True)
    else:
        emit_human(
            f"Wrote {metrics['rows']} rows x {metrics['fields']} fields "
            f"(pruned {counts['pruned_columns']} columns, {counts['pruned_rows']} rows)",
            quiet=args.quiet,
        )
        emit_human(f"Clean CSV: {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_OVERWRITE_REFUSED
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(render_starter_config(), encoding="utf-8")
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def add_load_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Input CSV path")
    parser.add_argument("--flags", help="Load flags: 'default', 'none' or a comma list such as prune-empty-rows,prune-comment-rows")
    parser.add_argument("--headerless", action="store_true", help="Single-column file without a header; synthesize a 'name' header")
    parser.add_argument("--newline", choices=list(NEWLINE_POLICIES), help="Record separator policy (default: auto)")
    parser.add_argument("--encoding", help="Decode cells with this codec instead of detecting it")
    parser.add_argument("--config", help="JSON config path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = CsvTableArgumentParser(prog="csv-static-table", description="Load, prune and rewrite CSV tables.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print the loaded table as CSV.")
    add_load_options(show)
    show.add_argument("--debug", action="store_true", help="Prefix every row with its grid index")
    show.add_argument("--frame", action="store_true", help="Render through pandas instead of CSV")

    inspect = subparsers.add_parser("inspect", help="Summarize shape, header and pruning.")
    add_load_options(inspect)
    inspect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    cell = subparsers.add_parser("cell", help="Print one cell value.")
    add_load_options(cell)
    cell.add_argument("row", type=int, help="Data row index (header excluded)")
    cell.add_argument("field", help="Field index or header name")

    clean = subparsers.add_parser("clean", help="Load with pruning and write the table back out.")
    add_load_options(clean)
    clean.add_argument("output", help="Output CSV path")
    clean.add_argument("--overwrite", action="store_true", help="Replace the output if it exists")
    clean.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="csv-static-table.json", help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if hasattr(args, "quiet"):
            configure_logging(quiet=args.quiet, verbose=args.verbose)
        if args.command == "show":
            return run_show(args)
        if args.command == "inspect":
            return run_inspect(args)
        if args.command == "cell":
            return run_cell(args)
        if args.command == "clean":
            return run_clean(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except (CliError, ConfigError) as exc:
        eprint(str(exc))
        return classify_exception(exc)
    except (OverwriteRefused, ShapeError, TableIOError) as exc:
        # Already reported through the table's diagnostics.
        return classify_exception(exc)


if __name__ == "__main__":
    raise SystemExit(main())
