import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from erd_core import (
    ClassificationAmbiguous,
    ConfigError,
    Diagram,
    MetadataValidationError,
    classify,
    compatible,
    diagram_to_text,
    diff,
    dump_diagram,
    import_text,
    load_config,
    load_diagram,
    load_document,
    load_schema,
    parse_engine,
    schema_issues,
    summarize,
    validate,
)
from erd_core.engines import engine_names
from erd_core.issues import Issue, has_errors, to_lines
from erd_core.metadata import REQUIRED_KEYS, payload_issues
from erd_core.schema import DIAGRAM_SCHEMA

FORMAT_CHOICES = ["auto", "ddl", "dbml", "query"]


def _print_issues(issues: List[Issue]) -> None:
    if not issues:
        print("No issues found.")
        return
    for line in to_lines(issues):
        print(line)


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def cmd_classify(args: argparse.Namespace) -> int:
    result = classify(_read_text(args.input))
    if result is None:
        print("unknown")
        return 1
    print(result.value)
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
        result = import_text(
            _read_text(args.input),
            engine=args.engine,
            content_type=args.format,
            config=config,
            tables=args.table,
        )
    except (ClassificationAmbiguous, ConfigError, MetadataValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if isinstance(exc, MetadataValidationError):
            for line in to_lines(exc.issues):
                print(f"  {line}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in result.errors:
        print(f"Error: {error.describe()}", file=sys.stderr)

    if args.out:
        dump_diagram(result.diagram, args.out)
        print(f"Wrote diagram: {args.out}")
        print(
            f"Imported {len(result.diagram.tables)} tables and "
            f"{len(result.diagram.relationships)} relationships from {result.content_type.value}."
        )
    else:
        print(diagram_to_text(result.diagram, "yaml"))
    return 0 if result.ok else 1


def cmd_diff(args: argparse.Namespace) -> int:
    before = load_diagram(args.old)
    after = load_diagram(args.new)
    changes = diff(before, after)

    if args.summary:
        report = summarize(changes, before, after)
        if args.format == "json":
            print(json.dumps(report, indent=2))
            return 0
        print(f"Changes: {report['summary']['total']}")
        for obj, counts in sorted(report["summary"]["by_object"].items()):
            print(f"  {obj}: +{counts['added']} -{counts['removed']} ~{counts['changed']}")
        if report["breaking_changes"]:
            print("Breaking changes:")
            for item in report["breaking_changes"]:
                print(f"  - {item}")
        return 0

    if args.format == "json":
        print(json.dumps([change.to_dict() for change in changes], indent=2, default=str))
        return 0
    if not changes:
        print("No differences.")
        return 0
    for change in changes:
        print(change.describe())
    return 0


def cmd_compat(args: argparse.Namespace) -> int:
    engine = parse_engine(args.engine)
    ok = compatible(args.type_a, args.type_b, engine)
    print("compatible" if ok else "incompatible")
    return 0 if ok else 1


def cmd_validate(args: argparse.Namespace) -> int:
    document = load_document(args.input)
    if all(key in document for key in REQUIRED_KEYS):
        issues = payload_issues(document)
    else:
        issues = schema_issues(document, load_schema(DIAGRAM_SCHEMA))
        if not has_errors(issues):
            issues.extend(validate(Diagram.from_dict(document)).issues)
    _print_issues(issues)
    return 1 if has_errors(issues) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="erd", description="Schema import and diff CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    classify_parser = sub.add_parser("classify", help="Detect whether a file is DDL, DBML or a metadata payload")
    classify_parser.add_argument("input", help="Path to input file")
    classify_parser.set_defaults(func=cmd_classify)

    import_parser = sub.add_parser("import", help="Import DDL, DBML or a metadata payload into a diagram")
    import_parser.add_argument("input", help="Path to input file")
    import_parser.add_argument("--engine", choices=engine_names(), help="Database engine (default from config)")
    import_parser.add_argument("--format", choices=FORMAT_CHOICES, default="auto", help="Input format (default: auto)")
    import_parser.add_argument("--out", help="Output diagram file (.yaml or .json)")
    import_parser.add_argument("--config", help="Path to erd.yaml config")
    import_parser.add_argument(
        "--table",
        action="append",
        help="Only import this schema.table from a metadata payload (repeatable)",
    )
    import_parser.set_defaults(func=cmd_import)

    diff_parser = sub.add_parser("diff", help="Structural diff between two diagram files")
    diff_parser.add_argument("old", help="Old diagram path")
    diff_parser.add_argument("new", help="New diagram path")
    diff_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    diff_parser.add_argument("--summary", action="store_true", help="Print counts and breaking changes only")
    diff_parser.set_defaults(func=cmd_diff)

    compat_parser = sub.add_parser("compat", help="Check whether two column types can be joined by a foreign key")
    compat_parser.add_argument("type_a", help="First column type")
    compat_parser.add_argument("type_b", help="Second column type")
    compat_parser.add_argument("--engine", choices=engine_names(), default="generic", help="Database engine")
    compat_parser.set_defaults(func=cmd_compat)

    validate_parser = sub.add_parser("validate", help="Validate a metadata payload or diagram document")
    validate_parser.add_argument("input", help="Path to JSON/YAML document")
    validate_parser.set_defaults(func=cmd_validate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
