"""
Command-line runner: apply an operation list file to an input document.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from remold.remold_datatypes import RemoldError
from remold.remold_runtime import TransformBuilder, ExecutionResult
from remold.remold_serialize import deserialize, serialize, detect_format


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _format_of(path: str) -> Optional[str]:
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remold",
        description="Reshape a JSON or YAML document with a list of getter/setter operations.",
    )
    parser.add_argument("operations", help="JSON or YAML file holding the operation list")
    parser.add_argument("input", help="JSON or YAML input document, or '-' for stdin")
    parser.add_argument("--yaml", action="store_true", help="print the output as YAML")
    parser.add_argument("--compact", action="store_true", help="print JSON on a single line")
    parser.add_argument("--strict", action="store_true", help="reject unknown action names while parsing")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        ops_text = _read(args.operations)
        input_text = _read(args.input)
    except OSError as e:
        print(f"Error: cannot read {e.filename}: {e.strerror}", file=sys.stderr)
        return 1

    try:
        builder = TransformBuilder.from_text(ops_text, fmt=_format_of(args.operations), strict=args.strict)
        source = deserialize(input_text, fmt=_format_of(args.input) or detect_format(data_hint=input_text))
    except RemoldError as e:
        print(ExecutionResult.from_error(e).format_error(), file=sys.stderr)
        return 1

    result = builder.build().run(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1

    fmt = "yaml" if args.yaml else "json"
    out = serialize(result.value, fmt=fmt, pretty=not args.compact)
    sys.stdout.write(out if out.endswith("\n") else out + "\n")
    return 0
