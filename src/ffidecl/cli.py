import argparse
import sys
from pathlib import Path

from .ffi import (
    dump_scope,
    generate_bindings,
    load_descriptors,
    load_knowledge,
    run_formatter,
    write_output,
    write_reports,
)
from .synth.errors import FfiDeclError
from .synth.ffi_utils import parse_csv_set
from .synth.options import GeneratorOptions, parse_library_prefixes, parse_modules


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate C# P/Invoke declarations from c2ffi JSON descriptors.")
    parser.add_argument("descriptor", help="Path to the c2ffi JSON descriptor file.")
    parser.add_argument(
        "--knowledge",
        default=None,
        help="Path to the knowledge tables JSON file (pointer intents, string owners, delegates, ...).",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write generated C# to this path instead of stdout.",
    )
    parser.add_argument(
        "--report-dir",
        default=None,
        help="Directory for diagnostic report files (default: next to --output, or the current directory).",
    )
    parser.add_argument(
        "--module",
        action="append",
        default=[],
        help="Feature module toggle NAME=true|false; repeatable. Header stems select the module.",
    )
    parser.add_argument(
        "--base",
        default=None,
        help="Module receiving entries whose header matches no module (must be one of --module).",
    )
    parser.add_argument(
        "--header-root",
        default=None,
        help="Only entries declared in header files found under this directory are bound.",
    )
    parser.add_argument(
        "--library",
        default="native",
        help="Native library name for [LibraryImport] (default: native).",
    )
    parser.add_argument(
        "--library-prefix",
        action="append",
        default=[],
        help="PREFIX=LIB: functions starting with PREFIX import from LIB; repeatable.",
    )
    parser.add_argument("--namespace", default="Native", help="C# namespace of the generated file.")
    parser.add_argument("--class", dest="class_name", default="NativeMethods", help="C# class wrapping the bindings.")
    parser.add_argument(
        "--free-function",
        default="free",
        help="Function used to release caller-owned strings (default: free).",
    )
    parser.add_argument(
        "--format-command",
        default=None,
        help="Formatter command run on the output file (e.g. 'dotnet csharpier').",
    )
    parser.add_argument(
        "--verbose",
        default="",
        help="Comma-separated list of logs to enable (scope, headers, layout, signatures, emit, or 'all').",
    )
    parser.add_argument(
        "--dump-scope",
        action="store_true",
        help="Print module membership and typedef map keys, then exit.",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()
    try:
        options = GeneratorOptions(
            modules=parse_modules(args.module),
            base=args.base,
            header_root=Path(args.header_root) if args.header_root else None,
            library=args.library,
            library_prefixes=parse_library_prefixes(args.library_prefix),
            namespace=args.namespace,
            class_name=args.class_name,
            free_function=args.free_function,
            verbose=parse_csv_set(args.verbose),
        )
        entries = load_descriptors(Path(args.descriptor))
        knowledge = load_knowledge(Path(args.knowledge) if args.knowledge else None)

        if args.dump_scope:
            dump_scope(entries, knowledge, options)
            return

        output, result = generate_bindings(entries, knowledge, options)
        if args.output:
            output_path = Path(args.output)
            write_output(output_path, output)
            if args.format_command:
                run_formatter(args.format_command, output_path)
        else:
            if args.format_command:
                raise FfiDeclError("--format-command requires --output")
            print(output, end="")

        if args.report_dir:
            report_dir = Path(args.report_dir)
        elif args.output:
            report_dir = Path(args.output).parent
        else:
            report_dir = Path.cwd()
        for report in write_reports(report_dir, result.diagnostics):
            print(f"[ffidecl:report] {report}", file=sys.stderr)
    except FfiDeclError as exc:
        raise SystemExit(f"ffidecl: {exc}") from exc
