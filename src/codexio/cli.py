"""
codexio: distill a codebase into a single prompt for a Large Language Model.

Overview
--------
The prompt is rendered from a template (built-in or a custom Jinja2 file) and
contains the project's source tree, the content of every accepted file in
fenced code blocks and, on request, git diff/log context. Files are selected
with comma separated include/exclude globs on top of `.gitignore`/`.ignore`
rules; `--include-priority` decides conflicts between includes and excludes.

Usage
-----
Run `codexio --help` for full options. Common examples:
    - Whole project to stdout, with the token count:
        codexio path/to/project --tokens

    - Only Rust sources, written to a file:
        codexio path/to/project --include "*.rs" --output prompt.md

    - Diff between two branches with a custom template:
        codexio . --git-diff-branch main,feature -t review.j2 --var focus=security

    - Machine readable output:
        codexio . --json
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from codexio import __version__
from codexio.exceptions import CodexioError
from codexio.logging import setup_logging
from codexio.output_construction import build_json_report
from codexio.processing import build_prompt
from codexio.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codexio.config import PromptResult

logger = setup_logging()

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="codexio",
        description="Distill a codebase into a single LLM prompt.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("path", type=str, help="Path to the codebase directory.")

    p.add_argument("--include", type=str, default=None, help="Patterns to include (comma separated).")
    p.add_argument("--exclude", type=str, default=None, help="Patterns to exclude (comma separated).")
    p.add_argument(
        "--include-priority",
        action="store_true",
        default=None,
        help="Include files in case of conflict between include and exclude patterns.",
    )
    p.add_argument("--hidden", action="store_true", default=None, help="Walk hidden files and directories.")
    p.add_argument(
        "--no-ignore",
        dest="use_ignore_files",
        action="store_false",
        default=None,
        help="Do not honour .gitignore/.ignore files.",
    )

    p.add_argument("--tokens", action="store_true", default=None, help="Display the token count of the prompt.")
    p.add_argument(
        "-c",
        "--encoding",
        type=str,
        default=None,
        help="Tokenizer for the token count: cl100k (default), o200k, p50k, p50k_edit, r50k, gpt2.",
    )
    p.add_argument("-o", "--output", type=str, default=None, help="Write the prompt to this file.")
    p.add_argument("--json", dest="json_output", action="store_true", default=None, help="Print output as JSON.")

    p.add_argument("-d", "--diff", action="store_true", default=None, help="Include the git diff against HEAD.")
    p.add_argument("--git-diff-branch", type=str, default=None, metavar="BRANCHES", help="Diff between A,B.")
    p.add_argument("--git-log-branch", type=str, default=None, metavar="BRANCHES", help="Log between A,B.")
    p.add_argument(
        "--require-git",
        action="store_true",
        default=None,
        help="Fail instead of rendering without git context when git fails.",
    )

    p.add_argument(
        "-l",
        "--line-number",
        dest="line_numbers",
        action="store_true",
        default=None,
        help="Prefix each code line with its line number.",
    )
    p.add_argument(
        "--no-codeblock",
        action="store_true",
        default=None,
        help="Disable wrapping code inside markdown code blocks.",
    )
    p.add_argument("--absolute-paths", action="store_true", default=None, help="Render absolute file paths.")
    p.add_argument("-t", "--template", type=str, default=None, help="Path to a custom Jinja2 template.")
    p.add_argument(
        "--var",
        dest="variables",
        action="append",
        default=None,
        metavar="NAME=VALUE",
        help="Value of a user defined template variable (repeatable).",
    )

    p.add_argument("--workers", type=int, default=None, help="Number of file reader threads.")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command line arguments into settings.

    Options left unset on the command line fall back to ``CODEXIO_*``
    environment defaults, then to the built-in defaults.

    Args:
        argv (Sequence[str] | None): arguments, ``sys.argv[1:]`` when None

    Returns:
        Settings: the run settings
    """
    args = vars(build_parser().parse_args(argv))
    args["root"] = Path(args.pop("path"))
    return Settings.from_env(**args)


def emit(result: PromptResult, settings: Settings) -> None:
    if settings.json_output:
        print(build_json_report(result))
        return

    if settings.tokens and result.token_report:
        report = result.token_report
        print(f"[i] Token count: {report.token_count}, Model info: {report.model_info}", file=sys.stderr)

    if settings.output:
        settings.output.write_text(result.prompt, encoding="utf-8")
        print(f"[✓] Prompt written to file: {settings.output}", file=sys.stderr)
    else:
        print(result.prompt)

    for warning in result.warnings:
        print(f"[!] {warning.path}: {warning.message}", file=sys.stderr)
    for error in result.git_errors:
        print(f"[!] git {error}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        result = build_prompt(settings)
        emit(result, settings)
    except CodexioError as e:
        logger.error("run_failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
