#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Add or remove include directories and compile arguments in a compilation database.

PURPOSE:
    Build systems sometimes emit compile_commands.json files with missing or
    stale include directories, which breaks clangd, clang-tidy and other
    tooling. This script rewrites the compile command of every entry without
    disturbing quoting or unrelated flags.

WHAT IT DOES:
    - Splits each entry's command into shell-equivalent arguments
    - Appends include directories that are not already present (-i/--add-include)
    - Removes include directories by path or glob pattern (-d/--delete-include)
    - Appends or removes plain compile arguments (--add-arg/--delete-arg)
    - Writes the database back atomically, keeping entry order and unrelated fields

ERROR POLICY:
    An entry whose command cannot be parsed is skipped and reported. By default
    nothing is written if any entry failed; --best-effort writes the partially
    fixed database anyway, --fail-fast stops at the first failure.

REQUIREMENTS:
    - Python 3.8+
    - colorama, packaging

Usage:
    compdbEdit.py [-c compile_commands.json] [-o OUTPUT] [-i DIR ...] [-d DIR ...]

Exit Codes:
    0: Success
    1: Invalid arguments or database
    2: Runtime error (I/O failure, or entries failed without --best-effort)
    130: Interrupted
"""

import sys
import signal
import logging
import argparse
from typing import Any, List, Sequence

__version__ = "1.0.0"
__author__ = "Mana Battery"

from lib.color_utils import Colors, print_error, print_info, print_success, print_warning, should_use_color
from lib.command_mutator import AddArgument, AddInclude, EditOperation, RemoveArgument, RemoveInclude
from lib.command_serializer import serialize
from lib.command_tokenizer import tokens_from_arguments
from lib.compile_db import EditResult, load_compile_db, process_compile_db, save_compile_db
from lib.constants import (
    COMPILE_COMMANDS_JSON,
    EXIT_SUCCESS,
    EXIT_INVALID_ARGS,
    EXIT_RUNTIME_ERROR,
    EXIT_KEYBOARD_INTERRUPT,
    ArgumentError,
    CompdbEditError,
)
from lib.include_flags import build_flag_table
from lib.package_verification import check_all_packages

logger = logging.getLogger(__name__)

__all__ = ["EXIT_SUCCESS", "main", "build_operations", "normalize_argument", "normalize_flag_prefix"]


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def normalize_argument(argument: str) -> str:
    """Prefix a compile argument with '-' unless it already starts with one.

    argparse cannot take option values that begin with '-' unless they are
    passed as --add-arg=-Wall, so --add-arg Wall is accepted as well.
    """
    if not argument:
        raise ArgumentError("Compile arguments must not be empty")
    return argument if argument.startswith("-") else f"-{argument}"


def normalize_flag_prefix(prefix: str) -> str:
    """Prefix an include flag spelling with '-' unless it starts with '-' or '/'.

    Lets --include-flag iquote stand for -iquote, which argparse would read as an option.
    """
    if not prefix:
        raise ArgumentError("Include flag spellings must not be empty")
    return prefix if prefix.startswith(("-", "/")) else f"-{prefix}"


def build_operations(args: argparse.Namespace) -> List[EditOperation]:
    """Translate parsed command-line options into edit operations.

    Order: include additions, include removals, argument additions, argument removals,
    each in the order given on the command line.
    """
    operations: List[EditOperation] = []
    for path in args.add_include or []:
        if not path:
            raise ArgumentError("Include directories must not be empty")
        operations.append(AddInclude(path))
    for path in args.delete_include or []:
        if not path:
            raise ArgumentError("Include directories must not be empty")
        operations.append(RemoveInclude(path))
    for argument in args.add_arg or []:
        operations.append(AddArgument(normalize_argument(argument)))
    for argument in args.delete_arg or []:
        operations.append(RemoveArgument(normalize_argument(argument)))
    return operations


def _display_command(entry: Any) -> str:
    if "arguments" in entry:
        return serialize(tokens_from_arguments(entry["arguments"]))
    return str(entry.get("command", ""))


def print_changes(original: Sequence[Any], result: EditResult) -> None:
    """Print before/after commands of every changed entry."""
    for index in result.changed:
        entry = result.entries[index]
        print(f"{Colors.BRIGHT}{entry.get('file', '')}{Colors.RESET}")
        print(f"  {Colors.RED}- {_display_command(original[index])}{Colors.RESET}")
        print(f"  {Colors.GREEN}+ {_display_command(entry)}{Colors.RESET}")


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        description="Add or remove include directories and compile arguments in a compilation database.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s -i /usr/include\n"
        f"  %(prog)s -c build/compile_commands.json -d '/opt/bad path' --dry-run\n"
        f"  %(prog)s -d '/opt/sdk/*' -i /opt/sdk/include -o fixed.json\n"
        f"  %(prog)s --add-arg=-Wno-unknown-warning-option --delete-arg fno-tree-loop-im\n"
        f"  %(prog)s --include-flag iquote --include-flag=/I -d '/opt/legacy/*'\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("-c", "--compile-commands", default=COMPILE_COMMANDS_JSON, metavar="FILE", help=f"Input compilation database (default: {COMPILE_COMMANDS_JSON})")
    parser.add_argument("-o", "--output", metavar="FILE", help="File where the modified database is written (default: the input file)")
    parser.add_argument("-i", "--add-include", action="append", metavar="DIR", help="Add an include directory to every compile unit (repeatable)")
    parser.add_argument(
        "-d", "--delete-include", action="append", metavar="DIR", help="Remove an include directory, or every directory matching a glob pattern, from every compile unit (repeatable)"
    )
    parser.add_argument("--add-arg", action="append", metavar="ARG", help="Add a compile argument to every compile unit, '-' is prepended if missing (repeatable)")
    parser.add_argument("--delete-arg", action="append", metavar="ARG", help="Remove a compile argument from every compile unit, '-' is prepended if missing (repeatable)")
    parser.add_argument("--include-flag", action="append", metavar="PREFIX", help="Recognize an additional include flag spelling, given as iquote or --include-flag=-iquote, '-' is prepended if missing (repeatable)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing anything")
    parser.add_argument("--best-effort", action="store_true", help="Write the database even if some entries could not be edited")
    parser.add_argument("--fail-fast", action="store_true", help="Stop at the first entry that cannot be edited")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")
    parser.add_argument("--check-packages", action="store_true", help="Verify runtime package versions and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def main(argv: Any = None) -> int:
    """Main entry point for the script.

    Args:
        argv: Argument list (default: sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = create_parser()
    args = parser.parse_args(argv)

    if not should_use_color(no_color=args.no_color):
        Colors.disable()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    if args.check_packages:
        return EXIT_SUCCESS if check_all_packages() else EXIT_RUNTIME_ERROR

    if args.best_effort and args.fail_fast:
        print_error("--best-effort and --fail-fast cannot be combined")
        return EXIT_INVALID_ARGS

    try:
        operations = build_operations(args)
        extra_flags = [normalize_flag_prefix(prefix) for prefix in args.include_flag or []]
    except ArgumentError as e:
        print_error(str(e))
        return e.exit_code

    if not operations:
        print_info("No modifications requested, exiting.")
        return EXIT_SUCCESS

    flag_table = build_flag_table(extra_flags)
    output_path = args.output or args.compile_commands
    logger.debug("Operations: %s", operations)

    try:
        entries = load_compile_db(args.compile_commands)
        result = process_compile_db(entries, operations, flag_table, fail_fast=args.fail_fast)
    except CompdbEditError as e:
        print_error(str(e))
        return e.exit_code

    if args.dry_run or args.verbose:
        print_changes(entries, result)

    for entry_error in result.errors:
        print_error(entry_error.describe())

    summary = f"{len(result.changed)} of {len(entries)} entries changed"
    if args.dry_run:
        print_info(f"Dry run: {summary}, nothing written.")
        return EXIT_SUCCESS if result.ok or args.best_effort else EXIT_RUNTIME_ERROR

    if not result.ok and not args.best_effort:
        print_error(f"{len(result.errors)} entries could not be edited, {output_path} was not written (use --best-effort to write anyway)")
        return EXIT_RUNTIME_ERROR

    try:
        save_compile_db(output_path, result.entries)
    except CompdbEditError as e:
        print_error(str(e))
        return e.exit_code

    if result.ok:
        print_success(f"{summary}, written to {output_path}")
    else:
        print_warning(f"{summary}, {len(result.errors)} left unchanged due to errors, written to {output_path}")
    return EXIT_SUCCESS


if __name__ == "__main__":
    try:
        exit_code = main()
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user", prefix=False)
        sys.exit(EXIT_KEYBOARD_INTERRUPT)
    except CompdbEditError as e:
        print_error(str(e))
        sys.exit(e.exit_code)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)
