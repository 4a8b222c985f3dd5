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
"""Loading, editing and atomically saving compilation databases.

A compilation database is a JSON array of entries:

    {"directory": "/build", "file": "foo.c", "command": "gcc -c foo.c"}
    {"directory": "/build", "file": "foo.c", "arguments": ["gcc", "-c", "foo.c"]}

Entries are edited one at a time and independently. A failing entry is left
untouched and its error is collected so the remaining entries still get fixed.
Fields other than "command" and "arguments" are passed through unchanged and
in their original order.
"""

import os
import json
import stat
import logging
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from lib.command_mutator import EditOperation, apply_all
from lib.command_serializer import serialize
from lib.command_tokenizer import Token, token_values, tokenize, tokens_from_arguments
from lib.constants import (
    JSON_INDENT,
    TEMP_FILE_SUFFIX,
    CommandEditError,
    CompileDbFormatError,
    CompileDbIOError,
    CompdbEditError,
)
from lib.include_flags import DEFAULT_INCLUDE_FLAGS, IncludeFlagSpec

logger = logging.getLogger(__name__)

__all__ = [
    "CompilationEntry",
    "EntryError",
    "EntryFailedError",
    "EditResult",
    "load_compile_db",
    "save_compile_db",
    "edit_entry",
    "process_compile_db",
]


@dataclass
class CompilationEntry:
    """One compilation database record normalized to a token sequence.

    Attributes:
        directory: Working directory of the command
        file: Source file path
        tokens: Authoritative argument vector
        has_command: Entry carries a "command" string
        has_arguments: Entry carries an "arguments" list
        raw: Original JSON object, kept for pass-through fields and key order
    """

    directory: str
    file: str
    tokens: List[Token]
    has_command: bool
    has_arguments: bool
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_json(cls, raw: Any) -> "CompilationEntry":
        """Normalize a decoded JSON entry.

        "arguments" is authoritative when both forms are present.

        Raises:
            CompileDbFormatError: If the entry is not an object or lacks a valid command/arguments field
            MalformedCommandError: If the command string cannot be tokenized
        """
        if not isinstance(raw, dict):
            raise CompileDbFormatError(f"Compile unit is not a JSON object: {raw!r}")

        file = raw.get("file", "")
        directory = raw.get("directory", "")
        if not isinstance(file, str) or not isinstance(directory, str):
            raise CompileDbFormatError("'file' and 'directory' must be strings")

        has_command = "command" in raw
        has_arguments = "arguments" in raw

        if has_arguments:
            arguments = raw["arguments"]
            if not isinstance(arguments, list) or not all(isinstance(arg, str) for arg in arguments):
                raise CompileDbFormatError("'arguments' must be a list of strings")
            tokens = tokens_from_arguments(arguments)
        elif has_command:
            command = raw["command"]
            if not isinstance(command, str):
                raise CompileDbFormatError("'command' must be a string")
            tokens = tokenize(command)
        else:
            raise CompileDbFormatError("Compile unit has neither a 'command' nor an 'arguments' field")

        return cls(directory=directory, file=file, tokens=tokens, has_command=has_command, has_arguments=has_arguments, raw=raw)

    def to_json(self, tokens: Optional[Sequence[Token]] = None) -> Dict[str, Any]:
        """Build the JSON object for this entry in its original shape.

        Args:
            tokens: Replacement argument vector (default: the entry's own tokens)

        Returns:
            New dict; the original raw object is not modified
        """
        if tokens is None:
            tokens = self.tokens
        result = dict(self.raw)
        if self.has_arguments:
            result["arguments"] = token_values(list(tokens))
        if self.has_command:
            result["command"] = serialize(tokens)
        return result


@dataclass
class EntryError:
    """An entry that could not be edited.

    Attributes:
        index: Position of the entry in the database
        file: Source file of the entry (empty if unknown)
        error: The exception raised while editing
    """

    index: int
    file: str
    error: CompdbEditError

    def describe(self) -> str:
        """Format the error for display."""
        name = self.file or "<unknown file>"
        return f"{name} (entry {self.index}): {self.error}"


class EntryFailedError(CompdbEditError):
    """Raised by process_compile_db in fail-fast mode, wrapping the first entry failure."""

    def __init__(self, entry_error: EntryError):
        super().__init__(entry_error.describe(), entry_error.error.exit_code)
        self.entry_error = entry_error


@dataclass
class EditResult:
    """Outcome of editing a whole database.

    Attributes:
        entries: Edited entries in original order (failed entries unchanged)
        errors: Per-entry failures
        changed: Indices of entries whose arguments changed
    """

    entries: List[Any]
    errors: List[EntryError] = field(default_factory=list)
    changed: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if every entry was processed."""
        return not self.errors


def load_compile_db(path: str) -> List[Any]:
    """Read a compilation database.

    A top-level object is accepted as a database with a single entry.

    Args:
        path: Path to compile_commands.json

    Returns:
        List of decoded entries

    Raises:
        CompileDbIOError: If the file cannot be read
        CompileDbFormatError: If the file is not valid JSON or not an array/object
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CompileDbFormatError(f"Could not parse {path} as JSON: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise CompileDbIOError(f"Could not read {path}: {e}") from e

    if isinstance(data, dict):
        logger.debug("%s holds a single object, treating it as one compile unit", path)
        return [data]
    if not isinstance(data, list):
        raise CompileDbFormatError(f"{path} was not formatted correctly, the top level item must be an array or object")

    logger.debug("Loaded %s entries from %s", len(data), path)
    return data


def _file_mode(path: str) -> int:
    """Permission bits for the saved database: those of the existing file, else 0666 minus the umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save_compile_db(path: str, entries: Sequence[Any]) -> None:
    """Write a compilation database atomically.

    The whole database is serialized before anything touches the disk, then
    written to a temporary file next to the destination and renamed over it.
    Non-ASCII text is written as UTF-8 and the destination keeps its permissions.
    On failure the destination is left as it was.

    Raises:
        CompileDbIOError: If the file cannot be written
    """
    content = json.dumps(list(entries), indent=JSON_INDENT, ensure_ascii=False) + "\n"

    directory = os.path.dirname(os.path.abspath(path))
    temp_path: Optional[str] = None
    try:
        fd, temp_path = tempfile.mkstemp(prefix=os.path.basename(path) + ".", suffix=TEMP_FILE_SUFFIX, dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(temp_path, _file_mode(path))
        os.replace(temp_path, path)
        temp_path = None
        logger.debug("Saved %s entries to %s", len(entries), path)
    except OSError as e:
        raise CompileDbIOError(f"Could not write {path}: {e}") from e
    finally:
        # Only set when the rename did not happen
        if temp_path is not None and os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as cleanup_error:
                logger.warning("Failed to remove temporary file %s: %s", temp_path, cleanup_error)


def edit_entry(raw: Any, operations: Sequence[EditOperation], flag_table: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS) -> Tuple[Dict[str, Any], bool]:
    """Apply edit operations to one database entry.

    Args:
        raw: Decoded JSON entry
        operations: Operations to apply in order
        flag_table: Recognized include flag spellings

    Returns:
        Tuple of (new entry dict, whether the argument vector changed)

    Raises:
        CompileDbFormatError: If the entry has the wrong shape
        MalformedCommandError: If the command cannot be tokenized
        AmbiguousFlagError: If an include flag cannot be interpreted
    """
    entry = CompilationEntry.from_json(raw)
    edited = apply_all(entry.tokens, operations, flag_table)
    changed = token_values(edited) != token_values(entry.tokens)
    if not changed:
        return dict(raw), False
    return entry.to_json(edited), True


def process_compile_db(
    entries: Sequence[Any], operations: Sequence[EditOperation], flag_table: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS, fail_fast: bool = False
) -> EditResult:
    """Edit every entry of a database, collecting per-entry failures.

    Args:
        entries: Decoded database entries
        operations: Operations to apply to each entry, in order
        flag_table: Recognized include flag spellings
        fail_fast: Stop at the first failing entry instead of collecting it

    Returns:
        EditResult with entries in their original order

    Raises:
        EntryFailedError: First per-entry error when fail_fast is set
    """
    result = EditResult(entries=[])

    for index, raw in enumerate(entries):
        file = raw.get("file", "") if isinstance(raw, dict) else ""
        if not isinstance(file, str):
            file = ""
        try:
            new_entry, changed = edit_entry(raw, operations, flag_table)
        except (CommandEditError, CompileDbFormatError) as e:
            entry_error = EntryError(index=index, file=file, error=e)
            if fail_fast:
                raise EntryFailedError(entry_error) from e
            logger.warning("Skipping %s: %s", file or f"entry {index}", e)
            result.errors.append(entry_error)
            result.entries.append(raw)
            continue

        if changed:
            logger.debug("Edited %s", file)
            result.changed.append(index)
        result.entries.append(new_entry)

    logger.info("Edited %s of %s entries (%s failed)", len(result.changed), len(entries), len(result.errors))
    return result
