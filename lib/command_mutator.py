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
"""Edit operations applied to tokenized compile commands.

Every operation takes a token sequence and returns a new list; the input is
never modified. Operations are idempotent where that makes sense:

    - AddInclude: no-op if the directory is already on the include path
    - RemoveInclude: no-op if the directory is absent
    - AddArgument: no-op if the argument is already present
    - RemoveArgument: no-op if the argument is absent

New include flags are appended at the end of the command so the relative order
of existing include directories is never disturbed.
"""

import fnmatch
import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from lib.command_tokenizer import Token
from lib.constants import DEFAULT_INCLUDE_FLAG
from lib.include_flags import DEFAULT_INCLUDE_FLAGS, IncludeFlagSpec, classify, normalize_include_path

logger = logging.getLogger(__name__)

__all__ = ["AddInclude", "RemoveInclude", "AddArgument", "RemoveArgument", "EditOperation", "apply", "apply_all", "is_glob_pattern"]

GLOB_CHARACTERS = ("*", "?", "[")


@dataclass(frozen=True)
class AddInclude:
    """Append an include directory unless it is already present."""

    path: str


@dataclass(frozen=True)
class RemoveInclude:
    """Remove every include flag whose directory matches a path or glob pattern."""

    path: str


@dataclass(frozen=True)
class AddArgument:
    """Append a compile argument unless an identical argument is present."""

    argument: str


@dataclass(frozen=True)
class RemoveArgument:
    """Remove every occurrence of a compile argument."""

    argument: str


EditOperation = Union[AddInclude, RemoveInclude, AddArgument, RemoveArgument]


def is_glob_pattern(path: str) -> bool:
    """Check if a remove target should be matched as a glob pattern."""
    return any(char in path for char in GLOB_CHARACTERS)


def _path_matches(candidate: str, target: str) -> bool:
    normalized_candidate = normalize_include_path(candidate)
    normalized_target = normalize_include_path(target)
    if normalized_candidate == normalized_target:
        return True
    if is_glob_pattern(target):
        return fnmatch.fnmatchcase(normalized_candidate, normalized_target)
    return False


def _add_include(tokens: Sequence[Token], path: str, flag_table: Sequence[IncludeFlagSpec]) -> List[Token]:
    wanted = normalize_include_path(path)
    for flag in classify(tokens, flag_table):
        if normalize_include_path(flag.path) == wanted:
            logger.debug("Include directory %s already present at token %s", path, flag.start)
            return list(tokens)
    return list(tokens) + [Token(DEFAULT_INCLUDE_FLAG), Token(path)]


def _remove_include(tokens: Sequence[Token], path: str, flag_table: Sequence[IncludeFlagSpec]) -> List[Token]:
    doomed = set()
    for flag in classify(tokens, flag_table):
        if _path_matches(flag.path, path):
            logger.debug("Removing include flag %s %s (tokens %s-%s)", flag.spelling, flag.path, flag.start, flag.end - 1)
            doomed.update(range(flag.start, flag.end))
    if not doomed:
        return list(tokens)
    return [token for index, token in enumerate(tokens) if index not in doomed]


def _add_argument(tokens: Sequence[Token], argument: str) -> List[Token]:
    if any(token.value == argument for token in tokens[1:]):
        return list(tokens)
    return list(tokens) + [Token(argument)]


def _remove_argument(tokens: Sequence[Token], argument: str) -> List[Token]:
    # Index 0 is the compiler and is never removed
    return [token for index, token in enumerate(tokens) if index == 0 or token.value != argument]


def apply(tokens: Sequence[Token], op: EditOperation, flag_table: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS) -> List[Token]:
    """Apply one edit operation to a token sequence.

    Args:
        tokens: Tokenized command
        op: Operation to apply
        flag_table: Include flag spellings recognized by the classifier

    Returns:
        New token list

    Raises:
        AmbiguousFlagError: If an include operation meets an include flag it cannot interpret
        TypeError: If op is not a known operation
    """
    if isinstance(op, AddInclude):
        return _add_include(tokens, op.path, flag_table)
    if isinstance(op, RemoveInclude):
        return _remove_include(tokens, op.path, flag_table)
    if isinstance(op, AddArgument):
        return _add_argument(tokens, op.argument)
    if isinstance(op, RemoveArgument):
        return _remove_argument(tokens, op.argument)
    raise TypeError(f"Unknown edit operation: {op!r}")


def apply_all(tokens: Sequence[Token], operations: Iterable[EditOperation], flag_table: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS) -> List[Token]:
    """Apply operations in order, each one to the result of the previous."""
    result = list(tokens)
    for op in operations:
        result = apply(result, op, flag_table)
    return result
