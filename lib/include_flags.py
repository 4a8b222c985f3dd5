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
"""Classification of include-directory flags in a tokenized compile command.

Include flags are described by a small table of IncludeFlagSpec rows rather
than by scattered conditionals, so supporting another compiler's spelling is a
data change:

    DEFAULT_INCLUDE_FLAGS = (IncludeFlagSpec("-I"), IncludeFlagSpec("-isystem"))

Each spelling is recognized in two forms:
    - Joined:   -I/usr/include       (one token)
    - Separate: -I /usr/include      (flag token followed by a path token)
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from lib.command_tokenizer import Token
from lib.constants import AmbiguousFlagError

logger = logging.getLogger(__name__)

__all__ = [
    "IncludeFlagSpec",
    "IncludeFlag",
    "DEFAULT_INCLUDE_FLAGS",
    "KNOWN_INCLUDE_FLAGS",
    "build_flag_table",
    "classify",
    "NON_PATH_INCLUDE_TOKENS",
    "normalize_include_path",
]


@dataclass(frozen=True)
class IncludeFlagSpec:
    """One recognized include flag spelling.

    Attributes:
        prefix: Flag text, e.g. "-I" or "-isystem"
        arity: Longest span of the flag. 2 accepts the joined and the separate
            (flag then path) form, 1 accepts only the joined form, as for
            "--include-directory=".
    """

    prefix: str
    arity: int = 2

    def __post_init__(self) -> None:
        assert self.prefix, "prefix must not be empty"
        assert self.arity in (1, 2), "arity must be 1 (joined only) or 2 (joined or separate)"


@dataclass(frozen=True)
class IncludeFlag:
    """Classified include flag occupying tokens[start:end].

    Attributes:
        spelling: The matched prefix
        path: Include directory as written in the command
        start: Index of the first token of the span
        end: Index one past the last token of the span
    """

    spelling: str
    path: str
    start: int
    end: int

    @property
    def joined(self) -> bool:
        """True for the single token form (-I/path)."""
        return self.end - self.start == 1


# Canonical include flag plus the system-include variant with the same path semantics
DEFAULT_INCLUDE_FLAGS: Tuple[IncludeFlagSpec, ...] = (
    IncludeFlagSpec("-I"),
    IncludeFlagSpec("-isystem"),
)

# Additional spellings that can be enabled by name
KNOWN_INCLUDE_FLAGS: Tuple[IncludeFlagSpec, ...] = DEFAULT_INCLUDE_FLAGS + (
    IncludeFlagSpec("-iquote"),
    IncludeFlagSpec("-idirafter"),
    IncludeFlagSpec("/I"),
    IncludeFlagSpec("--include-directory"),
    IncludeFlagSpec("--include-directory=", arity=1),
)

# Tokens that look like include flags but name no directory (GCC's quote/bracket split marker)
NON_PATH_INCLUDE_TOKENS = ("-I-",)

# Options whose separate value must never be mistaken for an include flag
VALUE_TAKING_FLAGS = (
    "-o",
    "-MF",
    "-MT",
    "-MQ",
    "-MJ",
    "-x",
    "-D",
    "-U",
    "-include",
    "-imacros",
    "-isysroot",
    "-iprefix",
    "-iwithprefix",
    "-Xclang",
    "-Xpreprocessor",
    "-Xassembler",
    "-Xlinker",
    "-target",
    "-arch",
    "--serialize-diagnostics",
)


def build_flag_table(extra_prefixes: Optional[Iterable[str]] = None, base: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS) -> Tuple[IncludeFlagSpec, ...]:
    """Extend a flag table with additional prefixes, skipping duplicates.

    Args:
        extra_prefixes: Extra spellings to recognize (e.g. ["-iquote", "/I"]). Spellings
            listed in KNOWN_INCLUDE_FLAGS keep their arity, others accept both forms.
        base: Table to extend

    Returns:
        New flag table
    """
    table = list(base)
    known = {spec.prefix for spec in table}
    named = {spec.prefix: spec for spec in KNOWN_INCLUDE_FLAGS}
    for prefix in extra_prefixes or ():
        if prefix and prefix not in known:
            table.append(named.get(prefix, IncludeFlagSpec(prefix)))
            known.add(prefix)
    return tuple(table)


def normalize_include_path(path: str) -> str:
    """Normalize an include path for comparison.

    Only trailing separators are stripped. Comparison stays case sensitive and
    does not touch the filesystem.

    Examples:
        >>> normalize_include_path("/usr/include/")
        '/usr/include'
        >>> normalize_include_path("/")
        '/'
    """
    stripped = path.rstrip("/\\")
    if not stripped and path:
        return path[0]
    return stripped


def _match_spec(value: str, specs: Sequence[IncludeFlagSpec]) -> Optional[IncludeFlagSpec]:
    for spec in specs:
        if value.startswith(spec.prefix):
            return spec
    return None


def classify(tokens: Sequence[Token], flag_table: Sequence[IncludeFlagSpec] = DEFAULT_INCLUDE_FLAGS) -> List[IncludeFlag]:
    """Find every include flag in a token sequence.

    The first token is the compiler executable and is never classified. Values
    of unrelated options that take a separate argument (-o, -MF, -D, ...) are
    skipped, and prefixes only match at the start of a token. The "-I-" marker is
    not an include directory.

    Args:
        tokens: Tokenized command
        flag_table: Recognized include flag spellings

    Returns:
        Include flags in command order

    Raises:
        AmbiguousFlagError: If a bare include flag has no path after it
    """
    # Longest prefix first so "-isystem/x" is not read as "-i" + "system/x"
    specs = sorted(flag_table, key=lambda spec: len(spec.prefix), reverse=True)
    flags: List[IncludeFlag] = []

    index = 1
    while index < len(tokens):
        value = tokens[index].value

        if value in VALUE_TAKING_FLAGS:
            index += 2
            continue

        if value in NON_PATH_INCLUDE_TOKENS:
            index += 1
            continue

        spec = _match_spec(value, specs)
        if spec is None:
            index += 1
            continue

        prefix = spec.prefix
        if value == prefix:
            if spec.arity == 1 or index + 1 >= len(tokens):
                raise AmbiguousFlagError(f"Include flag '{prefix}' has no path", index)
            path = tokens[index + 1].value
            if not path:
                raise AmbiguousFlagError(f"Include flag '{prefix}' is followed by an empty path", index)
            flags.append(IncludeFlag(prefix, path, index, index + 2))
            index += 2
        else:
            flags.append(IncludeFlag(prefix, value[len(prefix) :], index, index + 1))
            index += 1

    logger.debug("Classified %s include flags in %s tokens", len(flags), len(tokens))
    return flags
