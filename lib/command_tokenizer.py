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
"""Shell-style splitting of compile command strings into argument tokens.

Compilation databases store each compiler invocation as a single string. This
module turns such a string into the argument vector a POSIX shell would
produce, restricted to the quoting and escaping rules that appear in compiler
command lines:

    - Unquoted whitespace separates arguments, runs of whitespace collapse
    - '...' is taken literally
    - "..." allows backslash escapes of ", \\, $, ` and newline only
    - An unquoted backslash escapes the next character
    - A backslash followed by a newline is a line continuation

Pipes, redirects and variable expansion are not interpreted.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from lib.constants import MalformedCommandError

logger = logging.getLogger(__name__)

__all__ = ["Token", "tokenize", "tokens_from_arguments", "token_values"]

WHITESPACE = (" ", "\t", "\n", "\r")

# Characters a backslash may escape inside double quotes
DOUBLE_QUOTE_ESCAPABLE = ('"', "\\", "$", "`", "\n")


@dataclass(frozen=True)
class Token:
    """One argument of a split command line.

    Attributes:
        value: Argument text with quoting and escaping removed
        quoted: True if the source text used quotes or backslashes. Only a
            serialization hint, ignored by equality.
    """

    value: str
    quoted: bool = field(default=False, compare=False)


class _State(enum.Enum):
    UNQUOTED = "unquoted"
    SINGLE_QUOTED = "single_quoted"
    DOUBLE_QUOTED = "double_quoted"
    ESCAPE = "escape"
    DOUBLE_QUOTED_ESCAPE = "double_quoted_escape"


def _byte_offset(command: str, index: int) -> int:
    return len(command[:index].encode("utf-8"))


def tokenize(command: str) -> List[Token]:
    """Split a command string into argument tokens.

    Args:
        command: Raw command string from a compilation database entry

    Returns:
        Ordered list of tokens (empty for an empty or whitespace-only command)

    Raises:
        MalformedCommandError: On an unterminated quote or a trailing backslash

    Examples:
        >>> [t.value for t in tokenize('gcc -I"/opt/bad path" -c foo.c')]
        ['gcc', '-I/opt/bad path', '-c', 'foo.c']
    """
    tokens: List[Token] = []
    state = _State.UNQUOTED
    current: List[str] = []
    in_word = False
    quoted = False
    # Position of the quote or backslash that opened the current non-UNQUOTED state
    opened_at: Optional[int] = None

    for index, char in enumerate(command):
        if state is _State.UNQUOTED:
            if char in WHITESPACE:
                if in_word:
                    tokens.append(Token("".join(current), quoted))
                    current = []
                    in_word = False
                    quoted = False
            elif char == "'":
                state = _State.SINGLE_QUOTED
                opened_at = index
                in_word = True
                quoted = True
            elif char == '"':
                state = _State.DOUBLE_QUOTED
                opened_at = index
                in_word = True
                quoted = True
            elif char == "\\":
                state = _State.ESCAPE
                opened_at = index
            else:
                current.append(char)
                in_word = True

        elif state is _State.ESCAPE:
            state = _State.UNQUOTED
            if char == "\n":
                # Line continuation: neither character belongs to the word
                continue
            current.append(char)
            in_word = True
            quoted = True

        elif state is _State.SINGLE_QUOTED:
            if char == "'":
                state = _State.UNQUOTED
            else:
                current.append(char)

        elif state is _State.DOUBLE_QUOTED:
            if char == '"':
                state = _State.UNQUOTED
            elif char == "\\":
                state = _State.DOUBLE_QUOTED_ESCAPE
            else:
                current.append(char)

        elif state is _State.DOUBLE_QUOTED_ESCAPE:
            state = _State.DOUBLE_QUOTED
            if char == "\n":
                continue
            if char not in DOUBLE_QUOTE_ESCAPABLE:
                current.append("\\")
            current.append(char)

    if state is _State.SINGLE_QUOTED:
        raise MalformedCommandError("Unterminated single quote", _byte_offset(command, opened_at or 0))
    if state in (_State.DOUBLE_QUOTED, _State.DOUBLE_QUOTED_ESCAPE):
        raise MalformedCommandError("Unterminated double quote", _byte_offset(command, opened_at or 0))
    if state is _State.ESCAPE:
        raise MalformedCommandError("No character after trailing backslash", _byte_offset(command, opened_at or 0))

    if in_word:
        tokens.append(Token("".join(current), quoted))

    logger.debug("Tokenized command into %s arguments", len(tokens))
    return tokens


def tokens_from_arguments(arguments: List[str]) -> List[Token]:
    """Wrap an already split argument list (the 'arguments' entry form) in tokens."""
    return [Token(arg) for arg in arguments]


def token_values(tokens: List[Token]) -> List[str]:
    """Return the plain argument strings of a token sequence."""
    return [token.value for token in tokens]
