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
"""Shared constants for the compdbEdit tool.

This module provides centralized constants and the exception hierarchy used
across the compilation database editing modules, so that defaults and exit
codes stay consistent between the library and the command line front end.
"""

from typing import Optional

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Build System Constants
# =============================================================================

COMPILE_COMMANDS_JSON = "compile_commands.json"  # Standard compilation database filename

# =============================================================================
# Command Editing Constants
# =============================================================================

DEFAULT_INCLUDE_FLAG = "-I"  # Spelling used when appending a new include directory
JSON_INDENT = 2  # Indentation of the rewritten compilation database
TEMP_FILE_SUFFIX = ".tmp"  # Suffix of the staging file used for atomic writes

# =============================================================================
# Exception Classes
# =============================================================================


class CompdbEditError(Exception):
    """Base exception for all compdbEdit errors.

    All compdbEdit exceptions carry an exit_code attribute that indicates
    what exit code the program should use when this error is caught at the
    main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(CompdbEditError):
    """Raised when input validation fails (arguments, database shape, etc)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class ArgumentError(ValidationError):
    """Raised when command-line arguments are invalid."""


class CompileDbFormatError(ValidationError):
    """Raised when the compilation database or one of its entries has the wrong shape."""


# Command line editing errors (EXIT_RUNTIME_ERROR)
class CommandEditError(CompdbEditError):
    """Raised when a single compile command cannot be edited safely."""


class MalformedCommandError(CommandEditError):
    """Raised when a command string cannot be split into arguments.

    Attributes:
        offset: UTF-8 byte offset of the offending character (opening quote or
            dangling backslash) in the command string
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)
        self.offset = offset


class AmbiguousFlagError(CommandEditError):
    """Raised when an include flag cannot be interpreted without guessing.

    Attributes:
        token_index: Index of the offending token in the argument vector
    """

    def __init__(self, message: str, token_index: Optional[int] = None):
        if token_index is not None:
            message = f"{message} (at token {token_index})"
        super().__init__(message)
        self.token_index = token_index


# I/O errors
class CompileDbIOError(CompdbEditError):
    """Raised when the compilation database cannot be read or written."""
