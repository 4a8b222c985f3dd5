#!/usr/bin/env python3
#****************************************************************************************************************************************************
#* BSD 3-Clause License
#*
#* Copyright (c) 2025, Mana Battery
#* All rights reserved.
#*
#* Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
#*
#* 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
#* 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
#*    documentation and/or other materials provided with the distribution.
#* 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
#*    software without specific prior written permission.
#*
#* THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#* THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#* CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#* PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#* LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
#* EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#****************************************************************************************************************************************************
"""Pytest configuration and shared fixtures for compdbEdit tests.

Fixture Scopes:
- function: Default, recreated for each test
"""

import sys
import json
import tempfile
import shutil
from pathlib import Path
from typing import Any, Dict, Generator, List
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="compdbedit_test_")
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def sample_entries() -> List[Dict[str, Any]]:
    """Compilation database entries covering both on-disk forms.

    Scope: function
    Use for: Pipeline tests that need a realistic database in memory
    """
    return [
        {
            "directory": "/build",
            "command": "/usr/bin/gcc -I/usr/include -c -o main.o ../src/main.c",
            "file": "../src/main.c",
            "output": "main.o",
        },
        {
            "directory": "/build",
            "arguments": ["clang++", "-isystem", "/opt/sdk/include", "-std=c++17", "-c", "../src/util.cpp"],
            "file": "../src/util.cpp",
        },
        {
            "directory": "/build",
            "command": "gcc -I \"/opt/bad path\" -DNAME='\"quoted value\"' -c ../src/quoted.c",
            "file": "../src/quoted.c",
        },
    ]


@pytest.fixture
def compile_commands_file(temp_dir: str, sample_entries: List[Dict[str, Any]]) -> str:
    """Write sample_entries to a compile_commands.json in temp_dir.

    Scope: function
    Dependencies: temp_dir, sample_entries
    Use for: Load/save and command-line tests
    """
    compile_db_path = Path(temp_dir) / "compile_commands.json"
    with open(compile_db_path, "w", encoding="utf-8") as f:
        json.dump(sample_entries, f, indent=2)

    return str(compile_db_path)


@pytest.fixture
def broken_compile_commands_file(temp_dir: str, sample_entries: List[Dict[str, Any]]) -> str:
    """Write a database where one entry has an unterminated quote.

    Scope: function
    Dependencies: temp_dir, sample_entries
    Use for: Per-entry error collection and write policy tests
    """
    entries = list(sample_entries)
    entries.insert(1, {"directory": "/build", "command": 'gcc -c "broken.c', "file": "../src/broken.c"})

    compile_db_path = Path(temp_dir) / "compile_commands.json"
    with open(compile_db_path, "w", encoding="utf-8") as f:
        json.dump(entries, f, indent=2)

    return str(compile_db_path)
