#!/usr/bin/env python3
"""Tests for lib/compile_db.py"""

import os
import json
import stat
import pytest
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import patch

from lib.command_mutator import AddArgument, AddInclude, RemoveInclude
from lib.compile_db import (
    CompilationEntry,
    EntryFailedError,
    edit_entry,
    load_compile_db,
    process_compile_db,
    save_compile_db,
)
from lib.constants import (
    EXIT_INVALID_ARGS,
    AmbiguousFlagError,
    CompileDbFormatError,
    CompileDbIOError,
    MalformedCommandError,
)


class TestCompilationEntry:
    """Tests for entry normalization and write-back."""

    def test_command_form(self) -> None:
        """Test that a command entry is tokenized."""
        entry = CompilationEntry.from_json({"directory": "/b", "file": "a.c", "command": "gcc -c a.c"})
        assert [t.value for t in entry.tokens] == ["gcc", "-c", "a.c"]
        assert entry.has_command and not entry.has_arguments

    def test_arguments_form(self) -> None:
        """Test that an arguments entry is used as-is."""
        entry = CompilationEntry.from_json({"directory": "/b", "file": "a.c", "arguments": ["gcc", "-I", "/a b"]})
        assert [t.value for t in entry.tokens] == ["gcc", "-I", "/a b"]

    def test_arguments_authoritative_when_both_present(self) -> None:
        """Test that arguments win over command."""
        entry = CompilationEntry.from_json({"file": "a.c", "command": "gcc 'broken", "arguments": ["clang", "-c", "a.c"]})
        assert entry.tokens[0].value == "clang"

    def test_missing_command(self) -> None:
        """Test that an entry without command or arguments is rejected."""
        with pytest.raises(CompileDbFormatError, match="neither"):
            CompilationEntry.from_json({"directory": "/b", "file": "a.c"})

    @pytest.mark.parametrize(
        "raw",
        [
            ["not", "an", "object"],
            {"file": "a.c", "command": 42},
            {"file": "a.c", "arguments": "gcc -c a.c"},
            {"file": "a.c", "arguments": ["gcc", 1]},
            {"file": 7, "command": "gcc"},
        ],
    )
    def test_wrong_types(self, raw: Any) -> None:
        """Test that malformed entries raise a format error."""
        with pytest.raises(CompileDbFormatError):
            CompilationEntry.from_json(raw)

    def test_to_json_keeps_other_fields_and_order(self) -> None:
        """Test that unrelated fields survive in their original order."""
        raw = {"directory": "/b", "command": "gcc -c a.c", "file": "a.c", "output": "a.o"}
        entry = CompilationEntry.from_json(raw)
        result = entry.to_json()
        assert list(result.keys()) == ["directory", "command", "file", "output"]
        assert result["output"] == "a.o"
        assert result is not raw


class TestEditEntry:
    """Tests for single entry editing."""

    def test_scenario_add_include(self) -> None:
        """Test the plain add include scenario."""
        raw = {"directory": "/b", "file": "foo.c", "command": "gcc -c foo.c -Wall"}
        new, changed = edit_entry(raw, [AddInclude("/usr/include")])
        assert changed
        assert new["command"] == "gcc -c foo.c -Wall -I /usr/include"
        assert raw["command"] == "gcc -c foo.c -Wall"

    def test_unchanged_entry_keeps_original_text(self) -> None:
        """Test that an entry with nothing to edit keeps its exact command string."""
        raw = {"file": "foo.c", "command": 'gcc  -I/usr/include   -c "foo.c"'}
        new, changed = edit_entry(raw, [AddInclude("/usr/include")])
        assert not changed
        assert new["command"] == raw["command"]

    def test_arguments_shape_preserved(self) -> None:
        """Test that an arguments entry is written back as arguments only."""
        raw = {"file": "a.c", "arguments": ["gcc", "-I", "/opt/bad path", "-c", "a.c"]}
        new, changed = edit_entry(raw, [RemoveInclude("/opt/bad path")])
        assert changed
        assert new == {"file": "a.c", "arguments": ["gcc", "-c", "a.c"]}

    def test_both_fields_regenerated(self) -> None:
        """Test that an entry with both fields keeps both, in sync."""
        raw = {"file": "a.c", "arguments": ["gcc", "-c", "a.c"], "command": "gcc -c a.c"}
        new, _ = edit_entry(raw, [AddInclude("/my inc")])
        assert new["arguments"] == ["gcc", "-c", "a.c", "-I", "/my inc"]
        assert new["command"] == "gcc -c a.c -I '/my inc'"

    def test_malformed_command(self) -> None:
        """Test that an unterminated quote is raised for the caller to collect."""
        with pytest.raises(MalformedCommandError):
            edit_entry({"file": "foo.c", "command": 'gcc -c "foo.c'}, [AddInclude("/x")])


class TestProcessCompileDb:
    """Tests for whole database processing."""

    def test_all_entries_processed_in_order(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that every entry is edited and order is preserved."""
        result = process_compile_db(sample_entries, [AddInclude("/new/include")])
        assert result.ok
        assert result.changed == [0, 1, 2]
        assert [e["file"] for e in result.entries] == [e["file"] for e in sample_entries]
        assert result.entries[0]["command"].endswith("-I /new/include")
        assert result.entries[1]["arguments"][-2:] == ["-I", "/new/include"]

    def test_quoted_define_survives(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that unrelated quoted flags are preserved through a rewrite."""
        result = process_compile_db(sample_entries, [RemoveInclude("/opt/bad path")])
        assert result.entries[2]["command"] == "gcc '-DNAME=\"quoted value\"' -c ../src/quoted.c"
        assert result.changed == [2]

    def test_malformed_entry_skipped(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that a bad entry is reported and the others are still fixed."""
        broken = {"directory": "/build", "command": 'gcc -c "foo.c', "file": "foo.c"}
        entries = [sample_entries[0], broken, sample_entries[2]]
        result = process_compile_db(entries, [AddInclude("/usr/local/include")])

        assert not result.ok
        assert len(result.errors) == 1
        assert result.errors[0].index == 1
        assert result.errors[0].file == "foo.c"
        assert isinstance(result.errors[0].error, MalformedCommandError)
        assert "foo.c (entry 1)" in result.errors[0].describe()
        assert result.entries[1] is broken
        assert result.changed == [0, 2]

    def test_ambiguous_flag_collected(self) -> None:
        """Test that classifier errors are collected per entry."""
        entries = [{"file": "a.c", "command": "gcc -c a.c -I"}]
        result = process_compile_db(entries, [AddInclude("/x")])
        assert isinstance(result.errors[0].error, AmbiguousFlagError)

    def test_non_object_entry_collected(self) -> None:
        """Test that an entry of the wrong JSON type is collected, not fatal."""
        result = process_compile_db(["gcc -c a.c"], [AddInclude("/x")])
        assert len(result.errors) == 1
        assert result.errors[0].file == ""

    def test_fail_fast(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that fail_fast stops at the first failing entry."""
        entries = [{"file": "bad.c", "command": "gcc 'bad.c"}] + sample_entries
        with pytest.raises(EntryFailedError) as exc_info:
            process_compile_db(entries, [AddInclude("/x")], fail_fast=True)
        assert exc_info.value.entry_error.file == "bad.c"
        assert "bad.c" in str(exc_info.value)

    def test_no_operations_changes_nothing(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that an empty operation list leaves the database as it was."""
        result = process_compile_db(sample_entries, [])
        assert result.changed == []
        assert result.entries == sample_entries

    def test_argument_operations(self, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that argument operations run through the pipeline."""
        result = process_compile_db(sample_entries, [AddArgument("-Wall")])
        assert result.entries[0]["command"].endswith(" -Wall")


class TestLoadCompileDb:
    """Tests for reading databases."""

    def test_load_array(self, compile_commands_file: str, sample_entries: List[Dict[str, Any]]) -> None:
        """Test loading a normal database."""
        assert load_compile_db(compile_commands_file) == sample_entries

    def test_load_single_object(self, temp_dir: str) -> None:
        """Test that a top-level object is one entry."""
        path = Path(temp_dir) / "single.json"
        path.write_text(json.dumps({"file": "a.c", "command": "gcc -c a.c"}))
        assert load_compile_db(str(path)) == [{"file": "a.c", "command": "gcc -c a.c"}]

    def test_load_invalid_top_level(self, temp_dir: str) -> None:
        """Test that a scalar top level is rejected."""
        path = Path(temp_dir) / "bad.json"
        path.write_text("42")
        with pytest.raises(CompileDbFormatError) as exc_info:
            load_compile_db(str(path))
        assert exc_info.value.exit_code == EXIT_INVALID_ARGS

    def test_load_invalid_json(self, temp_dir: str) -> None:
        """Test that unparsable JSON is a format error."""
        path = Path(temp_dir) / "bad.json"
        path.write_text("[{")
        with pytest.raises(CompileDbFormatError, match="as JSON"):
            load_compile_db(str(path))

    def test_load_missing_file(self, temp_dir: str) -> None:
        """Test that a missing file is an I/O error chained to the OSError."""
        with pytest.raises(CompileDbIOError) as exc_info:
            load_compile_db(os.path.join(temp_dir, "missing.json"))
        assert isinstance(exc_info.value.__cause__, OSError)


class TestSaveCompileDb:
    """Tests for atomic writes."""

    def test_save_and_reload(self, temp_dir: str, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that a saved database loads back unchanged."""
        path = os.path.join(temp_dir, "out.json")
        save_compile_db(path, sample_entries)
        assert load_compile_db(path) == sample_entries

    def test_no_temp_files_left(self, temp_dir: str, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that the staging file is renamed away."""
        path = os.path.join(temp_dir, "out.json")
        save_compile_db(path, sample_entries)
        assert os.listdir(temp_dir) == ["out.json"]

    def test_original_untouched_on_failed_replace(self, compile_commands_file: str, temp_dir: str) -> None:
        """Test that a failing rename leaves the original file and no temp file."""
        original = Path(compile_commands_file).read_text()
        with patch("lib.compile_db.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CompileDbIOError, match="disk full"):
                save_compile_db(compile_commands_file, [{"file": "x.c", "command": "gcc"}])
        assert Path(compile_commands_file).read_text() == original
        assert os.listdir(temp_dir) == ["compile_commands.json"]

    def test_unserializable_entries_write_nothing(self, compile_commands_file: str) -> None:
        """Test that serialization happens before any file is touched."""
        original = Path(compile_commands_file).read_text()
        with pytest.raises(TypeError):
            save_compile_db(compile_commands_file, [{"file": object()}])
        assert Path(compile_commands_file).read_text() == original

    def test_missing_directory(self, temp_dir: str) -> None:
        """Test that an unwritable destination is an I/O error."""
        with pytest.raises(CompileDbIOError):
            save_compile_db(os.path.join(temp_dir, "no", "such", "dir.json"), [])

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_in_place_save_keeps_mode(self, compile_commands_file: str, sample_entries: List[Dict[str, Any]]) -> None:
        """Test that rewriting a database keeps its permission bits."""
        os.chmod(compile_commands_file, 0o644)
        save_compile_db(compile_commands_file, sample_entries)
        assert stat.S_IMODE(os.stat(compile_commands_file).st_mode) == 0o644

        os.chmod(compile_commands_file, 0o640)
        save_compile_db(compile_commands_file, sample_entries)
        assert stat.S_IMODE(os.stat(compile_commands_file).st_mode) == 0o640

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_new_file_honours_umask(self, temp_dir: str) -> None:
        """Test that a new output file gets the default mode, not the temp file's 0600."""
        path = os.path.join(temp_dir, "new.json")
        previous = os.umask(0o022)
        try:
            save_compile_db(path, [])
        finally:
            os.umask(previous)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o644

    def test_non_ascii_fields_written_as_utf8(self, temp_dir: str) -> None:
        """Test that non-ASCII paths in edited and untouched fields stay readable UTF-8."""
        path = os.path.join(temp_dir, "compile_commands.json")
        raw = {"directory": "/build/växt", "file": "../src/größe.c", "command": "gcc -c ../src/größe.c", "output": "größe.o"}
        Path(path).write_text(json.dumps([raw], ensure_ascii=False), encoding="utf-8")

        result = process_compile_db(load_compile_db(path), [AddInclude("/usr/include/日本")])
        save_compile_db(path, result.entries)

        text = Path(path).read_bytes().decode("utf-8")
        assert "\\u" not in text
        assert '"output": "größe.o"' in text
        assert "/usr/include/日本" in text
        assert load_compile_db(path)[0]["file"] == "../src/größe.c"
