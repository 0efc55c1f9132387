#!/usr/bin/env python3
"""Tests for the headerRoots.py command line tool.

main() is called in-process with an argument list; the compiler is replaced
by canned traces.
"""

import os
import sys
import json
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import headerRoots
from headerlib.constants import EXIT_INVALID_ARGS, EXIT_RUNTIME_ERROR, EXIT_SUCCESS

COMPILER = "fake-clang++"

pytestmark = pytest.mark.usefixtures("restore_colors")


def run_json(capsys: pytest.CaptureFixture, *args: str) -> dict:
    assert headerRoots.main([*args, "--compiler", COMPILER, "--json"]) == EXIT_SUCCESS
    return json.loads(capsys.readouterr().out)


class TestTextOutput:
    """Test the default human readable report."""

    @pytest.mark.unit
    def test_sections(self, simple_library: str, capsys: pytest.CaptureFixture) -> None:
        assert headerRoots.main([simple_library, "--compiler", COMPILER, "--no-color"]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Header roots of mylib" in out
        assert "Top-level headers (1):\n  b.h" in out
        assert "System headers (1):\n  stddef.h" in out
        assert "\x1b[" not in out

    @pytest.mark.unit
    def test_cycles_are_listed(self, cyclic_library: str, capsys: pytest.CaptureFixture) -> None:
        headerRoots.main([cyclic_library, "--compiler", COMPILER, "--no-color"])
        out = capsys.readouterr().out
        assert "Include cycles (1):" in out
        assert "x.h <-> y.h (representative: x.h)" in out

    @pytest.mark.unit
    def test_tree(self, simple_library: str, capsys: pytest.CaptureFixture) -> None:
        headerRoots.main([simple_library, "--compiler", COMPILER, "--no-color", "--tree"])
        out = capsys.readouterr().out
        assert "Inclusion tree of b.h:\n  b.h\n    a.h\n      /usr/include/stddef.h" in out

    @pytest.mark.unit
    def test_failed_headers(self, png_like_library: str, capsys: pytest.CaptureFixture) -> None:
        headerRoots.main([png_like_library, "--compiler", COMPILER, "--no-color"])
        assert "1 header(s) do not compile standalone" in capsys.readouterr().out

        headerRoots.main([png_like_library, "--compiler", COMPILER, "--no-color", "--failed"])
        out = capsys.readouterr().out
        assert "Headers that do not compile standalone (1):" in out
        assert "pngconf.h (exit code 1) included by: png.h" in out

    @pytest.mark.unit
    def test_system_only(self, simple_library: str, capsys: pytest.CaptureFixture) -> None:
        headerRoots.main([simple_library, "--compiler", COMPILER, "--no-color", "--system-only"])
        out = capsys.readouterr().out
        assert "Top-level headers" not in out
        assert "System headers" in out


class TestJsonOutput:
    """Test --json."""

    @pytest.mark.unit
    def test_all_keys(self, png_like_library: str, capsys: pytest.CaptureFixture) -> None:
        data = run_json(capsys, png_like_library, "--name", "libpng")
        assert data == {
            "library": "libpng",
            "top_level_headers": ["png.h"],
            "cycles": [],
            "system_headers": ["time.h", "stdio.h", "setjmp.h"],
            "failed_headers": [{"header": "pngconf.h", "reason": "exit code 1"}],
        }

    @pytest.mark.unit
    def test_lib_only(self, cyclic_library: str, capsys: pytest.CaptureFixture) -> None:
        data = run_json(capsys, cyclic_library, "--lib-only")
        assert data["top_level_headers"] == ["x.h"]
        assert data["cycles"] == [["x.h", "y.h"]]
        assert "system_headers" not in data

    @pytest.mark.unit
    def test_system_only(self, simple_library: str, capsys: pytest.CaptureFixture) -> None:
        data = run_json(capsys, simple_library, "--system-only")
        assert data["system_headers"] == ["stddef.h"]
        assert "top_level_headers" not in data

    @pytest.mark.unit
    def test_exclude_and_flags(self, simple_library: str, fake_compiler, capsys: pytest.CaptureFixture) -> None:
        data = run_json(capsys, simple_library, "--exclude", "b.h", "--flag=-DNDEBUG", "--jobs", "1")
        assert data["top_level_headers"] == ["a.h"]
        assert fake_compiler.commands == [[COMPILER, "-fsyntax-only", "-H", "-I.", "-DNDEBUG", os.path.join(simple_library, "a.h")]]

    @pytest.mark.unit
    def test_config_file(self, simple_library: str, temp_dir: str, capsys: pytest.CaptureFixture) -> None:
        config_path = os.path.join(temp_dir, "mylib.json")
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({"name": "fromconfig", "header_dir": os.path.relpath(simple_library, temp_dir), "compiler": COMPILER}, f)

        assert headerRoots.main(["--config", config_path, "--json"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["library"] == "fromconfig"
        assert data["top_level_headers"] == ["b.h"]


class TestExport:
    """Test --export."""

    @pytest.mark.unit
    def test_export_graphml(self, simple_library: str, temp_dir: str, capsys: pytest.CaptureFixture) -> None:
        output_path = os.path.join(temp_dir, "graph.graphml")
        assert headerRoots.main([simple_library, "--compiler", COMPILER, "--no-color", "--export", output_path]) == EXIT_SUCCESS
        assert os.path.exists(output_path)

    @pytest.mark.unit
    def test_export_unsupported_format(self, simple_library: str, temp_dir: str, capsys: pytest.CaptureFixture) -> None:
        output_path = os.path.join(temp_dir, "graph.png")
        assert headerRoots.main([simple_library, "--compiler", COMPILER, "--no-color", "--export", output_path]) == EXIT_RUNTIME_ERROR
        assert "Unsupported graph format" in capsys.readouterr().err


class TestExitCodes:
    """Test error handling of main()."""

    @pytest.mark.unit
    def test_no_header_dir_or_config(self, capsys: pytest.CaptureFixture) -> None:
        assert headerRoots.main([]) == EXIT_INVALID_ARGS
        assert "HEADER_DIR or --config" in capsys.readouterr().err

    @pytest.mark.unit
    def test_missing_header_dir(self, temp_dir: str, fake_compiler, capsys: pytest.CaptureFixture) -> None:
        assert headerRoots.main([os.path.join(temp_dir, "missing"), "--compiler", COMPILER]) == EXIT_INVALID_ARGS
        assert "not found" in capsys.readouterr().err
        assert fake_compiler.calls == []

    @pytest.mark.unit
    @pytest.mark.parametrize("args", [["--jobs", "0"], ["--timeout", "0"]])
    def test_invalid_numbers(self, simple_library: str, args, capsys: pytest.CaptureFixture) -> None:
        assert headerRoots.main([simple_library, *args]) == EXIT_INVALID_ARGS

    @pytest.mark.unit
    def test_bad_config_file(self, temp_dir: str, capsys: pytest.CaptureFixture) -> None:
        config_path = os.path.join(temp_dir, "bad.json")
        Path(config_path).write_text("[]")
        assert headerRoots.main(["--config", config_path]) == EXIT_INVALID_ARGS

    @pytest.mark.unit
    def test_system_only_and_lib_only_conflict(self, simple_library: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            headerRoots.main([simple_library, "--system-only", "--lib-only"])
        assert exc_info.value.code == 2

    @pytest.mark.unit
    def test_unstartable_compiler(self, simple_library: str, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
        def fake_run(cmd, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", cmd[0])

        monkeypatch.setattr("headerlib.trace_invoker.subprocess.run", fake_run)
        assert headerRoots.main([simple_library, "--compiler", COMPILER]) == EXIT_RUNTIME_ERROR
        assert "Failed to run fake-clang++" in capsys.readouterr().err
