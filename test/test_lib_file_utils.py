#!/usr/bin/env python3
"""Tests for headerlib/file_utils.py"""

import os
import pytest
from pathlib import Path
from typing import Any

from headerlib.file_utils import (
    exclude_headers_by_patterns,
    find_header_files,
    is_header_file,
    is_ignored_path,
    is_project_header,
    is_system_header,
    newest_mtime,
    unique_in_order,
)


class TestClassification:
    """Tests for header classification helpers."""

    @pytest.mark.parametrize("path, expected", [("a.h", True), ("a.hpp", True), ("a.hxx", True), ("a.hh", False), ("vector", False), ("a.c", False)])
    def test_is_header_file(self, path: str, expected: bool) -> None:
        assert is_header_file(path) is expected

    def test_project_and_system_headers(self) -> None:
        assert is_project_header("png/png.h")
        assert not is_system_header("png/png.h")
        assert is_system_header("/usr/include/stdio.h")
        assert not is_project_header("/usr/include/stdio.h")

    def test_is_ignored_path(self) -> None:
        prefixes = ("/usr/lib/",)
        assert is_ignored_path("/usr/lib/gcc/x86_64-linux-gnu/13/include/stddef.h", prefixes)
        assert not is_ignored_path("/usr/include/stddef.h", prefixes)
        assert not is_ignored_path("/usr/lib/x.h", ())


class TestFindHeaderFiles:
    """Tests for find_header_files function."""

    def test_recursive_sorted_absolute(self, temp_dir: str) -> None:
        root = Path(temp_dir)
        for rel in ["z.h", "a/b.hpp", "a/c.hxx", "a/readme.txt", "src/impl.cpp", "0.h"]:
            (root / rel).parent.mkdir(parents=True, exist_ok=True)
            (root / rel).write_text("")

        headers = find_header_files(temp_dir)

        assert headers == [os.path.join(temp_dir, rel) for rel in ["0.h", "a/b.hpp", "a/c.hxx", "z.h"]]

    def test_empty_directory(self, temp_dir: str) -> None:
        assert find_header_files(temp_dir) == []


class TestExcludeHeadersByPatterns:
    """Tests for exclude_headers_by_patterns function."""

    def test_patterns_match_relative_paths(self, temp_dir: str) -> None:
        headers = [os.path.join(temp_dir, rel) for rel in ["png.h", "private/impl.h", "private/more.h", "gen_config.h"]]

        filtered, excluded_count, no_match, stats = exclude_headers_by_patterns(headers, ["private/*", "gen_*.h", "*/missing/*"], temp_dir)

        assert filtered == [os.path.join(temp_dir, "png.h")]
        assert excluded_count == 3
        assert no_match == ["*/missing/*"]
        assert stats["total_excluded"] == 3
        assert stats["by_pattern"]["private/*"] == {"count": 2, "examples": ["private/impl.h", "private/more.h"]}

    def test_no_patterns(self, temp_dir: str) -> None:
        headers = [os.path.join(temp_dir, "a.h")]
        assert exclude_headers_by_patterns(headers, [], temp_dir) == (headers, 0, [], {})

    def test_examples_capped_at_three(self, temp_dir: str) -> None:
        headers = [os.path.join(temp_dir, f"h{i}.h") for i in range(5)]
        _, excluded_count, _, stats = exclude_headers_by_patterns(headers, ["*.h"], temp_dir)
        assert excluded_count == 5
        assert len(stats["by_pattern"]["*.h"]["examples"]) == 3


class TestSmallHelpers:
    """Tests for newest_mtime and unique_in_order."""

    def test_newest_mtime(self, temp_dir: str) -> None:
        old = os.path.join(temp_dir, "old.h")
        new = os.path.join(temp_dir, "new.h")
        Path(old).write_text("")
        Path(new).write_text("")
        os.utime(old, (100, 100))
        os.utime(new, (200, 200))

        assert newest_mtime([old, new, os.path.join(temp_dir, "gone.h")]) == 200
        assert newest_mtime([]) == 0.0

    def test_unique_in_order(self) -> None:
        assert unique_in_order(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
