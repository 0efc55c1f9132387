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
"""Per-library configuration for header resolution.

A LibraryConfig names a built library and the directory its public headers
were installed to, plus the knobs of the compiler trace step. It is immutable
and hashable so it can key the process-wide resolver registry.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from headerlib.constants import (
    DEFAULT_IGNORED_PREFIXES,
    DEFAULT_MAX_WORKERS,
    LIBRARY_INCLUDE_DIR,
    TRACE_TIMEOUT,
    ConfigError,
    HeaderDirectoryError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryConfig:
    """Configuration of one library whose headers are resolved.

    Attributes:
        name: Library name (e.g., "libpng")
        header_dir: Installed header root of the library
        compiler: Compiler command for traces (None = auto-detect)
        extra_flags: Extra compiler flags inserted before the header argument
        ignored_prefixes: Trace entries under these roots are dropped entirely
        timeout: Seconds allowed per compiler invocation (None = no limit)
        max_workers: Concurrent compiler invocations (None = CPU count, 1 = sequential)
        exclude_patterns: Glob patterns of headers that are never traced
        cache_dir: Directory for the on-disk forest cache (None = disabled)
    """

    name: str
    header_dir: str
    compiler: Optional[str] = None
    extra_flags: Tuple[str, ...] = ()
    ignored_prefixes: Tuple[str, ...] = DEFAULT_IGNORED_PREFIXES
    timeout: Optional[float] = TRACE_TIMEOUT
    max_workers: Optional[int] = DEFAULT_MAX_WORKERS
    exclude_patterns: Tuple[str, ...] = ()
    cache_dir: Optional[str] = None

    @classmethod
    def for_library(cls, name: str, build_root: str, **kwargs: Any) -> "LibraryConfig":
        """Create a config for a library built under build_root.

        The header root is <build_root>/<name>/include.
        """
        return cls(name=name, header_dir=os.path.join(build_root, name, LIBRARY_INCLUDE_DIR), **kwargs)

    @property
    def header_root(self) -> str:
        """Absolute, symlink-free header root path."""
        return os.path.realpath(self.header_dir)

    def identity(self) -> Tuple[Any, ...]:
        """Key identifying this library for result caching.

        Worker count, timeout and cache location do not change results and are
        not part of the identity.
        """
        return (self.name, self.header_root, self.compiler, self.extra_flags, self.ignored_prefixes, self.exclude_patterns)


def validate_header_dir(config: LibraryConfig) -> str:
    """Check that the library header root exists.

    Args:
        config: Library configuration

    Returns:
        Absolute header root path

    Raises:
        HeaderDirectoryError: If the directory is missing or not a directory
    """
    header_root = config.header_root
    if not os.path.exists(header_root):
        raise HeaderDirectoryError(f"Header directory for {config.name} not found: {config.header_dir}")
    if not os.path.isdir(header_root):
        raise HeaderDirectoryError(f"Header path for {config.name} is not a directory: {config.header_dir}")
    return header_root


def _as_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"'{key}' must be a string or a list of strings")


def config_from_dict(data: Dict[str, Any], base_dir: str = ".") -> LibraryConfig:
    """Build a LibraryConfig from a parsed JSON object.

    Relative header_dir and cache_dir values are resolved against base_dir.

    Raises:
        ConfigError: If required keys are missing or have the wrong type
    """
    if not isinstance(data, dict):
        raise ConfigError("Library config must be a JSON object")

    name = data.get("name")
    header_dir = data.get("header_dir")
    if not isinstance(name, str) or not name:
        raise ConfigError("Library config requires a non-empty 'name'")
    if not isinstance(header_dir, str) or not header_dir:
        raise ConfigError(f"Library config for {name} requires a 'header_dir'")

    kwargs: Dict[str, Any] = {}
    if data.get("compiler") is not None:
        kwargs["compiler"] = str(data["compiler"])
    if "extra_c_flags" in data:
        kwargs["extra_flags"] = _as_tuple(data["extra_c_flags"], "extra_c_flags")
    if "ignored_prefixes" in data:
        kwargs["ignored_prefixes"] = _as_tuple(data["ignored_prefixes"], "ignored_prefixes")
    if "exclude" in data:
        kwargs["exclude_patterns"] = _as_tuple(data["exclude"], "exclude")
    if "timeout" in data:
        timeout = data["timeout"]
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigError("'timeout' must be a positive number or null")
        kwargs["timeout"] = timeout
    if "max_workers" in data:
        max_workers = data["max_workers"]
        if max_workers is not None and (not isinstance(max_workers, int) or max_workers < 1):
            raise ConfigError("'max_workers' must be a positive integer or null")
        kwargs["max_workers"] = max_workers
    if data.get("cache_dir") is not None:
        kwargs["cache_dir"] = os.path.join(base_dir, str(data["cache_dir"]))

    return LibraryConfig(name=name, header_dir=os.path.join(base_dir, header_dir), **kwargs)


def load_library_config(config_path: str) -> LibraryConfig:
    """Load a library configuration from a JSON file.

    Args:
        config_path: Path to the JSON config file

    Returns:
        Parsed LibraryConfig

    Raises:
        ConfigError: If the file cannot be read or is malformed
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed library config {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read library config {config_path}: {e}") from e

    config = config_from_dict(data, base_dir=os.path.dirname(os.path.abspath(config_path)))
    logger.debug("Loaded library config for %s from %s", config.name, config_path)
    return config
