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
"""Utilities for persistent file-based caching of traced header forests.

Tracing runs the compiler once per header and dominates the run time. When a
cache directory is configured, the trace results are pickled and reused by
later processes as long as the header set and the compiler are unchanged.
"""

import os
import pickle
import hashlib
import logging
import time
from typing import Any, Optional, Sequence, Tuple
from dataclasses import dataclass

from headerlib.constants import CACHE_SUFFIX, FOREST_CACHE_PREFIX
from headerlib.file_utils import newest_mtime

logger = logging.getLogger(__name__)


@dataclass
class CacheMetadata:
    """Metadata for cache validation.

    Attributes:
        header_count: Number of traced header files
        headers_digest: Digest of the sorted header paths
        newest_header_mtime: Newest modification time among the headers
        compiler: Compiler command used for the traces
        cache_timestamp: Timestamp when cache was created
    """

    header_count: int
    headers_digest: str
    newest_header_mtime: float
    compiler: str
    cache_timestamp: float


@dataclass
class CachedData:
    """Container for cached data with metadata.

    Attributes:
        metadata: Cache validation metadata
        data: The actual cached data
    """

    metadata: CacheMetadata
    data: Any


def get_cache_path(cache_dir: str, cache_filename: str) -> str:
    """Get the path to a cache file in the cache directory."""
    return os.path.join(cache_dir, cache_filename)


def forest_cache_filename(identity: Tuple[Any, ...]) -> str:
    """Name of the forest cache file of one library identity."""
    digest = hashlib.sha256(repr(identity).encode("utf-8")).hexdigest()[:16]
    return f"{FOREST_CACHE_PREFIX}{digest}{CACHE_SUFFIX}"


def ensure_cache_dir(cache_dir: str) -> str:
    """Ensure the cache directory exists.

    Args:
        cache_dir: Path to the cache directory

    Returns:
        Path to the cache directory
    """
    if not os.path.exists(cache_dir):
        try:
            os.makedirs(cache_dir, exist_ok=True)
            logger.debug("Created cache directory: %s", cache_dir)
        except OSError as e:
            logger.warning("Failed to create cache directory %s: %s", cache_dir, e)

    return cache_dir


def _headers_digest(headers: Sequence[str]) -> str:
    return hashlib.sha256("\n".join(sorted(headers)).encode("utf-8")).hexdigest()


def is_cache_valid(metadata: CacheMetadata, headers: Sequence[str], compiler: str, max_age_hours: Optional[float] = None) -> bool:
    """Check if cached data is still valid.

    Args:
        metadata: Cache metadata to validate
        headers: Header paths that would be traced now
        compiler: Compiler command that would be used now
        max_age_hours: Maximum cache age in hours (None = no age limit)

    Returns:
        True if cache is valid, False otherwise
    """
    if metadata.compiler != compiler:
        logger.info("Cache invalidated: compiler changed (%s -> %s)", metadata.compiler, compiler)
        return False

    if metadata.header_count != len(headers) or metadata.headers_digest != _headers_digest(headers):
        logger.info("Cache invalidated: header set changed")
        return False

    if newest_mtime(headers) != metadata.newest_header_mtime:
        logger.info("Cache invalidated: headers modified")
        return False

    if max_age_hours is not None:
        age_hours = (time.time() - metadata.cache_timestamp) / 3600
        if age_hours > max_age_hours:
            logger.info("Cache invalidated: too old (%.1fh > %sh limit)", age_hours, max_age_hours)
            return False

    return True


def save_cache(cache_path: str, data: Any, headers: Sequence[str], compiler: str) -> bool:
    """Save data to cache with metadata.

    Uses atomic write (temp file + rename) to prevent corruption.

    Args:
        cache_path: Path to the cache file
        data: Data to cache
        headers: Header paths the data was computed from
        compiler: Compiler command used

    Returns:
        True if successful, False otherwise
    """
    temp_path = cache_path + ".tmp"
    try:
        metadata = CacheMetadata(
            header_count=len(headers),
            headers_digest=_headers_digest(headers),
            newest_header_mtime=newest_mtime(headers),
            compiler=compiler,
            cache_timestamp=time.time(),
        )

        with open(temp_path, "wb") as f:
            pickle.dump(CachedData(metadata=metadata, data=data), f, protocol=pickle.HIGHEST_PROTOCOL)

        os.replace(temp_path, cache_path)

        logger.debug("Saved cache: %s", cache_path)
        return True

    except (OSError, pickle.PicklingError) as e:
        logger.warning("Failed to save cache %s: %s", cache_path, e)
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
        return False


def load_cache(cache_path: str, headers: Sequence[str], compiler: str, max_age_hours: Optional[float] = None) -> Optional[Any]:
    """Load data from cache if valid.

    Args:
        cache_path: Path to the cache file
        headers: Header paths that would be traced now
        compiler: Compiler command that would be used now
        max_age_hours: Maximum cache age in hours (None = no age limit)

    Returns:
        Cached data if valid, None otherwise
    """
    if not os.path.exists(cache_path):
        logger.debug("Cache miss: %s does not exist", cache_path)
        return None

    try:
        with open(cache_path, "rb") as f:
            cached_data: CachedData = pickle.load(f)

        if not is_cache_valid(cached_data.metadata, headers, compiler, max_age_hours):
            logger.debug("Cache invalid: %s", cache_path)
            return None

        logger.debug("Cache hit: %s", cache_path)
        return cached_data.data

    except (OSError, pickle.UnpicklingError, AttributeError, EOFError) as e:
        logger.warning("Failed to load cache %s: %s, falling back to regeneration", cache_path, e)
        try:
            os.remove(cache_path)
            logger.debug("Removed corrupted cache: %s", cache_path)
        except OSError:
            pass
        return None


def cleanup_old_caches(cache_dir: str, max_age_hours: float) -> int:
    """Clean up forest cache files older than the specified age.

    Args:
        cache_dir: Path to the cache directory
        max_age_hours: Maximum cache age in hours

    Returns:
        Number of cache files removed
    """
    if not os.path.exists(cache_dir):
        return 0

    removed_count = 0
    current_time = time.time()
    max_age_seconds = max_age_hours * 3600

    try:
        for filename in os.listdir(cache_dir):
            if not (filename.startswith(FOREST_CACHE_PREFIX) and filename.endswith(CACHE_SUFFIX)):
                continue

            filepath = os.path.join(cache_dir, filename)
            try:
                age_seconds = current_time - os.stat(filepath).st_mtime
                if age_seconds > max_age_seconds:
                    os.remove(filepath)
                    removed_count += 1
                    logger.debug("Removed old cache: %s (age: %.1fh)", filepath, age_seconds / 3600)
            except OSError as e:
                logger.warning("Failed to process cache file %s: %s", filepath, e)
                continue

    except OSError as e:
        logger.warning("Failed to list cache directory %s: %s", cache_dir, e)

    if removed_count > 0:
        logger.info("Cleaned up %s old cache file(s)", removed_count)

    return removed_count
