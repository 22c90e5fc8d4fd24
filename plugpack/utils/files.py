"""File selection and copying helpers.

These are used while staging a plugin and writing its archives.
"""

from __future__ import annotations

import os
import pathlib
import re
import shutil
from typing import List, Optional, Pattern, Tuple, Union


def fnmatch_to_regex(pattern: str) -> str:
    """Convert a glob pattern to a regex pattern.

    ``**/`` matches zero or more directories, ``**`` anything, ``*`` and
    ``?`` anything within one path segment.

    Args:
        pattern: Glob pattern using ``/`` as separator

    Returns:
        Regex pattern string
    """
    regex = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            regex.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            regex.append(".*")
            i += 2
        elif pattern[i] == "*":
            regex.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            regex.append("[^/]")
            i += 1
        else:
            regex.append(re.escape(pattern[i]))
            i += 1
    return f"^{''.join(regex)}$"


def compile_patterns(patterns: Optional[List[str]]) -> List[Pattern[str]]:
    return [re.compile(fnmatch_to_regex(pattern)) for pattern in patterns or []]


def collect_files(
        base_dir: Union[str, pathlib.Path],
        include_patterns: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
) -> List[Tuple[pathlib.Path, str]]:
    """Collect the files under ``base_dir`` selected by glob patterns.

    Args:
        base_dir: Directory to walk
        include_patterns: Patterns a file must match (default: everything)
        exclude_patterns: Patterns that drop a file even when included

    Returns:
        Sorted list of (file path, archive name) pairs, archive names using ``/``
    """
    base_dir = pathlib.Path(base_dir)
    include_regexes = compile_patterns(include_patterns or ["**/*"])
    exclude_regexes = compile_patterns(exclude_patterns)

    files = []
    for root, dirs, filenames in os.walk(base_dir):
        dirs.sort()
        root_path = pathlib.Path(root)
        for filename in sorted(filenames):
            file_path = root_path / filename
            arcname = file_path.relative_to(base_dir).as_posix()

            included = any(regex.match(arcname) for regex in include_regexes)
            excluded = any(regex.match(arcname) for regex in exclude_regexes)
            if included and not excluded:
                files.append((file_path, arcname))

    return sorted(files, key=lambda item: item[1])


def copy_tree(source_dir: Union[str, pathlib.Path], dest_dir: Union[str, pathlib.Path]) -> int:
    """Copy the contents of ``source_dir`` into ``dest_dir``, merging.

    Returns:
        Number of files copied
    """
    source_dir = pathlib.Path(source_dir)
    dest_dir = pathlib.Path(dest_dir)
    count = 0
    for file_path, arcname in collect_files(source_dir):
        target = dest_dir / arcname
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(file_path, target)
        count += 1
    return count
