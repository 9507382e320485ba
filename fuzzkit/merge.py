"""Merging corpora by coverage, driven by a textual control file.

A control file looks like this::

    3            # number of inputs
    1            # inputs in the first corpus (<= the previous number)
    file0
    file1
    file2        # one file name per line
    STARTED 0 123        # file id, file size
    FT 0 1 4 6 8         # file id, features...
    COV 0 7 8 9          # file id, coverage...
    STARTED 1 456        # no FT line: this input crashed
    STARTED 2 567
    FT 2 8 9
    COV 2 11 12
"""

from __future__ import annotations

import contextlib
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

__all__ = [
    "ControlFileError",
    "MergeFileInfo",
    "MergeResult",
    "Merger",
    "write_new_control_file",
]

_MAX_FILES = 10_000_000
_UINT32_MAX = 0xFFFFFFFF
_UINT64_MAX = (1 << 64) - 1
# 1 << 21 - 1 is the largest feature index the corpus distinguishes.
_FEATURE_SET_SIZE = 1 << 21
# Approximate in-memory footprint of one file record and of one feature.
_FILE_INFO_OVERHEAD = 88
_FEATURE_BYTES = 4

_UINT_RE = re.compile(r"\s*(\d+)")
_WORD_RE = re.compile(r"\s*(\S+)")


class ControlFileError(ValueError):
    """The merge control file is malformed."""


@dataclass
class MergeFileInfo:
    """One input listed in the control file and what it covered."""

    name: str
    size: int = 0
    features: list[int] = field(default_factory=list)
    cov: list[int] = field(default_factory=list)


@dataclass
class MergeResult:
    """Files chosen by a merge and what they add."""

    new_files: list[str] = field(default_factory=list)
    new_features: set[int] = field(default_factory=set)
    new_cov: set[int] = field(default_factory=set)


class _LineReader:
    """Reads whitespace-separated values from one line, stopping at the first bad one."""

    def __init__(self, line: str) -> None:
        self._line = line
        self._pos = 0
        self._failed = False

    def word(self) -> Optional[str]:
        return self._read(_WORD_RE, None)

    def uint(self, limit: int) -> Optional[int]:
        return self._read(_UINT_RE, limit)

    def uints(self, limit: int) -> list[int]:
        values = []
        while (value := self.uint(limit)) is not None:
            values.append(value)
        return values

    def _read(self, pattern: re.Pattern, limit: Optional[int]):
        if self._failed:
            return None
        match = pattern.match(self._line, self._pos)
        if match is None:
            self._failed = True
            return None
        self._pos = match.end()
        if limit is None:
            return match.group(1)
        value = int(match.group(1))
        if value > limit:
            self._failed = True
            return None
        return value


def _first_uint(line: str, limit: int) -> Optional[int]:
    return _LineReader(line).uint(limit)


class Merger:
    """State parsed from a control file, and the merge algorithms over it."""

    def __init__(self) -> None:
        self.files: list[MergeFileInfo] = []
        self.num_files_in_first_corpus = 0
        self.first_not_processed_file = 0
        self.last_failure = ""

    def parse(self, text: str, parse_coverage: bool) -> None:
        """Load a control file; raise :class:`ControlFileError` if it is malformed.

        Features and coverage are only read when ``parse_coverage`` is set.
        """
        self.last_failure = ""
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        it = iter(lines)

        def next_line(what: str) -> str:
            try:
                return next(it)
            except StopIteration:
                raise ControlFileError(f"missing {what}") from None

        num_files = _first_uint(next_line("number of files"), _UINT64_MAX)
        if not num_files or num_files > _MAX_FILES:
            raise ControlFileError("bad number of files")

        first_corpus = _first_uint(
            next_line("number of files in the first corpus"), _UINT64_MAX
        )
        if first_corpus is None or first_corpus > num_files:
            raise ControlFileError("bad number of files in the first corpus")

        files = [MergeFileInfo(next_line("file name")) for _ in range(num_files)]

        expected_start = 0
        last_seen_start: Optional[int] = None
        have_ft = True
        seen_pcs: set[int] = set()
        for line in it:
            reader = _LineReader(line)
            marker = reader.word()
            file_id = reader.uint(_UINT32_MAX)
            if marker is None or file_id is None:
                raise ControlFileError(f"malformed line {line!r}")
            if marker == "STARTED":
                if file_id != expected_start:
                    raise ControlFileError(f"unexpected STARTED for file {file_id}")
                if expected_start >= len(files):
                    raise ControlFileError("more STARTED markers than files")
                size = reader.uint(_UINT64_MAX)
                files[expected_start].size = 0 if size is None else size
                last_seen_start = expected_start
                expected_start += 1
                have_ft = False
            elif marker == "FT":
                if file_id != last_seen_start:
                    raise ControlFileError(f"FT for file {file_id} out of order")
                have_ft = True
                if parse_coverage:
                    files[file_id].features = sorted(reader.uints(_UINT32_MAX))
            elif marker == "COV":
                if file_id != last_seen_start:
                    raise ControlFileError(f"COV for file {file_id} out of order")
                if parse_coverage:
                    for pc in reader.uints(_UINT32_MAX):
                        if pc not in seen_pcs:
                            seen_pcs.add(pc)
                            files[file_id].cov.append(pc)
            else:
                raise ControlFileError(f"unknown marker {marker!r}")

        self.files = files
        self.num_files_in_first_corpus = first_corpus
        self.first_not_processed_file = expected_start
        if not have_ft and last_seen_start is not None:
            self.last_failure = files[last_seen_start].name

    def _check_first_corpus(self) -> None:
        if self.num_files_in_first_corpus > len(self.files):
            raise ValueError("first corpus is larger than the list of files")

    def merge(
        self, initial_features: Iterable[int] = (), initial_cov: Iterable[int] = ()
    ) -> MergeResult:
        """Greedy merge: smaller files first, then files with more features.

        Reorders :attr:`files` and trims their features to the unknown ones.
        """
        self._check_first_corpus()
        initial_cov = set(initial_cov)
        first = self.num_files_in_first_corpus
        all_features = set(initial_features)
        for info in self.files[:first]:
            all_features.update(info.features)

        # Drop features already known (one occurrence per known value).
        for info in self.files[first:]:
            removed: set[int] = set()
            kept = []
            for feature in info.features:
                if feature in all_features and feature not in removed:
                    removed.add(feature)
                    continue
                kept.append(feature)
            info.features = kept

        self.files[first:] = sorted(
            self.files[first:], key=lambda f: (f.size, -len(f.features))
        )

        result = MergeResult()
        for info in self.files[first:]:
            found_new = False
            for feature in info.features:
                if feature not in all_features:
                    all_features.add(feature)
                    result.new_features.add(feature)
                    found_new = True
            if found_new:
                result.new_files.append(info.name)
            result.new_cov.update(c for c in info.cov if c not in initial_cov)
        return result

    def set_cover_merge(
        self, initial_features: Iterable[int] = (), initial_cov: Iterable[int] = ()
    ) -> MergeResult:
        """Approximate a minimal set of files covering all features.

        Files adding the most uncovered features are chosen first, the smaller
        one on a tie. Features are compared modulo the feature-set size.
        """
        self._check_first_corpus()
        initial_cov = set(initial_cov)
        first = self.num_files_in_first_corpus
        result = MergeResult()

        existing = set(initial_features)
        for info in self.files[:first]:
            existing.update(info.features)

        covered = {f % _FEATURE_SET_SIZE for f in existing}
        all_features = set(covered)
        remaining = list(range(first, len(self.files)))
        for i in remaining:
            all_features.update(f % _FEATURE_SET_SIZE for f in self.files[i].features)

        while len(covered) != len(all_features):
            best_index = first
            best_count = 0
            exhausted = set()
            for i in remaining:
                info = self.files[i]
                unique = sum(
                    1 for f in info.features if f % _FEATURE_SET_SIZE not in covered
                )
                if unique == 0:
                    exhausted.add(i)
                elif unique > best_count or (
                    unique == best_count and info.size < self.files[best_index].size
                ):
                    best_count = unique
                    best_index = i
            remaining = [i for i in remaining if i not in exhausted]
            if best_count == 0:
                break

            remaining.remove(best_index)
            chosen = self.files[best_index]
            for feature in chosen.features:
                slot = feature % _FEATURE_SET_SIZE
                if slot not in covered:
                    covered.add(slot)
                    result.new_features.add(feature)
            result.new_files.append(chosen.name)
            result.new_cov.update(c for c in chosen.cov if c not in initial_cov)
        return result

    def approximate_memory_consumption(self) -> int:
        """Rough number of bytes the parsed file records occupy."""
        return sum(
            _FILE_INFO_OVERHEAD + len(info.features) * _FEATURE_BYTES
            for info in self.files
        )

    def all_features(self) -> set[int]:
        """Union of the features of every file."""
        return {feature for info in self.files for feature in info.features}


def write_new_control_file(
    path: Union[str, os.PathLike],
    old_corpus: Iterable[str],
    new_corpus: Iterable[str],
    known_files: Iterable[MergeFileInfo] = (),
) -> int:
    """Write a fresh control file listing the corpora's files.

    Files named in ``known_files`` are left out. Returns the number of files listed.
    """
    skip = {info.name for info in known_files}
    from_old = [name for name in map(str, old_corpus) if name not in skip]
    from_new = [name for name in map(str, new_corpus) if name not in skip]
    names = from_old + from_new

    with contextlib.suppress(FileNotFoundError):
        os.remove(path)
    with open(path, "w", encoding="utf-8", newline="\n") as control:
        control.write(f"{len(names)}\n{len(from_old)}\n")
        control.writelines(f"{name}\n" for name in names)
    return len(names)