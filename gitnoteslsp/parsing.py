"""Parsers for the output of the git commands used to find notes."""

from __future__ import annotations

import re
import string
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

MAX_NOTE_BLOB_SIZE = 1_048_576  # 1 MB

_HEX_DIGITS = frozenset(string.hexdigits)
_SIZE_FIELD = re.compile(rb"\+?[0-9]+")


@dataclass(frozen=True)
class LineNote:
    """A git note attached to the commit that last touched a line."""

    commit: str
    note: str

    def short_sha(self) -> str:
        """Return the first eight characters of the commit id."""
        return self.commit[:8]


def is_valid_sha(s: str) -> bool:
    """Return True if ``s`` is a full 40-character hexadecimal object id."""
    return len(s) == 40 and all(ch in _HEX_DIGITS for ch in s)


def _lines(text: str) -> Iterator[str]:
    """Yield lines split on ``\\n``, dropping a trailing ``\\r`` from each."""
    if not text:
        return
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    for part in parts:
        yield part[:-1] if part.endswith("\r") else part


def parse_notes_list(output: str) -> list[tuple[str, str]]:
    """Parse ``git notes list`` output into (blob id, annotated object id) pairs."""
    pairs = []
    for line in _lines(output):
        fields = line.split()
        if len(fields) >= 2:
            pairs.append((fields[0], fields[1]))
    return pairs


def parse_cat_file_batch(
    output: str | bytes,
    blob_to_object: Sequence[tuple[str, str]],
) -> dict[str, str]:
    """Parse ``git cat-file --batch`` output into a map of object id to note text.

    ``blob_to_object`` gives, in request order, the blob read and the object
    it annotates. Blobs larger than ``MAX_NOTE_BLOB_SIZE`` and notes that are
    empty after trimming are left out. Parsing stops at the first malformed
    or truncated record.
    """
    data = output.encode("utf-8") if isinstance(output, str) else bytes(output)
    notes: dict[str, str] = {}
    pos = 0

    for _blob, annotated in blob_to_object:
        if pos >= len(data):
            break
        header_end = data.find(b"\n", pos)
        if header_end < 0:
            break
        fields = data[pos:header_end].split()
        pos = header_end + 1

        if len(fields) < 3 or not _SIZE_FIELD.fullmatch(fields[2]):
            break
        size = int(fields[2])
        if len(data) - pos < size:
            break

        body = data[pos : pos + size]
        pos += size
        if data[pos : pos + 1] == b"\n":
            pos += 1

        if size > MAX_NOTE_BLOB_SIZE:
            continue
        content = body.decode("utf-8", errors="replace").strip()
        if content:
            notes[annotated] = content

    return notes


def parse_blame_porcelain(output: str) -> list[str]:
    """Parse ``git blame --porcelain`` output into one commit id per file line.

    Index 0 holds the commit for line 1 of the file.
    """
    line_commits: list[str] = []
    current_commit = ""

    for line in _lines(output):
        if len(line) >= 40 and line[0] in _HEX_DIGITS:
            fields = line.split()
            if len(fields) >= 3 and is_valid_sha(fields[0]):
                current_commit = fields[0]
        elif line.startswith("\t"):
            line_commits.append(current_commit)

    return line_commits


def match_notes_to_lines(
    notes: Mapping[str, str],
    line_commits: Iterable[str],
) -> list[tuple[int, LineNote]]:
    """Pair lines with notes, one entry per commit on the first line it blames."""
    result: list[tuple[int, LineNote]] = []
    seen: set[str] = set()

    for line_index, commit in enumerate(line_commits):
        note = notes.get(commit)
        if note is None or commit in seen:
            continue
        seen.add(commit)
        result.append((line_index, LineNote(commit=commit, note=note)))

    return result