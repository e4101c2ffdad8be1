"""Running git and caching the notes and blame data it produces."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from .parsing import (
    LineNote,
    match_notes_to_lines,
    parse_blame_porcelain,
    parse_cat_file_batch,
    parse_notes_list,
)

NOTES_CACHE_TTL_SECS = 10
BLAME_CACHE_TTL_SECS = 5
BLAME_CACHE_MAX_ENTRIES = 50


async def run_git(cwd: str, *args: str) -> str | None:
    """Run git in ``cwd`` and return its trimmed output, or None on failure."""
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            "-C",
            cwd,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError:
        return None
    stdout, _stderr = await process.communicate()
    if process.returncode != 0:
        return None
    return stdout.decode("utf-8", errors="replace").strip()


async def fetch_all_notes(repo_root: str) -> dict[str, str]:
    """Read every note in the repository, keyed by the object it annotates."""
    listing = await run_git(repo_root, "notes", "list")
    if not listing:
        return {}

    blob_to_object = parse_notes_list(listing)
    if not blob_to_object:
        return {}

    request = "\n".join(blob for blob, _ in blob_to_object) + "\n"
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            "-C",
            repo_root,
            "cat-file",
            "--batch",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return {}
    stdout, _ = await process.communicate(request.encode("utf-8"))
    if process.returncode != 0:
        return {}
    return parse_cat_file_batch(stdout, blob_to_object)


async def fetch_blame(repo_root: str, file_path: str) -> list[str]:
    """Return the commit id for each line of ``file_path``."""
    text = await run_git(repo_root, "blame", "--porcelain", "--", file_path)
    if text is None:
        return []
    return parse_blame_porcelain(text)


class NotesRepository:
    """Notes and blame lookups with short-lived caches.

    The notes cache holds a single result for whichever repository was read
    last; blame results are cached per repository and file, with the oldest
    entry evicted once the cache is full.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_blame_entries: int = BLAME_CACHE_MAX_ENTRIES,
    ) -> None:
        self._clock = clock
        self._max_blame_entries = max_blame_entries
        self._notes: tuple[dict[str, str], float] | None = None
        self._blame: dict[str, tuple[list[str], float]] = {}

    async def get_all_notes(self, repo_root: str) -> dict[str, str]:
        """Return all notes, reusing a result younger than the notes TTL."""
        if self._notes is not None:
            notes, fetched_at = self._notes
            if self._clock() - fetched_at < NOTES_CACHE_TTL_SECS:
                return dict(notes)

        notes = await fetch_all_notes(repo_root)
        self._notes = (dict(notes), self._clock())
        return notes

    async def blame_file(self, repo_root: str, file_path: str) -> list[str]:
        """Return per-line commit ids, reusing a result younger than the blame TTL."""
        key = f"{repo_root}:{file_path}"
        cached = self._blame.get(key)
        if cached is not None:
            commits, fetched_at = cached
            if self._clock() - fetched_at < BLAME_CACHE_TTL_SECS:
                return list(commits)

        commits = await fetch_blame(repo_root, file_path)

        if self._blame and len(self._blame) >= self._max_blame_entries:
            oldest = min(self._blame, key=lambda k: self._blame[k][1])
            del self._blame[oldest]
        self._blame[key] = (list(commits), self._clock())
        return commits

    async def file_line_notes(
        self, repo_root: str, file_path: str
    ) -> list[tuple[int, LineNote]]:
        """Return one (line index, note) per annotated commit in the file."""
        notes, line_commits = await asyncio.gather(
            self.get_all_notes(repo_root),
            self.blame_file(repo_root, file_path),
        )
        return match_notes_to_lines(notes, line_commits)

    async def note_for_line(
        self, repo_root: str, file_path: str, line: int
    ) -> LineNote | None:
        """Return the note for the commit that last changed line ``line`` (0-based)."""
        notes, line_commits = await asyncio.gather(
            self.get_all_notes(repo_root),
            self.blame_file(repo_root, file_path),
        )
        if not 0 <= line < len(line_commits):
            return None
        commit = line_commits[line]
        note = notes.get(commit)
        if note is None:
            return None
        return LineNote(commit=commit, note=note)