"""Mapping document URIs to repositories and repository-relative paths."""

from __future__ import annotations

import subprocess
from pathlib import Path
from urllib.parse import urlsplit
from urllib.request import url2pathname


def uri_to_path(uri: str) -> Path:
    """Convert a ``file:`` URI to an absolute filesystem path.

    Raises ValueError if the URI is not a local file URI.
    """
    parts = urlsplit(uri)
    if parts.scheme.lower() != "file":
        raise ValueError(f"not a file URI: {uri}")
    if parts.netloc not in ("", "localhost"):
        raise ValueError(f"file URI has a remote host: {uri}")
    path = Path(url2pathname(parts.path))
    if not path.is_absolute():
        raise ValueError(f"file URI does not name an absolute path: {uri}")
    return path


def repo_root_for_uri(uri: str) -> str | None:
    """Return the top-level directory of the git work tree holding ``uri``."""
    try:
        path = uri_to_path(uri)
    except ValueError:
        return None
    # The parent is taken lexically; the file itself is never inspected.
    directory = path.parent
    if directory == path:
        return None
    try:
        completed = subprocess.run(
            ["git", "-C", str(directory), "rev-parse", "--show-toplevel"],
            capture_output=True,
            check=False,
        )
    except OSError:
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout.decode("utf-8", errors="replace").strip()


def relative_path(uri: str, repo_root: str) -> str | None:
    """Return the path of ``uri`` relative to ``repo_root``, component-wise."""
    try:
        path = uri_to_path(uri)
        rel = path.relative_to(repo_root)
    except ValueError:
        return None
    return str(rel) if rel.parts else ""


def resolve_file(uri: str) -> tuple[str, str] | None:
    """Return (repository root, relative path) for a document URI."""
    repo_root = repo_root_for_uri(uri)
    if repo_root is None:
        return None
    rel = relative_path(uri, repo_root)
    if rel is None:
        return None
    return repo_root, rel