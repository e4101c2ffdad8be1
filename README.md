# gitnoteslsp

A small language server that brings `git notes` into your editor. For each
file you open inside a git repository, it runs `git blame` on the file. It
then matches each line's commit against the repository's notes and shows:

- **An inlay hint** at the end of the first line that each annotated commit
  touched, for example ` [abcdef12] Reviewed: safe to ship`. The hint gives
  the short commit id and the first line of the note. If that first line is
  longer than 60 characters, it is cut to 57 characters and followed by
  `...`. The hint's tooltip shows the whole note.
- **A hover** on any line whose commit has a note. The hover shows the full
  note together with the output of
  `git log --format="%h %an <%ae>%n%s" -1 <commit>`. That output is the
  commit's short id, author name and e-mail, and subject.

Notes are read again at most every 10 seconds. A single cached result is
kept, for whichever repository was read last. Blame results are cached for
5 seconds per repository and file, for up to 50 files. Once that limit is
reached, the oldest entry is dropped.

## Requirements

- Python 3.10 or newer
- `git` on your `PATH`

## Installation

```sh
pip install .
```

## Running

The server speaks the Language Server Protocol over standard input and
output:

```sh
git-notes-lsp
```

You can also start it with `python -m gitnoteslsp.server`. It takes no
options apart from `--help`.

To use it, set your editor's language server command to `git-notes-lsp`. The
server advertises three capabilities: inlay hints, hover and full document
sync.

## Adding notes

Attach a note to a commit with git itself:

```sh
git notes add -m "Reviewed: safe to ship" <commit>
```

Every line that blame assigns to that commit now carries the note.

## Using the pieces directly

- `gitnoteslsp.parsing` parses the output of git and does no I/O:
  - `parse_notes_list`
  - `parse_cat_file_batch`
  - `parse_blame_porcelain`
  - `match_notes_to_lines`
  - `is_valid_sha`
  - the `LineNote` dataclass
- `gitnoteslsp.paths` turns `file:` URIs into a repository root and a
  repository-relative path. The functions are `uri_to_path`,
  `repo_root_for_uri`, `relative_path` and `resolve_file`.
- `gitnoteslsp.git` runs git asynchronously. It provides `run_git`,
  `fetch_all_notes` and `fetch_blame`. `NotesRepository` adds the caches
  described above.
- `gitnoteslsp.protocol` frames JSON-RPC messages with `Content-Length`
  headers.
- `gitnoteslsp.server.GitNotesServer` handles the requests.

```python
import asyncio

from gitnoteslsp.git import NotesRepository

async def show(repo_root: str, path: str) -> None:
    repository = NotesRepository()
    for line, note in await repository.file_line_notes(repo_root, path):
        print(line + 1, note.short_sha(), note.note)

asyncio.run(show("/path/to/repo", "src/app.py"))
```

## What it does not do

- **Only a few requests.** The server answers `initialize`, `shutdown`,
  `textDocument/inlayHint` and `textDocument/hover`. It acts on the
  `initialized` and `exit` notifications. Any other request is answered
  with "method not found".
- **No tracking of open documents.** Document notifications such as
  `didOpen` or `didChange` are ignored, even though full sync is
  advertised. Blame runs on the file as it is on disk, so unsaved edits are
  not taken into account.
- **Local files only.** Only `file:` URIs on the local host are handled.
- **No editor plug-in.** The package does not install or download itself
  into an editor. You point your editor at the `git-notes-lsp` command
  yourself.

## Running the tests

```sh
pip install ".[test]"
pytest
```