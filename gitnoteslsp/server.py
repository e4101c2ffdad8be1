"""A language server showing git notes as inlay hints and hovers."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from .git import NotesRepository, run_git
from .parsing import LineNote, is_valid_sha
from .paths import resolve_file
from .protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    SERVER_NOT_INITIALIZED,
    JsonRpcError,
    make_error,
    make_notification,
    make_response,
    read_message,
    write_message,
)

SERVER_NAME = "git-notes-lsp"
HINT_PREVIEW_LIMIT = 60
HINT_PREVIEW_KEEP = 57
END_OF_LINE = 2**32 - 1
MESSAGE_TYPE_INFO = 3
TEXT_DOCUMENT_SYNC_FULL = 1
_COMMIT_INFO_FORMAT = "--format=%h %an <%ae>%n%s"


def format_hint_label(note: LineNote) -> str:
    """Return the inlay hint text: short commit id and first line of the note."""
    short = note.short_sha()
    preview = note.note.split("\n", 1)[0].removesuffix("\r")
    if len(preview) > HINT_PREVIEW_LIMIT:
        return f" [{short}] {preview[:HINT_PREVIEW_KEEP]}..."
    return f" [{short}] {preview}"


def format_hover_markdown(note: LineNote, commit_info: str) -> str:
    """Return the hover text for a note, with optional commit details."""
    details = f"\n{commit_info}\n" if commit_info else ""
    return (
        f"### Git Note\n\n**Commit:** `{note.short_sha()}`\n{details}\n\n---\n\n{note.note}"
    )


def _hint(line: int, note: LineNote) -> dict[str, Any]:
    return {
        "position": {"line": line, "character": END_OF_LINE},
        "label": format_hint_label(note),
        "tooltip": {
            "kind": "markdown",
            "value": f"**Git Note** (`{note.short_sha()}`)\n\n---\n\n{note.note}",
        },
        "paddingLeft": True,
    }


def _document_uri(params: Any) -> str:
    try:
        uri = params["textDocument"]["uri"]
    except (KeyError, TypeError) as exc:
        raise JsonRpcError(INVALID_PARAMS, "missing textDocument.uri") from exc
    if not isinstance(uri, str):
        raise JsonRpcError(INVALID_PARAMS, "textDocument.uri must be a string")
    return uri


def _position_line(params: Any) -> int:
    try:
        line = params["position"]["line"]
    except (KeyError, TypeError) as exc:
        raise JsonRpcError(INVALID_PARAMS, "missing position.line") from exc
    if isinstance(line, bool) or not isinstance(line, int) or not 0 <= line <= END_OF_LINE:
        raise JsonRpcError(INVALID_PARAMS, "position.line must be an unsigned integer")
    return line


class GitNotesServer:
    """Handles language server requests over a single connection."""

    def __init__(self, repository: NotesRepository | None = None) -> None:
        self.repository = repository if repository is not None else NotesRepository()
        self._initialized = False
        self._shut_down = False
        self._exit_requested = False
        self._outbox: list[dict[str, Any]] = []

    async def initialize(self, params: Any) -> dict[str, Any]:
        """Report the server's capabilities."""
        return {
            "capabilities": {
                "inlayHintProvider": True,
                "hoverProvider": True,
                "textDocumentSync": TEXT_DOCUMENT_SYNC_FULL,
            }
        }

    async def initialized(self, params: Any) -> None:
        """Log to the client that the server is ready."""
        self._outbox.append(
            make_notification(
                "window/logMessage",
                {"type": MESSAGE_TYPE_INFO, "message": f"{SERVER_NAME} initialized"},
            )
        )

    async def shutdown(self, params: Any) -> None:
        """Mark the server as shut down; later requests are refused."""
        self._shut_down = True

    async def inlay_hint(self, params: Any) -> list[dict[str, Any]] | None:
        """Return one hint per annotated commit, on the first line it blames."""
        resolved = resolve_file(_document_uri(params))
        if resolved is None:
            return None
        repo_root, rel_path = resolved
        line_notes = await self.repository.file_line_notes(repo_root, rel_path)
        return [_hint(line, note) for line, note in line_notes]

    async def hover(self, params: Any) -> dict[str, Any] | None:
        """Return the note for the commit that last changed the hovered line."""
        uri = _document_uri(params)
        line = _position_line(params)
        resolved = resolve_file(uri)
        if resolved is None:
            return None
        repo_root, rel_path = resolved

        note = await self.repository.note_for_line(repo_root, rel_path, line)
        if note is None or not is_valid_sha(note.commit):
            return None

        commit_info = await run_git(repo_root, "log", _COMMIT_INFO_FORMAT, "-1", note.commit) or ""
        return {
            "contents": {"kind": "markdown", "value": format_hover_markdown(note, commit_info)},
            "range": {
                "start": {"line": line, "character": 0},
                "end": {"line": line, "character": END_OF_LINE},
            },
        }

    async def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Process one incoming message and return the reply, if one is due."""
        method = message.get("method")
        is_request = "id" in message
        request_id = message.get("id")

        if not isinstance(method, str):
            if is_request and ("result" in message or "error" in message):
                return None
            if is_request:
                return make_error(request_id, JsonRpcError(INVALID_REQUEST, "missing method"))
            return None

        params = message.get("params")
        if not is_request:
            await self._notification(method, params)
            return None

        try:
            result = await self._request(method, params)
        except JsonRpcError as exc:
            return make_error(request_id, exc)
        except Exception as exc:  # noqa: BLE001 - reported to the client
            return make_error(request_id, JsonRpcError(INTERNAL_ERROR, str(exc)))
        return make_response(request_id, result)

    async def _request(self, method: str, params: Any) -> Any:
        if self._shut_down:
            raise JsonRpcError(INVALID_REQUEST, "server has been shut down")
        if method == "initialize":
            if self._initialized:
                raise JsonRpcError(INVALID_REQUEST, "server is already initialized")
            result = await self.initialize(params)
            self._initialized = True
            return result
        if not self._initialized:
            raise JsonRpcError(SERVER_NOT_INITIALIZED, "server is not initialized")

        handlers = {
            "shutdown": self.shutdown,
            "textDocument/inlayHint": self.inlay_hint,
            "textDocument/hover": self.hover,
        }
        handler = handlers.get(method)
        if handler is None:
            raise JsonRpcError(METHOD_NOT_FOUND, f"method not found: {method}")
        return await handler(params)

    async def _notification(self, method: str, params: Any) -> None:
        if method == "exit":
            self._exit_requested = True
        elif method == "initialized" and self._initialized:
            await self.initialized(params)

    async def serve(self, reader: asyncio.StreamReader, writer: Any) -> None:
        """Answer messages from ``reader`` on ``writer`` until exit or end of stream."""
        while not self._exit_requested:
            try:
                message = await read_message(reader)
            except JsonRpcError as exc:
                await write_message(writer, make_error(None, exc))
                continue
            if message is None:
                break
            response = await self.handle(message)
            pending, self._outbox = self._outbox, []
            for notification in pending:
                await write_message(writer, notification)
            if response is not None:
                await write_message(writer, response)


class _BinaryWriter:
    def __init__(self, stream: Any) -> None:
        self._stream = stream

    def write(self, data: bytes) -> None:
        self._stream.write(data)

    async def drain(self) -> None:
        self._stream.flush()


async def _serve_stdio() -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer)
    await GitNotesServer().serve(reader, _BinaryWriter(sys.stdout.buffer))


def main(argv: list[str] | None = None) -> int:
    """Run the language server on standard input and output."""
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="Language server that shows git notes for the lines of a file.",
    )
    parser.parse_args(argv)
    asyncio.run(_serve_stdio())
    return 0


if __name__ == "__main__":
    sys.exit(main())