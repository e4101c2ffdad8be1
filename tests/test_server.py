import asyncio
import subprocess

import pytest

from gitnoteslsp.parsing import LineNote
from gitnoteslsp.protocol import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    SERVER_NOT_INITIALIZED,
    encode_message,
    read_message,
)
from gitnoteslsp.server import (
    END_OF_LINE,
    GitNotesServer,
    format_hint_label,
    format_hover_markdown,
    main,
)

SHA = "abcdef1234567890abcdef1234567890abcdef12"


def _git(repo, *args):
    completed = subprocess.run(
        [
            "git",
            "-C",
            str(repo),
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def noted_repo(tmp_path):
    repo = tmp_path.resolve() / "repo"
    repo.mkdir()
    _git(repo, "init")
    (repo / "hello.txt").write_text("line one\nline two\n")
    _git(repo, "add", "hello.txt")
    _git(repo, "commit", "-m", "initial")
    sha = _git(repo, "rev-parse", "HEAD")
    _git(repo, "notes", "add", "-m", "This is a test note", sha)
    return repo, sha


class _Sink:
    def __init__(self):
        self.data = bytearray()

    def write(self, chunk):
        self.data.extend(chunk)

    async def drain(self):
        pass


async def _read_all(data):
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    messages = []
    while (message := await read_message(reader)) is not None:
        messages.append(message)
    return messages


async def _initialized_server():
    server = GitNotesServer()
    await server.handle({"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {}})
    return server


def test_hint_label_short_preview():
    note = LineNote(commit=SHA, note="Hello\nsecond line")
    assert format_hint_label(note) == " [abcdef12] Hello"


def test_hint_label_truncates_long_preview():
    note = LineNote(commit=SHA, note="x" * 61)
    label = format_hint_label(note)
    assert label == " [abcdef12] " + "x" * 57 + "..."


def test_hint_label_keeps_preview_of_limit_length():
    note = LineNote(commit=SHA, note="y" * 60)
    assert format_hint_label(note).endswith("y" * 60)


def test_hover_markdown_without_commit_info():
    note = LineNote(commit=SHA, note="Body")
    assert format_hover_markdown(note, "") == "### Git Note\n\n**Commit:** `abcdef12`\n\n\n---\n\nBody"


def test_hover_markdown_with_commit_info():
    note = LineNote(commit=SHA, note="Body")
    text = format_hover_markdown(note, "abc Info")
    assert text == "### Git Note\n\n**Commit:** `abcdef12`\n\nabc Info\n\n\n---\n\nBody"


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as info:
        main(["--help"])
    assert info.value.code == 0


@pytest.mark.asyncio
async def test_initialize_reports_capabilities():
    server = GitNotesServer()
    response = await server.handle({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    capabilities = response["result"]["capabilities"]
    assert capabilities["hoverProvider"] is True
    assert capabilities["inlayHintProvider"] is True
    assert capabilities["textDocumentSync"] == 1


@pytest.mark.asyncio
async def test_request_before_initialize_is_refused():
    server = GitNotesServer()
    response = await server.handle({"jsonrpc": "2.0", "id": 1, "method": "shutdown"})
    assert response["error"]["code"] == SERVER_NOT_INITIALIZED


@pytest.mark.asyncio
async def test_unknown_method_is_not_found():
    server = await _initialized_server()
    response = await server.handle({"jsonrpc": "2.0", "id": 2, "method": "textDocument/rename"})
    assert response["error"]["code"] == METHOD_NOT_FOUND
    assert response["id"] == 2


@pytest.mark.asyncio
async def test_second_initialize_is_invalid():
    server = await _initialized_server()
    response = await server.handle({"jsonrpc": "2.0", "id": 3, "method": "initialize", "params": {}})
    assert response["error"]["code"] == INVALID_REQUEST


@pytest.mark.asyncio
async def test_requests_after_shutdown_are_invalid():
    server = await _initialized_server()
    response = await server.handle({"jsonrpc": "2.0", "id": 4, "method": "shutdown"})
    assert response["result"] is None
    later = await server.handle({"jsonrpc": "2.0", "id": 5, "method": "textDocument/hover", "params": {}})
    assert later["error"]["code"] == INVALID_REQUEST


@pytest.mark.asyncio
async def test_notifications_get_no_reply():
    server = await _initialized_server()
    reply = await server.handle({"jsonrpc": "2.0", "method": "textDocument/didOpen", "params": {}})
    assert reply is None


@pytest.mark.asyncio
async def test_missing_params_are_invalid():
    server = await _initialized_server()
    response = await server.handle({"jsonrpc": "2.0", "id": 6, "method": "textDocument/hover", "params": {}})
    assert response["error"]["code"] == INVALID_PARAMS


@pytest.mark.asyncio
async def test_non_file_uri_gives_no_hints_or_hover():
    server = await _initialized_server()
    uri = "https://example.com/file.txt"
    assert await server.inlay_hint({"textDocument": {"uri": uri}}) is None
    hover = await server.hover({"textDocument": {"uri": uri}, "position": {"line": 0, "character": 0}})
    assert hover is None


@pytest.mark.asyncio
async def test_inlay_hint_in_real_repo(noted_repo):
    repo, sha = noted_repo
    server = GitNotesServer()
    hints = await server.inlay_hint({"textDocument": {"uri": (repo / "hello.txt").as_uri()}})
    assert len(hints) == 1
    hint = hints[0]
    assert hint["position"] == {"line": 0, "character": END_OF_LINE}
    assert hint["label"] == f" [{sha[:8]}] This is a test note"
    assert hint["tooltip"]["value"].endswith("This is a test note")
    assert hint["paddingLeft"] is True


@pytest.mark.asyncio
async def test_hover_in_real_repo(noted_repo):
    repo, sha = noted_repo
    server = GitNotesServer()
    uri = (repo / "hello.txt").as_uri()
    hover = await server.hover({"textDocument": {"uri": uri}, "position": {"line": 1, "character": 3}})
    value = hover["contents"]["value"]
    assert value.startswith(f"### Git Note\n\n**Commit:** `{sha[:8]}`\n")
    assert "Test <test@example.com>" in value
    assert value.endswith("\n\n---\n\nThis is a test note")
    assert hover["range"]["start"] == {"line": 1, "character": 0}
    assert hover["range"]["end"] == {"line": 1, "character": END_OF_LINE}


@pytest.mark.asyncio
async def test_hover_past_end_of_file_is_none(noted_repo):
    repo, _sha = noted_repo
    server = GitNotesServer()
    uri = (repo / "hello.txt").as_uri()
    hover = await server.hover({"textDocument": {"uri": uri}, "position": {"line": 10, "character": 0}})
    assert hover is None


@pytest.mark.asyncio
async def test_serve_session():
    incoming = b"".join(
        encode_message(message)
        for message in [
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "initialized", "params": {}},
            {"jsonrpc": "2.0", "id": 2, "method": "shutdown"},
            {"jsonrpc": "2.0", "method": "exit"},
            {"jsonrpc": "2.0", "id": 3, "method": "shutdown"},
        ]
    )
    reader = asyncio.StreamReader()
    reader.feed_data(incoming)
    reader.feed_eof()
    sink = _Sink()

    await GitNotesServer().serve(reader, sink)

    messages = await _read_all(bytes(sink.data))
    assert len(messages) == 3
    assert messages[0]["id"] == 1 and "capabilities" in messages[0]["result"]
    assert messages[1]["method"] == "window/logMessage"
    assert messages[1]["params"] == {"type": 3, "message": "git-notes-lsp initialized"}
    assert messages[2] == {"jsonrpc": "2.0", "id": 2, "result": None}


@pytest.mark.asyncio
async def test_serve_reports_unparseable_message_and_continues():
    incoming = b"Content-Length: 3\r\n\r\n{x}" + encode_message(
        {"jsonrpc": "2.0", "id": 9, "method": "initialize", "params": {}}
    )
    reader = asyncio.StreamReader()
    reader.feed_data(incoming)
    reader.feed_eof()
    sink = _Sink()

    await GitNotesServer().serve(reader, sink)

    messages = await _read_all(bytes(sink.data))
    assert messages[0]["id"] is None and messages[0]["error"]["code"] == -32700
    assert messages[1]["id"] == 9 and "result" in messages[1]