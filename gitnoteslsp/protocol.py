"""JSON-RPC messages framed with the language server base protocol."""

from __future__ import annotations

import asyncio
import json
from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002

_JSONRPC_VERSION = "2.0"


class JsonRpcError(Exception):
    """An error that is reported to the peer as a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-RPC error object."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def encode_message(message: dict[str, Any]) -> bytes:
    """Serialise ``message`` with its ``Content-Length`` header."""
    body = json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


async def read_message(stream: asyncio.StreamReader) -> dict[str, Any] | None:
    """Read one framed message; return None at a clean end of stream.

    Raises JsonRpcError for a malformed header, a truncated body or a body
    that is not a JSON object.
    """
    content_length: int | None = None
    seen_header = False

    while True:
        line = await stream.readline()
        if not line:
            if seen_header:
                raise JsonRpcError(PARSE_ERROR, "unexpected end of stream in message header")
            return None
        if line in (b"\r\n", b"\n"):
            if not seen_header:
                continue
            break
        seen_header = True
        name, sep, value = line.decode("ascii", errors="replace").partition(":")
        if not sep:
            raise JsonRpcError(PARSE_ERROR, f"malformed header line: {line!r}")
        if name.strip().lower() == "content-length":
            try:
                content_length = int(value.strip())
            except ValueError as exc:
                raise JsonRpcError(PARSE_ERROR, f"invalid Content-Length: {value.strip()!r}") from exc
            if content_length < 0:
                raise JsonRpcError(PARSE_ERROR, f"invalid Content-Length: {content_length}")

    if content_length is None:
        raise JsonRpcError(PARSE_ERROR, "missing Content-Length header")

    try:
        body = await stream.readexactly(content_length)
    except asyncio.IncompleteReadError as exc:
        raise JsonRpcError(PARSE_ERROR, "unexpected end of stream in message body") from exc

    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise JsonRpcError(PARSE_ERROR, f"invalid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise JsonRpcError(INVALID_REQUEST, "message is not a JSON object")
    return message


async def write_message(stream: Any, message: dict[str, Any]) -> None:
    """Write ``message`` to a stream writer that has ``write`` and ``drain``."""
    stream.write(encode_message(message))
    await stream.drain()


def make_response(request_id: Any, result: Any) -> dict[str, Any]:
    """Build a successful response to the request ``request_id``."""
    return {"jsonrpc": _JSONRPC_VERSION, "id": request_id, "result": result}


def make_error(request_id: Any, error: JsonRpcError) -> dict[str, Any]:
    """Build an error response to the request ``request_id``."""
    return {"jsonrpc": _JSONRPC_VERSION, "id": request_id, "error": error.to_dict()}


def make_notification(method: str, params: Any) -> dict[str, Any]:
    """Build a notification, which expects no reply."""
    return {"jsonrpc": _JSONRPC_VERSION, "method": method, "params": params}