"""Pytest configuration and shared helpers"""

import asyncio
import json

import pytest


def frame(message) -> bytes:
    """Encode a message (dict or raw bytes) as a Content-Length frame"""
    payload = message if isinstance(message, bytes) else json.dumps(message).encode("utf-8")
    return f"Content-Length: {len(payload)}\r\n\r\n".encode("ascii") + payload


def parse_frames(data: bytes) -> list[dict]:
    messages = []
    while data:
        header, _, rest = data.partition(b"\r\n\r\n")
        length = int(header.split(b":", 1)[1])
        messages.append(json.loads(rest[:length].decode("utf-8")))
        data = rest[length:]
    return messages


class CaptureWriter:
    """Stands in for an asyncio.StreamWriter and records what was written"""

    def __init__(self, fail: bool = False):
        self.buffer = bytearray()
        self.fail = fail

    def write(self, data: bytes) -> None:
        if self.fail:
            raise ConnectionResetError("client went away")
        self.buffer += data

    async def drain(self) -> None:
        pass

    def messages(self) -> list[dict]:
        return parse_frames(bytes(self.buffer))


def make_reader(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return reader


def request(id, method, params=None) -> dict:
    message = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def notification(method, params=None) -> dict:
    message = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    return message


def did_open(uri, text, version=1) -> dict:
    return notification("textDocument/didOpen", {
        "textDocument": {"uri": uri, "languageId": "plaintext", "version": version, "text": text},
    })


def did_change(uri, text, version) -> dict:
    return notification("textDocument/didChange", {
        "textDocument": {"uri": uri, "version": version},
        "contentChanges": [{"text": text}],
    })


@pytest.fixture
def capture_writer():
    return CaptureWriter()
