"""JSON-RPC message model used on the wire"""

import json
from dataclasses import dataclass
from typing import Any, Union

from lsprotocol.types import ErrorCodes, LSPErrorCodes

RequestId = Union[int, str]


class ResponseError(Exception):
    """An error that is reported back to the client in a response"""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict) -> "ResponseError":
        return cls(
            error.get("code", ErrorCodes.InternalError),
            error.get("message", ""),
            error.get("data"),
        )


@dataclass
class Request:
    id: RequestId
    method: str
    params: Any = None


@dataclass
class Notification:
    method: str
    params: Any = None


@dataclass
class Response:
    id: RequestId | None
    result: Any = None
    error: ResponseError | None = None


Message = Union[Request, Notification, Response]


def _valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def decode_message(payload: bytes) -> Message:
    """Decode one frame payload.

    Raises ResponseError with ParseError when the payload is not JSON and
    InvalidRequest when it is JSON but not a JSON-RPC message.
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResponseError(ErrorCodes.ParseError, f"Parse error: {e}") from e

    if not isinstance(data, dict):
        raise ResponseError(ErrorCodes.InvalidRequest, "Message must be an object")

    if "method" in data:
        method = data["method"]
        if not isinstance(method, str):
            raise ResponseError(ErrorCodes.InvalidRequest, "Method must be a string")
        params = data.get("params")
        if "id" in data:
            if not _valid_id(data["id"]):
                raise ResponseError(ErrorCodes.InvalidRequest, "Invalid request id")
            return Request(id=data["id"], method=method, params=params)
        return Notification(method=method, params=params)

    if "id" in data and ("result" in data or "error" in data):
        error = data.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise ResponseError(ErrorCodes.InvalidRequest, "Invalid error object")
            return Response(id=data["id"], error=ResponseError.from_dict(error))
        return Response(id=data["id"], result=data.get("result"))

    raise ResponseError(ErrorCodes.InvalidRequest, "Not a request, notification or response")


def encode_message(message: Message) -> bytes:
    """Encode a message as a frame payload"""
    data: dict[str, Any] = {"jsonrpc": "2.0"}
    if isinstance(message, Request):
        data["id"] = message.id
        data["method"] = message.method
        if message.params is not None:
            data["params"] = message.params
    elif isinstance(message, Notification):
        data["method"] = message.method
        if message.params is not None:
            data["params"] = message.params
    else:
        data["id"] = message.id
        if message.error is not None:
            data["error"] = message.error.to_dict()
        else:
            data["result"] = message.result
    return json.dumps(data, ensure_ascii=False).encode("utf-8")
