"""Language server: transport, routing, lifecycle, documents and diagnostics"""

from .diagnostics import DiagnosticPublisher, diagnose, to_diagnostics
from .documents import DocumentStore, TextDocument
from .lifecycle import Lifecycle, LifecycleState
from .positions import PositionError, PositionMapper
from .protocol import (
    Notification,
    Request,
    Response,
    ResponseError,
    decode_message,
    encode_message,
)
from .router import MessageRouter
from .server import serve_stdio, serve_tcp, start_server
from .session import Session
from .transport import FramingError, MessageReader, MessageWriter, TransportWriteError
from .types import structure, unstructure

__all__ = [
    "DiagnosticPublisher",
    "diagnose",
    "to_diagnostics",
    "DocumentStore",
    "TextDocument",
    "Lifecycle",
    "LifecycleState",
    "PositionError",
    "PositionMapper",
    "Notification",
    "Request",
    "Response",
    "ResponseError",
    "decode_message",
    "encode_message",
    "MessageRouter",
    "serve_stdio",
    "serve_tcp",
    "start_server",
    "Session",
    "FramingError",
    "MessageReader",
    "MessageWriter",
    "TransportWriteError",
    "structure",
    "unstructure",
]
