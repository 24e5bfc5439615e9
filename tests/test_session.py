"""End-to-end tests driving a session over in-memory streams"""

import asyncio

import pytest
from lsprotocol.types import DiagnosticSeverity, ErrorCodes, LSPErrorCodes

from wordguard.analyzer import Analyzer, Finding
from wordguard.config import Config
from wordguard.lsp.lifecycle import LifecycleState
from wordguard.lsp.session import Session
from conftest import CaptureWriter, did_change, did_open, frame, make_reader, notification, request

URI = "file:///a.txt"

INITIALIZE_PARAMS = {"processId": None, "capabilities": {}}

HANDSHAKE = [
    request(1, "initialize", INITIALIZE_PARAMS),
    notification("initialized", {}),
]
GOODBYE = [request(99, "shutdown"), notification("exit")]


async def run_session(messages, config=None, analyzer=None, writer=None, setup=None):
    reader = make_reader(*(frame(m) for m in messages))
    writer = writer or CaptureWriter()
    session = Session(reader, writer, config=config, analyzer=analyzer)
    if setup:
        setup(session)
    code = await session.run()
    return code, writer.messages(), session


def responses(messages):
    return {m["id"]: m for m in messages if "id" in m and "method" not in m}


def publishes(messages, uri=URI):
    return [
        m["params"] for m in messages
        if m.get("method") == "textDocument/publishDiagnostics" and m["params"]["uri"] == uri
    ]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_result(self):
        code, messages, _ = await run_session(HANDSHAKE + GOODBYE)

        result = responses(messages)[1]["result"]
        assert result["capabilities"]["textDocumentSync"] == 1
        assert result["capabilities"]["experimental"] == {"diagnosticProvider": "push"}
        assert result["serverInfo"]["name"] == "wordguard"
        assert code == 0

    @pytest.mark.asyncio
    async def test_shutdown_then_exit_is_status_0(self):
        code, messages, session = await run_session(HANDSHAKE + GOODBYE)

        assert responses(messages)[99] == {"jsonrpc": "2.0", "id": 99, "result": None}
        assert session.lifecycle.state is LifecycleState.EXITED
        assert code == 0

    @pytest.mark.asyncio
    async def test_exit_without_shutdown_is_status_1(self):
        code, messages, _ = await run_session([notification("exit")])
        assert code == 1
        assert messages == []

    @pytest.mark.asyncio
    async def test_exit_after_initialize_without_shutdown(self):
        code, _, _ = await run_session(HANDSHAKE + [notification("exit")])
        assert code == 1

    @pytest.mark.asyncio
    async def test_request_before_initialize_then_initialize(self):
        code, messages, _ = await run_session([
            request(1, "textDocument/hover", {}),
            request(2, "initialize", INITIALIZE_PARAMS),
            notification("initialized"),
            request(3, "shutdown"),
            notification("exit"),
        ])

        by_id = responses(messages)
        assert by_id[1]["error"]["code"] == ErrorCodes.ServerNotInitialized
        assert "capabilities" in by_id[2]["result"]
        assert by_id[3]["result"] is None
        assert code == 0

    @pytest.mark.asyncio
    async def test_notifications_before_initialize_are_dropped(self):
        _, messages, session = await run_session([
            did_open(URI, "badword1"),
            *HANDSHAKE,
            *GOODBYE,
        ])
        assert publishes(messages) == []
        assert URI not in session.documents

    @pytest.mark.asyncio
    async def test_second_initialize_rejected(self):
        _, messages, _ = await run_session(
            HANDSHAKE + [request(2, "initialize", INITIALIZE_PARAMS)] + GOODBYE
        )
        assert responses(messages)[2]["error"]["code"] == ErrorCodes.InvalidRequest

    @pytest.mark.asyncio
    async def test_requests_after_shutdown_rejected(self):
        _, messages, _ = await run_session(HANDSHAKE + [
            request(2, "shutdown"),
            request(3, "shutdown"),
            notification("exit"),
        ])
        assert responses(messages)[3]["error"]["code"] == ErrorCodes.InvalidRequest

    @pytest.mark.asyncio
    async def test_end_of_stream_after_shutdown(self):
        code, _, _ = await run_session(HANDSHAKE + [request(2, "shutdown")])
        assert code == 0

    @pytest.mark.asyncio
    async def test_end_of_stream_without_shutdown(self):
        code, _, _ = await run_session(HANDSHAKE)
        assert code == 1

    @pytest.mark.asyncio
    async def test_auto_activate_without_initialized(self):
        config = Config()
        config.server.auto_activate = True
        _, messages, _ = await run_session(
            [request(1, "initialize", INITIALIZE_PARAMS), did_open(URI, "badword1")] + GOODBYE,
            config=config,
        )
        [published] = publishes(messages)
        assert len(published["diagnostics"]) == 1


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_two_findings_on_two_lines(self):
        _, messages, _ = await run_session(
            HANDSHAKE + [did_open(URI, "foo badword1 bar\nbadword2 baz")] + GOODBYE
        )

        [published] = publishes(messages)
        assert published["version"] == 1
        diagnostics = published["diagnostics"]
        assert [d["range"] for d in diagnostics] == [
            {"start": {"line": 0, "character": 4}, "end": {"line": 0, "character": 12}},
            {"start": {"line": 1, "character": 0}, "end": {"line": 1, "character": 8}},
        ]
        assert [d["message"] for d in diagnostics] == ["badword1", "badword2"]
        assert all(d["severity"] == DiagnosticSeverity.Warning for d in diagnostics)
        assert all(d["source"] == "wordguard" for d in diagnostics)
        assert all(d["code"] == "faulty-word" for d in diagnostics)

    @pytest.mark.asyncio
    async def test_clean_change_publishes_empty_list(self):
        _, messages, _ = await run_session(HANDSHAKE + [
            did_open(URI, "foo badword1 bar\nbadword2 baz"),
            did_change(URI, "clean text only", 2),
        ] + GOODBYE)

        published = publishes(messages)
        assert len(published) == 2
        assert len(published[0]["diagnostics"]) == 2
        assert published[1] == {"uri": URI, "version": 2, "diagnostics": []}

    @pytest.mark.asyncio
    async def test_one_publish_per_open_and_change(self):
        _, messages, _ = await run_session(HANDSHAKE + [
            did_open(URI, "badword1", 1),
            did_change(URI, "badword1 badword1", 2),
            did_change(URI, "badword2", 3),
        ] + GOODBYE)

        published = publishes(messages)
        assert [p["version"] for p in published] == [1, 2, 3]
        assert [len(p["diagnostics"]) for p in published] == [1, 2, 1]

    @pytest.mark.asyncio
    async def test_stale_change_not_published(self):
        _, messages, session = await run_session(HANDSHAKE + [
            did_open(URI, "clean", 5),
            did_change(URI, "badword1", 5),
        ] + GOODBYE)

        assert len(publishes(messages)) == 1
        assert session.documents.get(URI).text == "clean"

    @pytest.mark.asyncio
    async def test_events_for_unopened_document(self):
        code, messages, _ = await run_session(HANDSHAKE + [
            did_change(URI, "badword1", 2),
            notification("textDocument/didSave", {"textDocument": {"uri": URI}}),
            notification("textDocument/didClose", {"textDocument": {"uri": URI}}),
        ] + GOODBYE)

        assert publishes(messages) == []
        assert code == 0

    @pytest.mark.asyncio
    async def test_close_clears_diagnostics(self):
        _, messages, session = await run_session(HANDSHAKE + [
            did_open(URI, "badword1"),
            notification("textDocument/didClose", {"textDocument": {"uri": URI}}),
        ] + GOODBYE)

        published = publishes(messages)
        assert published[-1] == {"uri": URI, "diagnostics": []}
        assert URI not in session.documents

    @pytest.mark.asyncio
    async def test_save_keeps_document(self):
        _, messages, session = await run_session(HANDSHAKE + [
            did_open(URI, "badword1"),
            notification("textDocument/didSave", {"textDocument": {"uri": URI}}),
        ] + GOODBYE)

        assert len(publishes(messages)) == 1
        assert session.documents.get(URI).text == "badword1"

    @pytest.mark.asyncio
    async def test_incremental_change_rejected(self):
        change = notification("textDocument/didChange", {
            "textDocument": {"uri": URI, "version": 2},
            "contentChanges": [{
                "range": {"start": {"line": 0, "character": 0}, "end": {"line": 0, "character": 1}},
                "text": "x",
            }],
        })
        _, messages, session = await run_session(HANDSHAKE + [did_open(URI, "abc"), change] + GOODBYE)

        assert len(publishes(messages)) == 1
        assert session.documents.get(URI).text == "abc"

    @pytest.mark.asyncio
    async def test_astral_characters_shift_character_offsets(self):
        _, messages, _ = await run_session(
            HANDSHAKE + [did_open(URI, "\U0001F600 badword1")] + GOODBYE
        )
        [diagnostic] = publishes(messages)[0]["diagnostics"]
        assert diagnostic["range"]["start"] == {"line": 0, "character": 3}
        assert diagnostic["range"]["end"] == {"line": 0, "character": 11}

    @pytest.mark.asyncio
    async def test_analyzer_failure_skips_publish(self):
        class Exploding(Analyzer):
            def scan(self, text):
                if "boom" in text:
                    raise RuntimeError("analyzer exploded")
                return [Finding(0, 1, DiagnosticSeverity.Error, "first char")]

        code, messages, _ = await run_session(HANDSHAKE + [
            did_open(URI, "fine", 1),
            did_change(URI, "boom", 2),
            did_change(URI, "fine again", 3),
        ] + GOODBYE, analyzer=Exploding())

        assert [p["version"] for p in publishes(messages)] == [1, 3]
        assert code == 0

    @pytest.mark.asyncio
    async def test_out_of_range_finding_is_an_analyzer_failure(self):
        class OutOfRange(Analyzer):
            def scan(self, text):
                return [Finding(0, len(text) + 5, DiagnosticSeverity.Error, "too far")]

        _, messages, _ = await run_session(
            HANDSHAKE + [did_open(URI, "short")] + GOODBYE, analyzer=OutOfRange()
        )
        assert publishes(messages) == []

    @pytest.mark.asyncio
    async def test_configuration_change_republishes(self):
        _, messages, _ = await run_session(HANDSHAKE + [
            did_open(URI, "custom word here"),
            notification("workspace/didChangeConfiguration", {
                "settings": {"wordguard": {"words": ["custom"]}},
            }),
        ] + GOODBYE)

        published = publishes(messages)
        assert [len(p["diagnostics"]) for p in published] == [0, 1]
        assert published[1]["diagnostics"][0]["message"] == "custom"

    @pytest.mark.asyncio
    async def test_invalid_configuration_ignored(self):
        _, messages, session = await run_session(HANDSHAKE + [
            notification("workspace/didChangeConfiguration", {
                "settings": {"wordguard": {"words": [""]}},
            }),
            did_open(URI, "badword1"),
        ] + GOODBYE)

        assert session.analyzer_config.words == ["badword1", "badword2"]
        assert len(publishes(messages)[0]["diagnostics"]) == 1


class TestRouting:
    @pytest.mark.asyncio
    async def test_unknown_request_method(self):
        _, messages, _ = await run_session(HANDSHAKE + [request(5, "textDocument/hover", {})] + GOODBYE)
        assert responses(messages)[5]["error"]["code"] == ErrorCodes.MethodNotFound

    @pytest.mark.asyncio
    async def test_unknown_notification_tolerated(self):
        code, messages, _ = await run_session(
            HANDSHAKE + [notification("$/setTrace", {"value": "off"})] + GOODBYE
        )
        assert code == 0
        assert set(responses(messages)) == {1, 99}

    @pytest.mark.asyncio
    async def test_invalid_json_gets_parse_error(self):
        reader = make_reader(frame(b"{oops"), *(frame(m) for m in HANDSHAKE + GOODBYE))
        writer = CaptureWriter()
        code = await Session(reader, writer).run()

        error = writer.messages()[0]
        assert error["id"] is None
        assert error["error"]["code"] == ErrorCodes.ParseError
        assert code == 0

    @pytest.mark.asyncio
    async def test_invalid_initialize_params_then_valid_initialize(self):
        bad = {"processId": "not-a-pid", "capabilities": {}}
        code, messages, _ = await run_session([
            request(1, "initialize", bad),
            request(2, "initialize", INITIALIZE_PARAMS),
            notification("initialized"),
            did_open(URI, "badword1"),
            *GOODBYE,
        ])

        by_id = responses(messages)
        assert by_id[1]["error"]["code"] == ErrorCodes.InvalidParams
        assert "capabilities" in by_id[2]["result"]
        [published] = publishes(messages)
        assert len(published["diagnostics"]) == 1
        assert code == 0

    @pytest.mark.asyncio
    async def test_failed_initialize_does_not_activate(self):
        _, messages, session = await run_session([
            request(1, "initialize", {"processId": "not-a-pid", "capabilities": {}}),
            notification("initialized"),
            did_open(URI, "badword1"),
            request(2, "shutdown"),
        ])

        by_id = responses(messages)
        assert by_id[1]["error"]["code"] == ErrorCodes.InvalidParams
        assert by_id[2]["error"]["code"] == ErrorCodes.ServerNotInitialized
        assert publishes(messages) == []
        assert URI not in session.documents
        assert session.lifecycle.state is LifecycleState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_initialize_without_capabilities_is_invalid_params(self):
        _, messages, session = await run_session([request(1, "initialize", {"processId": 1})])
        assert responses(messages)[1]["error"]["code"] == ErrorCodes.InvalidParams
        assert session.lifecycle.state is LifecycleState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_cancel_request(self):
        def setup(session):
            async def forever(params):
                await asyncio.Event().wait()

            session.router.on_request("test/forever", forever)

        code, messages, _ = await run_session(HANDSHAKE + [
            request(7, "test/forever"),
            notification("$/cancelRequest", {"id": 7}),
        ] + GOODBYE, setup=setup)

        by_id = responses(messages)
        assert by_id[7]["error"]["code"] == LSPErrorCodes.RequestCancelled
        assert by_id[99]["result"] is None
        assert code == 0

    @pytest.mark.asyncio
    async def test_client_response_resolves_server_request(self):
        results = []

        def setup(session):
            async def ask(params):
                results.append(await session.send_request("workspace/configuration", {"items": []}))

            session.router.on_notification("test/ask", ask)

        reader = make_reader(eof=False)
        writer = CaptureWriter()
        session = Session(reader, writer)
        setup(session)
        running = asyncio.create_task(session.run())

        for message in HANDSHAKE + [notification("test/ask")]:
            reader.feed_data(frame(message))
        for _ in range(500):
            if any(m.get("method") == "workspace/configuration" for m in writer.messages()):
                break
            await asyncio.sleep(0.01)

        outbound = next(m for m in writer.messages() if m.get("method") == "workspace/configuration")
        reader.feed_data(frame({"jsonrpc": "2.0", "id": outbound["id"], "result": [{"a": 1}]}))
        for message in GOODBYE:
            reader.feed_data(frame(message))
        reader.feed_eof()

        assert await running == 0
        assert results == [[{"a": 1}]]


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_framing_error_ends_session(self):
        reader = make_reader(frame(HANDSHAKE[0]), b"Content-Length: nope\r\n\r\n{}")
        writer = CaptureWriter()
        code = await Session(reader, writer).run()
        assert code == 1

    @pytest.mark.asyncio
    async def test_write_failure_ends_session(self):
        code, messages, _ = await run_session(
            HANDSHAKE + [did_open(URI, "badword1")] + GOODBYE,
            writer=CaptureWriter(fail=True),
        )
        assert code == 1
        assert messages == []

    @pytest.mark.asyncio
    async def test_stuck_handler_cancelled_at_session_end(self):
        config = Config()
        config.server.exit_grace_period = 0.05

        def setup(session):
            async def forever(params):
                await asyncio.Event().wait()

            session.router.on_request("test/forever", forever)

        code, messages, session = await run_session(
            HANDSHAKE + [request(7, "test/forever"), notification("exit")],
            config=config,
            setup=setup,
        )
        assert code == 1
        assert 7 not in responses(messages)
        assert not session.router.in_flight
