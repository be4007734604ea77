from __future__ import annotations

import json

import pytest

from conftest import FakeClientSession, make_client
from headless_editor_conformance.errors import ScenarioFailure, SessionError, TransportError
from headless_editor_conformance.schema import text_result
from headless_editor_conformance.session import SessionController, SessionState
from headless_editor_conformance.tool_inputs import InsertOperation


def _controller_with(responder) -> SessionController:
    return SessionController(make_client(FakeClientSession(responder=responder)))


@pytest.mark.asyncio
async def test_start_session_tracks_open_session(controller, fake_session, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    assert session.session_id
    assert session.file_path == fixture_paths.component_file
    assert session.language_id == "typescript"
    assert controller.state_of(session.session_id) is SessionState.OPEN
    assert controller.open_sessions() == [session]
    assert fake_session.calls[0] == (
        "start_session",
        {"filePath": fixture_paths.component_file, "languageId": "typescript"},
    )


@pytest.mark.asyncio
async def test_start_session_ids_are_distinct(controller, fixture_paths):
    first = await controller.start_session(fixture_paths.component_file, "typescript")
    second = await controller.start_session(fixture_paths.component_file, "typescript")

    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_start_session_without_id_is_session_error(fixture_paths):
    controller = _controller_with(lambda name, args: text_result(json.dumps({"success": True})))

    with pytest.raises(SessionError, match="Session ID not found"):
        await controller.start_session(fixture_paths.component_file, "typescript")

    assert controller.open_sessions() == []


@pytest.mark.asyncio
async def test_start_session_with_empty_id_is_session_error(fixture_paths):
    controller = _controller_with(
        lambda name, args: text_result(json.dumps({"success": True, "sessionId": ""}))
    )

    with pytest.raises(SessionError):
        await controller.start_session(fixture_paths.component_file, "typescript")


@pytest.mark.asyncio
async def test_failed_start_session_raises_scenario_failure(controller, tmp_path):
    with pytest.raises(ScenarioFailure) as excinfo:
        await controller.start_session(str(tmp_path / "missing.ts"), "typescript")

    assert excinfo.value.report.get("error").startswith("File not found")


@pytest.mark.asyncio
async def test_edit_code_returns_outcome_and_keeps_session_open(controller, fake_session, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    outcome = await controller.insert(session.session_id, "\n  // comment\n", line=5, character=100)

    assert outcome.ok is True
    lines = outcome.get("content").split("\n")
    assert lines[5] == "  variant?: 'primary' | 'secondary';"
    assert lines[6] == "  // comment"
    assert controller.state_of(session.session_id) is SessionState.OPEN


@pytest.mark.asyncio
async def test_out_of_range_edit_is_a_failed_outcome(controller, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")
    operation = InsertOperation(content="x", position={"line": 500, "character": 0})

    outcome = await controller.edit_code(session.session_id, operation)

    assert outcome.ok is False
    assert "out of range" in outcome.reason
    assert controller.state_of(session.session_id) is SessionState.OPEN


@pytest.mark.asyncio
async def test_negative_position_is_sent_and_fails_remotely(controller, fake_session, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    outcome = await controller.insert(session.session_id, "x", line=-1, character=0)

    assert outcome.ok is False
    assert outcome.get("error") == "Line -1 is out of range"
    assert fake_session.calls[-1][1]["operation"]["position"] == {"line": -1, "character": 0}
    assert controller.session(session.session_id).is_open


@pytest.mark.asyncio
async def test_edit_unknown_session_fails_without_raising(controller):
    outcome = await controller.insert("never-opened", "x", line=0, character=0)

    assert outcome.ok is False
    assert outcome.get("error") == "Session not found: never-opened"


@pytest.mark.asyncio
async def test_close_session_twice_reports_second_failure(controller, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    first = await controller.close_session(session.session_id)
    second = await controller.close_session(session.session_id)

    assert first.ok is True
    assert second.ok is False
    assert controller.state_of(session.session_id) is SessionState.CLOSED
    assert controller.open_sessions() == []


@pytest.mark.asyncio
async def test_close_without_session_id_is_noop(controller, fake_session):
    assert await controller.close_session(None) is None
    assert await controller.close_session("") is None
    assert fake_session.calls == []
    assert controller.state_of(None) is SessionState.UNOPENED


@pytest.mark.asyncio
async def test_close_session_folds_transport_errors(controller, fake_session, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    def broken(name, args):
        raise TransportError("pipe closed")

    fake_session.responder = broken

    outcome = await controller.close_session(session.session_id)

    assert outcome.ok is False
    assert "pipe closed" in outcome.reason
    assert controller.state_of(session.session_id) is SessionState.CLOSED


@pytest.mark.asyncio
async def test_validate_code_returns_buffer(controller, fixture_paths):
    session = await controller.start_session(fixture_paths.component_file, "typescript")

    outcome = await controller.validate_code(session.session_id)

    assert outcome.ok is True
    assert outcome.get("diagnostics") == []


@pytest.mark.asyncio
async def test_open_session_closes_on_error(controller, fake_session, fixture_paths):
    with pytest.raises(RuntimeError, match="scenario blew up"):
        async with controller.open_session(fixture_paths.component_file, "typescript") as session:
            raise RuntimeError("scenario blew up")

    assert fake_session.tool_names() == ["start_session", "close_session"]
    assert session.state is SessionState.CLOSED
