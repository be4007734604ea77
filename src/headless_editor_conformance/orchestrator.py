"""Sequences conformance scenarios against one editing session and always cleans up."""

from __future__ import annotations

import logging
import os
import shutil
import signal
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from mcp.server.fastmcp.utilities.logging import get_logger

from headless_editor_conformance.client import EditorClient
from headless_editor_conformance.config import HarnessConfig
from headless_editor_conformance.errors import (
    CleanupError,
    FixtureError,
    HarnessError,
    ScenarioFailure,
    TransportError,
)
from headless_editor_conformance.fixtures import (
    FixturePaths,
    fixtures_exist,
    remove_fixtures,
    setup_fixtures,
)
from headless_editor_conformance.results import (
    FailureReport,
    Outcome,
    ToolOutcome,
    describe_outcome,
    interpret,
)
from headless_editor_conformance.schema import parse_tool_result
from headless_editor_conformance.session import EditorSession, SessionController

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CLEANUP_FAILED = 1
EXIT_ABORTED = 2

START_SESSION_SCENARIO = "Start Session"
UNKNOWN_SESSION_ID = "session-that-was-never-opened"
COMMENT_INSERT = "\n  // comment\n"

ScenarioAction = Callable[[SessionController, EditorSession], Awaitable[Any]]


@dataclass
class Scenario:
    name: str
    action: ScenarioAction
    # Passes when the tool call fails, e.g. edits against an unknown session.
    expect_failure: bool = False


@dataclass
class ScenarioReport:
    name: str
    passed: bool
    outcome: Optional[Outcome] = None
    error: Optional[str] = None
    expect_failure: bool = False


@dataclass
class RunReport:
    scenarios: List[ScenarioReport] = field(default_factory=list)
    session_id: Optional[str] = None
    aborted: bool = False
    abort_reason: Optional[str] = None
    cleanup_failures: List[str] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for item in self.scenarios if item.passed)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.scenarios if not item.passed)

    @property
    def exit_code(self) -> int:
        if self.cleanup_failures:
            return EXIT_CLEANUP_FAILED
        if self.aborted:
            return EXIT_ABORTED
        return EXIT_OK


def _as_outcome(value: Any) -> Outcome:
    if isinstance(value, (ToolOutcome, FailureReport)):
        return value
    return interpret(parse_tool_result(value))


def _log_outcome(name: str, outcome: Outcome, passed: bool) -> None:
    text = describe_outcome(outcome)
    if outcome.ok:
        logger.info("%s", text)
    else:
        logger.error("%s", text)
    if passed and not outcome.ok:
        logger.info("Scenario %r failed as expected", name)
    elif not passed and outcome.ok:
        logger.error("Scenario %r succeeded but a failure was expected", name)


async def run_scenario(
    scenario: Scenario,
    controller: SessionController,
    session: EditorSession,
) -> ScenarioReport:
    """Run one scenario and record pass/fail; driver errors are recorded, not raised."""

    logger.info("=== Testing: %s ===", scenario.name)
    try:
        outcome = _as_outcome(await scenario.action(controller, session))
    except HarnessError as exc:
        logger.error("Test error in %s: %s", scenario.name, exc)
        error = str(exc)
    except Exception as exc:
        logger.exception("Unexpected error in %s", scenario.name)
        error = f"{type(exc).__name__}: {exc}"
    else:
        error = None

    if error is not None:
        return ScenarioReport(
            name=scenario.name,
            passed=False,
            error=error,
            expect_failure=scenario.expect_failure,
        )

    passed = outcome.ok != scenario.expect_failure
    _log_outcome(scenario.name, outcome, passed)
    return ScenarioReport(
        name=scenario.name,
        passed=passed,
        outcome=outcome,
        expect_failure=scenario.expect_failure,
    )


async def _insert_comment(controller: SessionController, session: EditorSession) -> Outcome:
    return await controller.insert(
        session.session_id, COMMENT_INSERT, line=5, character=100
    )


async def _edit_unknown_session(controller: SessionController, session: EditorSession) -> Outcome:
    return await controller.edit_code(
        UNKNOWN_SESSION_ID,
        {"type": "insert", "content": COMMENT_INSERT, "position": {"line": 5, "character": 100}},
    )


async def _validate_code(controller: SessionController, session: EditorSession) -> Outcome:
    return await controller.validate_code(session.session_id)


def default_scenarios(*, validate: bool = False) -> List[Scenario]:
    scenarios = [
        Scenario("Edit Code with Basic Comment", _insert_comment),
        Scenario("Edit Code on Unknown Session", _edit_unknown_session, expect_failure=True),
    ]
    if validate:
        scenarios.append(Scenario("Validate Code", _validate_code))
    return scenarios


class HarnessRun:
    """One conformance run: fixtures, one session, scenarios in order, teardown.

    Teardown runs on every exit path once fixtures exist. The session is closed
    first when one was opened, then the fixture directory is removed, then the
    service channel is shut down. Failing to remove fixtures or to shut the
    channel down raises :class:`CleanupError` after every step was attempted.
    """

    def __init__(
        self,
        config: HarnessConfig,
        scenarios: Optional[Sequence[Scenario]] = None,
        *,
        client: Optional[EditorClient] = None,
    ) -> None:
        self.config = config
        if scenarios is None:
            scenarios = default_scenarios(validate=config.validate)
        self.scenarios = list(scenarios)
        self.client = client if client is not None else EditorClient(config.server_config())
        self.controller = SessionController(self.client)
        self.fixtures: Optional[FixturePaths] = None
        self.session: Optional[EditorSession] = None

    async def run(self) -> RunReport:
        """Execute the run and return its report.

        Raises:
            FixtureError: Fixtures could not be provisioned; nothing else ran.
            CleanupError: Teardown could not complete.
        """
        report = RunReport()
        self.fixtures = setup_fixtures(self.config.workspace, self.config.fixtures_dir)
        logger.info("Current dir: %s", self.fixtures.current_dir)
        logger.info("Fixtures dir: %s", self.fixtures.fixtures_dir)

        try:
            await self.client.connect()
            self.session = await self._start_session(report)
            report.session_id = self.session.session_id
            for scenario in self.scenarios:
                report.scenarios.append(
                    await run_scenario(scenario, self.controller, self.session)
                )
        except HarnessError as exc:
            report.aborted = True
            report.abort_reason = str(exc)
            logger.error("Run aborted: %s", exc)
        finally:
            await self.cleanup(report)

        logger.info(
            "Finished: %d passed, %d failed%s",
            report.passed,
            report.failed,
            " (aborted)" if report.aborted else "",
        )
        return report

    async def _start_session(self, report: RunReport) -> EditorSession:
        logger.info("=== Testing: %s ===", START_SESSION_SCENARIO)
        try:
            session = await self.controller.start_session(
                self.fixtures.component_file, self.config.language_id
            )
        except ScenarioFailure as exc:
            _log_outcome(START_SESSION_SCENARIO, exc.report, False)
            report.scenarios.append(
                ScenarioReport(START_SESSION_SCENARIO, passed=False, outcome=exc.report)
            )
            raise
        except HarnessError as exc:
            report.scenarios.append(
                ScenarioReport(START_SESSION_SCENARIO, passed=False, error=str(exc))
            )
            raise
        report.scenarios.append(ScenarioReport(START_SESSION_SCENARIO, passed=True))
        return session

    async def cleanup(self, report: Optional[RunReport] = None) -> None:
        failures: List[str] = []

        if self.session is not None:
            await self.controller.close_session(self.session.session_id)

        fixtures_dir = self.fixtures.fixtures_dir if self.fixtures else self.config.fixtures_dir
        if fixtures_exist(fixtures_dir):
            try:
                remove_fixtures(fixtures_dir)
                logger.info("Test files cleaned up")
            except FixtureError as exc:
                logger.error("Error cleaning up test files: %s", exc)
                failures.append(str(exc))

        try:
            await self.client.close()
        except TransportError as exc:
            logger.error("Error closing client: %s", exc)
            failures.append(str(exc))

        if report is not None:
            report.cleanup_failures.extend(failures)
        if failures:
            raise CleanupError(failures)


def _flush_log_handlers() -> None:
    for handler in logging.getLogger().handlers:
        try:
            handler.flush()
        except Exception:  # pragma: no cover - best effort while exiting
            pass


def make_termination_handler(
    fixtures_dir: Optional[str],
    *,
    exit_func: Callable[[int], Any] = os._exit,
) -> Callable[[int, Any], None]:
    """Build a signal handler that removes fixtures and exits with ``128 + signum``.

    The handler only performs synchronous filesystem work; it never touches the
    protocol channel. The child process sees its stdin close once we exit.
    """

    def handler(signum: int, _frame: Any) -> None:
        logger.warning("Received %s, cleaning up...", signal.Signals(signum).name)
        if fixtures_dir:
            shutil.rmtree(fixtures_dir, ignore_errors=True)
        _flush_log_handlers()
        exit_func(128 + signum)

    return handler


def install_signal_handlers(
    fixtures_dir: Optional[str],
    signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Dict[signal.Signals, Any]:
    """Install the termination handler and return the previous handlers."""

    handler = make_termination_handler(fixtures_dir)
    previous: Dict[signal.Signals, Any] = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, handler)
    return previous


__all__ = [
    "EXIT_ABORTED",
    "EXIT_CLEANUP_FAILED",
    "EXIT_OK",
    "HarnessRun",
    "RunReport",
    "Scenario",
    "ScenarioReport",
    "default_scenarios",
    "install_signal_handlers",
    "make_termination_handler",
    "run_scenario",
]
