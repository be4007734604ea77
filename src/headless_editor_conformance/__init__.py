import argparse


def main(argv=None):
    import asyncio
    import json
    import sys

    from mcp.server.fastmcp.utilities.logging import configure_logging, get_logger

    from headless_editor_conformance.config import HarnessConfig, parse_timeout
    from headless_editor_conformance.errors import CleanupError, FixtureError
    from headless_editor_conformance.orchestrator import (
        EXIT_ABORTED,
        EXIT_CLEANUP_FAILED,
        HarnessRun,
        install_signal_handlers,
    )
    from headless_editor_conformance.tool_spec import build_tool_spec

    parser = argparse.ArgumentParser(
        description="Conformance driver for the headless editor MCP service"
    )
    parser.add_argument(
        "--command",
        type=str,
        default=None,
        help="Executable that launches the editor service. Default is `node`.",
    )
    parser.add_argument(
        "--entry",
        type=str,
        default=None,
        help="Service entry point passed as the first argument. Default is `./build/index.js`.",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Workspace root handed to the service. Default is the current directory.",
    )
    parser.add_argument(
        "--fixtures-dir",
        type=str,
        default=None,
        help="Scratch directory for fixture files. Default is `<workspace>/test-fixtures`.",
    )
    parser.add_argument(
        "--language",
        type=str,
        default=None,
        help="Language identifier for the editing session. Default is `typescript`.",
    )
    parser.add_argument(
        "--timeout",
        type=str,
        default=None,
        help="Per-call timeout in seconds; `0` or `none` waits indefinitely. Default is 60.",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Also run the `validate_code` scenario.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging verbosity. Default is INFO.",
    )
    parser.add_argument(
        "--print-tool-spec",
        action="store_true",
        help="Print the editor tool input schemas as JSON and exit.",
    )
    args = parser.parse_args(argv)

    if args.print_tool_spec:
        json.dump(build_tool_spec(), sys.stdout, indent=2, sort_keys=True)
        sys.stdout.write("\n")
        return 0

    configure_logging(args.log_level)
    logger = get_logger("headless_editor_conformance")

    try:
        config = HarnessConfig.from_env(
            command=args.command,
            entry=args.entry,
            workspace=args.workspace,
            fixtures_dir=args.fixtures_dir,
            language_id=args.language,
            validate=args.validate,
        )
        if args.timeout is not None:
            config.tool_timeout = parse_timeout(args.timeout)
    except ValueError as exc:
        parser.error(str(exc))

    install_signal_handlers(config.fixtures_dir)

    try:
        report = asyncio.run(HarnessRun(config).run())
    except FixtureError as exc:
        logger.error("Fixture setup failed: %s", exc)
        return EXIT_ABORTED
    except CleanupError as exc:
        # A stuck service process or leftover fixtures would poison the next run.
        logger.error("%s", exc)
        return EXIT_CLEANUP_FAILED
    except Exception:
        logger.exception("Conformance run crashed")
        return EXIT_ABORTED
    return report.exit_code
