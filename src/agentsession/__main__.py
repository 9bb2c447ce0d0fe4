"""Command-line interface for agentsession.

Usage:
    agentsession run pm "*create-prd" --cost-limit 2
    agentsession chat analyst
    agentsession sessions --agent pm
    agentsession agents
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from agentsession import __version__
from agentsession.config import Config, load_config
from agentsession.cost.tracker import CostReport, CostWarning
from agentsession.logging import get_logger, setup_logging
from agentsession.session import (
    AgentSession,
    ConversationalSession,
    ConversationStatus,
    Question,
    SessionOptions,
    SessionResult,
    SessionStatus,
)
from agentsession.storage import SessionListOptions

log = get_logger("cli")

EXIT_COMMANDS = {"/exit", "/quit", "exit", "quit"}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentsession",
        description="Run agent personas against a language model",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config-root",
        help="Project root holding .agentsession/config.yaml",
    )
    parser.add_argument(
        "--cost-limit",
        type=float,
        help="Budget for the session in the configured currency",
    )

    subparsers = parser.add_subparsers(dest="mode", help="Command")

    run_parser = subparsers.add_parser("run", help="Run one agent command to completion")
    run_parser.add_argument("agent", help="Agent id")
    run_parser.add_argument("command", help="Command for the agent, e.g. '*help'")

    chat_parser = subparsers.add_parser("chat", help="Interactive conversation with an agent")
    chat_parser.add_argument("agent", help="Agent id")

    sessions_parser = subparsers.add_parser("sessions", help="List saved sessions")
    sessions_parser.add_argument("--agent", help="Only sessions for this agent")
    sessions_parser.add_argument("--status", help="Only sessions in this status")
    sessions_parser.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("agents", help="List available agents")
    return parser


def _format_costs(report: CostReport) -> str:
    lines = [
        f"Cost: {report.currency} {report.total_cost:.4f}"
        f" ({report.input_tokens} in / {report.output_tokens} out, {report.api_calls} calls)"
    ]
    for model in report.breakdown:
        lines.append(f"  {model.model}: {report.currency} {model.total_cost:.4f}")
    for child in report.child_sessions:
        lines.append(f"  sub-agent {child.agent}: {report.currency} {child.total_cost:.4f}")
    return "\n".join(lines)


def _print_warning(warning: CostWarning) -> None:
    print(f"[cost] {round(warning.percentage * 100)}% of budget used ({warning.current_cost:.4f})")


def _ask(question: Question) -> str:
    if question.context:
        print(f"\n{question.context}")
    return input(f"\n? {question.question}\n> ")


async def _answer(session: AgentSession | ConversationalSession, question: Question) -> None:
    """Read the reply off the event loop so the session keeps its timers."""
    session.answer(await asyncio.to_thread(_ask, question))


def _print_result(result: SessionResult) -> None:
    if result.final_response:
        print(result.final_response)
    if result.documents:
        print("\nDocuments:")
        for doc in result.documents:
            print(f"  {doc.path} ({len(doc.content)} chars)")
    for url in result.storage_urls:
        print(f"  saved: {url}")
    if result.error is not None:
        print(f"\nError: {result.error}", file=sys.stderr)
    print(f"\nStatus: {result.status.value} in {result.duration_ms / 1000:.1f}s")
    print(_format_costs(result.costs))


async def _run(config: Config, agent_id: str, command: str, options: SessionOptions) -> int:
    from agentsession.client import AgentClient

    async with AgentClient(config=config) as client:
        session = client.start_agent(agent_id, command, options)
        session.on("question", lambda q: _answer(session, q))
        session.on("cost-warning", _print_warning)
        result = await session.execute()
        _print_result(result)
        return 0 if result.status == SessionStatus.COMPLETED else 1


async def _chat(config: Config, agent_id: str, options: SessionOptions) -> int:
    from agentsession.client import AgentClient

    async with AgentClient(config=config) as client:
        conversation = client.start_conversation(agent_id, options)
        conversation.on("question", lambda q: _answer(conversation, q))
        conversation.on("cost-warning", _print_warning)
        print(f"Chatting with {agent_id}. Type /exit to finish.")

        while True:
            try:
                text = (await asyncio.to_thread(input, "\nyou> ")).strip()
            except EOFError:
                break
            if not text:
                continue
            if text in EXIT_COMMANDS:
                break
            await conversation.send(text)
            try:
                turn = await conversation.wait_for_completion()
            except Exception as e:
                print(f"Error: {e}", file=sys.stderr)
                continue
            print(f"\n{agent_id}> {turn.agent_response}")

        if conversation.status in (ConversationStatus.PROCESSING, ConversationStatus.WAITING_FOR_ANSWER):
            return 1
        result = await conversation.end()
        print(f"\n{len(result.turns)} turns, {len(result.documents)} documents")
        for doc in result.documents:
            print(f"  {doc.path}")
        print(_format_costs(conversation.get_costs()))
        return 0


async def _sessions(config: Config, parsed: argparse.Namespace) -> int:
    from agentsession.client import AgentClient

    async with AgentClient(config=config) as client:
        listing = await client.list_sessions(
            SessionListOptions(agent_id=parsed.agent, status=parsed.status, limit=parsed.limit)
        )
        for summary in listing.sessions:
            print(
                f"{summary.session_id}  {summary.agent_id:<12} {summary.status:<10}"
                f" docs={summary.document_count} cost={summary.total_cost:.4f}  {summary.command}"
            )
        if listing.has_more:
            print(f"... {listing.total - len(listing.sessions)} more")
    return 0


def _agents(config: Config) -> int:
    from agentsession.agents import AgentRegistry

    registry = AgentRegistry(config.agents.paths)
    for agent_id in registry.list_agents():
        print(agent_id)
    return 0


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.mode is None:
        parser.print_help()
        return 1

    config = load_config(project_root=parsed.config_root)
    if parsed.verbose:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    options = SessionOptions(
        cost_limit=parsed.cost_limit if parsed.cost_limit is not None else config.session.cost_limit,
        auto_save=config.session.auto_save,
    )

    try:
        if parsed.mode == "run":
            return asyncio.run(_run(config, parsed.agent, parsed.command, options))
        elif parsed.mode == "chat":
            return asyncio.run(_chat(config, parsed.agent, options))
        elif parsed.mode == "sessions":
            return asyncio.run(_sessions(config, parsed))
        elif parsed.mode == "agents":
            return _agents(config)
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130
    except Exception as e:
        log.debug("CLI failure", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def main() -> None:
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
