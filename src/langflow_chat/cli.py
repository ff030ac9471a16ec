"""CLI for langflow-chat.

Usage:
    langflow-chat chat support                    # Chat with profile 'support'
    langflow-chat chat support --session abc123   # Resume a session
    langflow-chat chat support --nostream         # Wait for full replies
    langflow-chat history support abc123          # Print a session's history
    langflow-chat flows                           # Show flow name -> id map
    langflow-chat flows my-flow "Other Flow"      # Resolve identifiers

Settings come from .env.local / environment (see langflow_chat.config).

In a chat:
    /session <id>   switch session (history is replayed)
    /reset          start a new conversation
    /quit           exit
"""

from __future__ import annotations

import asyncio
import logging
import sys

import fire
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .client import DEFAULT_TIMEOUT, LangflowChatClient
from .config import Profile, load_settings
from .console import ConsoleChatDisplay
from .errors import ConfigurationError
from .flows import FlowIdentifierResolver, fetch_flow_descriptors
from .processor import ChatMessageProcessor
from .session import SessionCoordinator

PROMPT = "[bold blue]>[/bold blue] "


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


class ChatCLI:
    """langflow-chat CLI."""

    def __init__(self) -> None:
        self.console = Console()

    def chat_base_url(self, base_url: str | None, env_file: str | None) -> str:
        if base_url:
            return base_url
        return load_settings(env_file).chat_base_url

    def chat(
        self,
        profile: str,
        session: str | None = None,
        stream: bool = True,
        welcome: str | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
        env_file: str | None = None,
        verbose: bool = False,
    ) -> None:
        """Chat with a profile.

        Args:
            profile: Chatbot profile id
            session: Session id to resume (history is replayed)
            stream: Stream replies token by token (--nostream to disable)
            welcome: Message shown when the conversation is empty
            timeout: Seconds to wait for a reply or the next streamed event
            base_url: Chat proxy base URL (default: from settings)
            env_file: .env file to load (default: .env.local)
            verbose: Debug logging
        """
        setup_logging(verbose)
        try:
            url = self.chat_base_url(base_url, env_file)
        except ConfigurationError as e:
            self.console.print(f"[red]{e}[/red]")
            sys.exit(1)

        chatbot = Profile(
            profile_id=profile,
            flow_id=profile,
            enable_stream=stream,
            welcome_message=welcome,
        )
        asyncio.run(self.run_chat(url, chatbot, session, timeout))

    async def run_chat(
        self, url: str, profile: Profile, session_id: str | None, timeout: float | None
    ) -> None:
        display = ConsoleChatDisplay(self.console, profile.senders, profile.datetime_format)

        async with LangflowChatClient(url, profile.profile_id) as client:
            coordinator = SessionCoordinator(
                client, display, profile.senders, profile.welcome_message
            )
            processor = ChatMessageProcessor(
                client,
                coordinator,
                display,
                profile.senders,
                enable_stream=profile.enable_stream,
                response_timeout=timeout,
            )
            await coordinator.start(session_id)

            try:
                while True:
                    try:
                        text = await asyncio.to_thread(self.console.input, PROMPT)
                    except (EOFError, KeyboardInterrupt):
                        break

                    text = text.strip()
                    if not text:
                        continue
                    if text in ("/quit", "/exit"):
                        break
                    if text == "/reset":
                        await coordinator.set_session_id_and_load_history(None)
                        continue
                    if text.startswith("/session"):
                        _, _, new_id = text.partition(" ")
                        await coordinator.set_session_id_and_load_history(new_id.strip() or None)
                        continue

                    await processor.process(text)
            finally:
                processor.teardown()
                coordinator.teardown()

        if coordinator.current_session_id:
            self.console.print(f"[dim]Resume with --session {coordinator.current_session_id}[/dim]")

    def history(
        self,
        profile: str,
        session: str,
        base_url: str | None = None,
        env_file: str | None = None,
        verbose: bool = False,
    ) -> None:
        """Print the stored messages of a session."""
        setup_logging(verbose)
        try:
            url = self.chat_base_url(base_url, env_file)
        except ConfigurationError as e:
            self.console.print(f"[red]{e}[/red]")
            sys.exit(1)

        asyncio.run(self.run_history(url, Profile(profile_id=profile, flow_id=profile), session))

    async def run_history(self, url: str, profile: Profile, session_id: str) -> None:
        display = ConsoleChatDisplay(self.console, profile.senders, profile.datetime_format)
        async with LangflowChatClient(url, profile.profile_id) as client:
            coordinator = SessionCoordinator(client, display, profile.senders)
            await coordinator.start(session_id)

    def flows(self, *identifiers: str, env_file: str | None = None, verbose: bool = False) -> None:
        """Show the flow name map, or resolve the given identifiers."""
        setup_logging(verbose)
        try:
            settings = load_settings(env_file)
        except ConfigurationError as e:
            self.console.print(f"[red]{e}[/red]")
            sys.exit(1)

        async def run() -> None:
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as http:
                resolver = FlowIdentifierResolver(lambda: fetch_flow_descriptors(http, settings))
                profiles = [Profile(profile_id=i, flow_id=i) for i in identifiers]
                report = await resolver.resolve_profiles(profiles)

            if not resolver.is_initialized:
                self.console.print("[red]Could not fetch the flow listing[/red]")
                sys.exit(1)

            table = Table(title="Flows" if not identifiers else "Resolution")
            table.add_column("Identifier")
            table.add_column("Flow ID")
            if identifiers:
                for profile in profiles:
                    if profile.profile_id in report.unresolved:
                        table.add_row(profile.profile_id, "[red]unresolved[/red]")
                    else:
                        table.add_row(profile.profile_id, profile.flow_id)
            else:
                for name, flow_id in sorted(resolver.flow_name_map.items()):
                    table.add_row(name, flow_id)
            self.console.print(table)

            if not report.ok:
                sys.exit(1)

        asyncio.run(run())


VALID_COMMANDS = {"chat", "history", "flows", "--help", "-h"}


def main() -> None:
    """Entry point."""
    cli = ChatCLI()

    # Validate command to prevent Fire's prefix matching
    if len(sys.argv) > 1 and not sys.argv[1].startswith("-"):
        cmd = sys.argv[1]
        if cmd not in VALID_COMMANDS:
            valid = sorted(VALID_COMMANDS - {"--help", "-h"})
            Console().print(f"[red]Unknown command: {cmd}[/red]")
            Console().print(f"[dim]Valid commands: {', '.join(valid)}[/dim]")
            sys.exit(1)

    fire.Fire(cli)


if __name__ == "__main__":
    main()
