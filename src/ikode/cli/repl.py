"""
Interactive REPL for the coding agent.

Reads a line at a time. Lines starting with "/" are control commands
(model, history policy, clear, exit); anything else is sent to the agent
as one turn. Mutating tools ask for confirmation on the terminal unless
the session was started with --brave.

Output and confirmations go through a rich Console: a "Thinking..." status
while a model request is in flight, coloured tool progress, and
Confirm prompts. Interactive input is read with a prompt_toolkit session
so lines can be edited and recalled.
"""

import functools
import logging
import os
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.status import Status

from ikode.config import AgentConfig, HistoryPolicy
from ikode.loop import AgentLoop, LoopEvent, LoopResult

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are ikode, a coding assistant working inside the user's project directory. "
    "Use the tools to read, edit and create files, run commands and keep a todo list. "
    "All paths are relative to the working directory. Read a file before editing it, "
    "and give edit_file enough surrounding text that old_text matches exactly once."
)

PROJECT_GUIDE_FILE = "ikode.md"

HELP_TEXT = """
Available commands:
  /help               - Display this help message
  /model              - Display the current model
  /model {model}      - Switch to a different model
  /history            - Show history settings and stats
  /max-history {n}    - Set max history messages (0 = unlimited)
  /prefix-keep {n}    - Set number of prefix messages to always keep
  /clear              - Reset the conversation history
  /cls                - Clear the terminal screen
  /exit               - Quit the interactive session
"""


def prompt_confirm(description: str, console: Console | None = None) -> bool:
    """Ask a yes/no question on the terminal. Anything but yes declines."""
    try:
        return Confirm.ask(
            f"[yellow]?[/yellow] {escape(description)}?",
            console=console,
            default=False,
        )
    except (EOFError, KeyboardInterrupt):
        return False


def build_system_prompt(
    base: str,
    working_directory: Path,
    guide_path: str | None = None,
    console: Console | None = None,
) -> str:
    """Append project guidelines (ikode.md, then --guide) to the base prompt."""
    prompt = base

    project_guide = working_directory / PROJECT_GUIDE_FILE
    if project_guide.is_file():
        prompt += f"\n\nUser Project Guidelines (from {PROJECT_GUIDE_FILE}):\n"
        prompt += project_guide.read_text(encoding="utf-8")

    if guide_path:
        try:
            content = Path(guide_path).read_text(encoding="utf-8")
        except OSError as e:
            (console or Console(stderr=True)).print(
                f"[yellow]Warning: Could not read guide file {escape(guide_path)}: {escape(str(e))}[/yellow]"
            )
        else:
            prompt += f"\n\nUser Guidelines (from {guide_path}):\n{content}"

    return prompt


class Repl:
    """Command dispatcher and input loop around an AgentLoop."""

    def __init__(
        self,
        loop: AgentLoop,
        console: Console | None = None,
        input_fn: Callable[[str], str] | None = None,
    ) -> None:
        self.loop = loop
        self.console = console or Console()
        self.input_fn = input_fn or self.console.input
        self._status: Status | None = None

    def show_event(self, event: LoopEvent) -> None:
        """Observer for the agent loop: print progress as it happens."""
        if event.kind == "request_started":
            self._stop_status()
            self._status = self.console.status("Thinking...")
            self._status.start()
        elif event.kind == "request_finished":
            self._stop_status()
        elif event.kind == "assistant_text":
            self.console.print(event.text, markup=False, highlight=False)
        elif event.kind == "tool_call" and event.tool_call is not None:
            self.console.print(f"[cyan]> Calling tool:[/cyan] {escape(event.tool_call.name)}")
        elif event.kind == "tool_result" and event.result is not None and not event.result.success:
            first_line = event.text.splitlines()[0] if event.text else ""
            self.console.print(f"  [red]{escape(first_line)}[/red]")
        elif event.kind == "truncation":
            logger.info(event.text)

    def _stop_status(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def _say(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False)

    def handle_command(self, line: str) -> bool:
        """
        Run one control command.

        Returns False when the session should end.
        """
        command, _, argument = line.partition(" ")
        argument = argument.strip()

        if command == "/exit":
            self.loop.close()
            self.console.print("[bold]Goodbye![/bold]")
            return False
        if command == "/help":
            self._say(HELP_TEXT)
        elif command in ("/cls", "/clear_screen"):
            self._clear_screen()
        elif command == "/clear":
            self.loop.clear()
            self.console.print("[green]History cleared.[/green]")
        elif command == "/model":
            if argument:
                self.loop.set_model(argument)
                self._say(f"Model changed to: {self.loop.model}")
            else:
                self._say(f"Current model: {self.loop.model}")
        elif command == "/history":
            self._show_history()
        elif command == "/max-history":
            value = self._parse_count(argument, "/max-history")
            if value is not None:
                policy = self.loop.set_history_policy(max_messages=value)
                self._say(f"Max history set to: {self._limit_display(policy)}")
        elif command == "/prefix-keep":
            value = self._parse_count(argument, "/prefix-keep")
            if value is not None:
                policy = self.loop.set_history_policy(prefix_keep=value)
                self._say(f"Prefix keep set to: {policy.prefix_keep}")
        else:
            self.console.print(
                f"[red]Unknown command: {escape(command)}.[/red] Type /help for a list of commands."
            )
        return True

    def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False when the session should end."""
        line = line.strip()
        if not line:
            return True
        if line.startswith("/"):
            return self.handle_command(line)

        self.run_turn(line)
        return True

    def run_turn(self, text: str) -> LoopResult:
        """Send one user message through the agent and report a failed turn."""
        try:
            result = self.loop.run(text)
        finally:
            self._stop_status()
        if not result.success:
            self.console.print(
                f"[red]Error ({result.stopped_reason}):[/red] {escape(result.error or '')}"
            )
        return result

    def run(self) -> None:
        self.console.print("[bold]Welcome to ikode![/bold] Your AI coding assistant.")
        self.console.print("Type '/help' for a list of commands, or '/exit' to quit.\n")
        while True:
            try:
                line = self.input_fn("> ")
            except EOFError:
                self.loop.close()
                self.console.print()
                break
            except KeyboardInterrupt:
                self.console.print()
                continue
            if not self.handle_line(line):
                break

    def _show_history(self) -> None:
        policy = self.loop.history_policy
        self.console.print("[bold]History settings:[/bold]")
        self._say(f"  Max messages per request: {self._limit_display(policy)}")
        self._say(f"  Prefix keep:              {policy.prefix_keep}")
        self._say(f"  Total messages stored:    {self.loop.session.message_count}")

    def _parse_count(self, value: str, command: str) -> int | None:
        try:
            count = int(value)
        except ValueError:
            count = -1
        if count < 0:
            self.console.print(f"[red]Invalid number.[/red] Usage: {command} {{number}}")
            return None
        return count

    @staticmethod
    def _limit_display(policy: HistoryPolicy) -> str:
        return "unlimited" if policy.unlimited else str(policy.max_messages)

    def _clear_screen(self) -> None:
        if self.console.is_terminal:
            self.console.clear()
        elif os.name == "nt":
            subprocess.run(["cmd", "/c", "cls"], check=False)
        else:
            subprocess.run(["clear"], check=False)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="ikode",
        description="ikode: A CLI coding agent",
    )
    parser.add_argument("-p", "--prompt", help="Process a single prompt and exit")
    parser.add_argument("-m", "--model", help="The model to use (default: $LLM_MODEL)")
    parser.add_argument("-b", "--brave", action="store_true",
                        help="Brave mode: no confirmation before edits and commands")
    parser.add_argument("-g", "--guide", help="Path to a guide file appended to the system prompt")
    parser.add_argument("--max-history", type=int,
                        help="Maximum number of history messages sent per request (0 = unlimited)")
    parser.add_argument("--prefix-keep", type=int,
                        help="Number of early messages to always keep for cache stability")
    parser.add_argument("-C", "--directory", help="Working directory (default: current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AgentConfig.from_env()
    if args.directory:
        directory = Path(args.directory).expanduser().resolve()
        if not directory.is_dir():
            parser.error(f"working directory {args.directory!r} does not exist or is not a directory")
        config.working_directory = directory
    if args.model:
        config.llm.model = args.model
    if args.brave:
        config.tools.brave = True
    if args.max_history is not None or args.prefix_keep is not None:
        try:
            config.history = HistoryPolicy(
                max_messages=config.history.max_messages if args.max_history is None else args.max_history,
                prefix_keep=config.history.prefix_keep if args.prefix_keep is None else args.prefix_keep,
            )
        except ValueError as e:
            parser.error(str(e))

    console = Console()
    system_prompt = build_system_prompt(
        DEFAULT_SYSTEM_PROMPT, config.working_directory, args.guide, console=console
    )

    repl: Repl | None = None

    def observe(event: LoopEvent) -> None:
        if repl is not None:
            repl.show_event(event)

    try:
        loop = AgentLoop.create(
            system_prompt=system_prompt,
            config=config,
            confirm=functools.partial(prompt_confirm, console=console),
            observer=observe,
        )
    except OSError as e:
        parser.error(f"cannot use working directory {str(config.working_directory)!r}: {e}")
    repl = Repl(loop, console=console)

    if args.prompt:
        try:
            result = repl.run_turn(args.prompt)
        finally:
            loop.close()
        return 0 if result.success else 1

    from prompt_toolkit import PromptSession
    from prompt_toolkit.history import InMemoryHistory

    session = PromptSession(history=InMemoryHistory(), enable_history_search=True)
    repl.input_fn = session.prompt
    try:
        repl.run()
    finally:
        loop.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
