"""
Agent Loop - The turn-based runtime.

This is the core execution loop that defines how the agent processes
input and produces output. The loop is:

1. Build the request (windowed history + tool catalog)
2. Call the LLM
3. If the LLM returns tool calls: execute them in order, append one
   result per call, goto 1
4. If the LLM returns a final response: return to the user, wait for input

Everything is sequential: one request in flight, one tool running, and
confirmations block until the user answers.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from ikode.coding_tools import CodingToolset, create_coding_tools
from ikode.config import AgentConfig, HistoryPolicy, LoopConfig
from ikode.context import HistoryWindow
from ikode.llm import ChatResponse, LLMClient, LLMError
from ikode.paths import PathValidator
from ikode.session import Session
from ikode.tools import ToolRegistry
from ikode.types import LoopPhase, LoopState, ToolCall, ToolResult

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """The model collaborator: conversation and tool catalog in, text and/or tool calls out."""

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        cache_key: str | None = None,
    ) -> ChatResponse: ...


@dataclass
class LoopEvent:
    """Progress notification for whoever is displaying the session."""
    kind: str  # "request_started", "request_finished", "assistant_text", "tool_call", "tool_result", "truncation"
    text: str
    tool_call: ToolCall | None = None
    result: ToolResult | None = None


@dataclass
class StepResult:
    """Result of a single step in the agent loop."""
    step_number: int
    action: str
    content: str | None = None
    tool_calls_made: int = 0
    messages_sent: int = 0
    truncation_occurred: bool = False


@dataclass
class LoopResult:
    """Final result of running the agent loop for one user turn."""
    success: bool
    response: str | None
    steps_taken: int
    step_results: list[StepResult] = field(default_factory=list)
    error: str | None = None
    stopped_reason: str = "completed"


class AgentLoop:
    """
    The turn-based agent execution loop.

    The loop owns the session (conversation), the tool registry and the
    history window. Phases follow LoopPhase:

        AWAITING_USER_INPUT -> REQUEST_SENT -> AWAITING_USER_INPUT
                                            -> EXECUTING_TOOLS -> RESULTS_APPENDED -> REQUEST_SENT

    A provider failure moves to FAILED for the rest of the turn and then
    back to AWAITING_USER_INPUT. close() moves to EXITED.
    """

    def __init__(
        self,
        session: Session,
        llm: ModelClient,
        tools: ToolRegistry,
        history: HistoryWindow | None = None,
        config: LoopConfig | None = None,
        model: str | None = None,
        observer: Callable[[LoopEvent], None] | None = None,
    ) -> None:
        """Initialize the agent loop."""
        self.session = session
        self.llm = llm
        self.tools = tools
        self.history = history or HistoryWindow()
        self.config = config or LoopConfig()
        self.model = model
        self.observer = observer
        self.state = LoopState()

    # ------------------------------------------------------------------
    # Runtime controls
    # ------------------------------------------------------------------

    @property
    def history_policy(self) -> HistoryPolicy:
        return self.history.policy

    def set_history_policy(
        self,
        max_messages: int | None = None,
        prefix_keep: int | None = None,
    ) -> HistoryPolicy:
        """Replace the history policy; the stored conversation is untouched."""
        current = self.history.policy
        self.history.policy = HistoryPolicy(
            max_messages=current.max_messages if max_messages is None else max_messages,
            prefix_keep=current.prefix_keep if prefix_keep is None else prefix_keep,
        )
        logger.info(f"History policy set to {self.history.policy}")
        return self.history.policy

    def set_model(self, model: str) -> None:
        if not model.strip():
            raise ValueError("Model name must not be empty")
        self.model = model.strip()
        logger.info(f"Model set to {self.model}")

    def clear(self) -> None:
        """Reset the conversation to the system message."""
        self.session.clear()
        self.state = LoopState()

    def close(self) -> None:
        """End the session and release the model client's connections."""
        if self.is_closed:
            return
        self.state.transition(LoopPhase.EXITED)
        close_client = getattr(self.llm, "close", None)
        if close_client is not None:
            close_client()

    @property
    def is_closed(self) -> bool:
        return self.state.phase == LoopPhase.EXITED

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    def run(self, user_input: str) -> LoopResult:
        """
        Run the agent loop for a single user turn.

        Adds the user message, then requests and executes tools until the
        model answers without tool calls.

        Args:
            user_input: The user's message

        Returns:
            LoopResult with the agent's response
        """
        if self.is_closed:
            raise RuntimeError("Agent loop has been closed")

        turn_start = self.session.message_count
        self.session.add_user_message(user_input)

        self.state = LoopState()
        step_results: list[StepResult] = []

        while self.config.max_steps == 0 or self.state.step < self.config.max_steps:
            self.state.step += 1
            logger.info(f"Agent loop step {self.state.step}")

            try:
                step_result = self._execute_step()
            except LLMError as e:
                return self._provider_failure(e, turn_start, step_results)

            step_results.append(step_result)
            if step_result.action == "final_response":
                self.state.final_response = step_result.content
                self.state.transition(LoopPhase.AWAITING_USER_INPUT)
                return LoopResult(
                    success=True,
                    response=step_result.content,
                    steps_taken=self.state.step,
                    step_results=step_results,
                    stopped_reason="completed",
                )

        logger.warning(f"Agent loop hit max_steps limit ({self.config.max_steps})")
        self.state.transition(LoopPhase.AWAITING_USER_INPUT)
        return LoopResult(
            success=False,
            response=None,
            steps_taken=self.state.step,
            step_results=step_results,
            error="Max steps exceeded",
            stopped_reason="max_steps_exceeded",
        )

    def _provider_failure(
        self,
        error: LLMError,
        turn_start: int,
        step_results: list[StepResult],
    ) -> LoopResult:
        """
        Abort the turn after a failed model request.

        Nothing from the failed request was appended. When no step of the
        turn completed, the user message is withdrawn too, so the
        conversation is exactly what it was before the turn.
        """
        logger.error(f"LLM error at step {self.state.step}: {error}")
        if not step_results:
            self.session.truncate(turn_start)
        self.state.error = str(error)
        self.state.transition(LoopPhase.FAILED)
        self.state.transition(LoopPhase.AWAITING_USER_INPUT)
        return LoopResult(
            success=False,
            response=None,
            steps_taken=self.state.step,
            step_results=step_results,
            error=str(error),
            stopped_reason="provider_failure",
        )

    def _execute_step(self) -> StepResult:
        """Execute a single request/response step of the agent loop."""
        messages, truncation = self.history.build_context(self.session)
        if truncation is not None:
            self._notify(LoopEvent(
                kind="truncation",
                text=f"{truncation.messages_dropped} earlier messages left out of the request",
            ))

        self.state.transition(LoopPhase.REQUEST_SENT)
        self._notify(LoopEvent(kind="request_started", text=f"{len(messages)} messages"))
        try:
            response = self.llm.chat(
                messages,
                tools=self.tools.get_schemas() or None,
                model=self.model,
                cache_key=self.session.cache_key,
            )
        finally:
            self._notify(LoopEvent(kind="request_finished", text=""))

        self.session.add_assistant_message(
            content=response.content or None,
            tool_calls=response.tool_calls,
        )
        if response.content:
            self._notify(LoopEvent(kind="assistant_text", text=response.content))

        if not response.has_tool_calls:
            return StepResult(
                step_number=self.state.step,
                action="final_response",
                content=response.content,
                messages_sent=len(messages),
                truncation_occurred=truncation is not None,
            )

        self.state.transition(LoopPhase.EXECUTING_TOOLS)
        for tool_call in response.tool_calls:
            self._notify(LoopEvent(kind="tool_call", text=tool_call.name, tool_call=tool_call))
            result = self.tools.execute(tool_call)
            self.session.add_tool_result(result)
            self.state.tool_call_count += 1
            self._notify(LoopEvent(
                kind="tool_result",
                text=result.content,
                tool_call=tool_call,
                result=result,
            ))
        self.state.transition(LoopPhase.RESULTS_APPENDED)

        return StepResult(
            step_number=self.state.step,
            action="tool_calls",
            content=response.content,
            tool_calls_made=len(response.tool_calls),
            messages_sent=len(messages),
            truncation_occurred=truncation is not None,
        )

    def _notify(self, event: LoopEvent) -> None:
        if self.observer is not None:
            self.observer(event)

    @classmethod
    def create(
        cls,
        system_prompt: str = "",
        config: AgentConfig | None = None,
        confirm: Callable[[str], bool] | None = None,
        observer: Callable[[LoopEvent], None] | None = None,
    ) -> "AgentLoop":
        """
        Factory method to create an AgentLoop with all dependencies.

        This is the recommended way to create an AgentLoop for typical use.
        """
        config = config or AgentConfig.from_env()

        toolset = CodingToolset(
            validator=PathValidator(config.working_directory),
            config=config.tools,
            confirm=confirm,
        )

        return cls(
            session=Session(system_prompt=system_prompt),
            llm=LLMClient(config.llm),
            tools=create_coding_tools(toolset),
            history=HistoryWindow(config.history),
            config=config.loop,
            model=config.llm.model,
            observer=observer,
        )
