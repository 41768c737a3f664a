"""
ikode - an autonomous coding-assistant agent.

The agent runs a REPL that exchanges messages with an LLM, executes the
tools the model asks for, and feeds the results back until the model
answers without requesting a tool:

1. Path containment: file tools only ever touch the working directory
2. Exact patches: an edit replaces exactly one occurrence or fails
3. Windowed history: long conversations keep a stable prefix and a recent tail
4. Sequential turns: one request, one tool, one confirmation at a time
5. No persistence: all state lives for the life of the process
"""

__version__ = "0.1.0"

from ikode.coding_tools import CodingToolset, create_coding_tools
from ikode.context import HistoryWindow, select_for_transmission
from ikode.llm import ChatResponse, LLMClient, LLMError
from ikode.loop import AgentLoop, LoopEvent, LoopResult
from ikode.patch import apply_patch
from ikode.paths import PathValidator
from ikode.session import Session
from ikode.todo import TodoItem, TodoStatus, TodoStore
from ikode.tools import Tool, ToolRegistry

__all__ = [
    "AgentLoop",
    "LoopEvent",
    "LoopResult",
    "Session",
    "HistoryWindow",
    "select_for_transmission",
    "LLMClient",
    "LLMError",
    "ChatResponse",
    "PathValidator",
    "apply_patch",
    "TodoStore",
    "TodoItem",
    "TodoStatus",
    "Tool",
    "ToolRegistry",
    "CodingToolset",
    "create_coding_tools",
]
