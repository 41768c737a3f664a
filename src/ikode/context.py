"""
History window - which part of the conversation is sent to the model.

Long sessions are cut down before each request: the system message and
the first few messages after it are always kept (the cache-friendly
prefix), followed by the most recent messages. Everything in between is
replaced with a single note so the model knows context is missing.

The prefix stays byte-identical from one turn to the next, which is what
lets providers with prompt caching reuse the work done on it. The stored
conversation is never modified; the window is a fresh view each turn.
"""

import logging
from typing import Any

from ikode.config import HistoryPolicy
from ikode.session import Session
from ikode.types import Message, Role, TruncationEvent

logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = (
    "[Note: {count} earlier messages were truncated to save context. "
    "The conversation continues below.]"
)


def truncation_notice(count: int) -> Message:
    return Message(role=Role.SYSTEM, content=TRUNCATION_NOTICE.format(count=count))


def select_for_transmission(
    conversation: list[Message],
    policy: HistoryPolicy,
) -> list[Message]:
    """
    Return the ordered subsequence of conversation to send.

    The result is at most max_messages long, plus one for the notice when
    anything was dropped. It depends only on its arguments.
    """
    selected, _ = _window(conversation, policy)
    return selected


def _window(
    conversation: list[Message],
    policy: HistoryPolicy,
) -> tuple[list[Message], int]:
    total = len(conversation)
    if policy.unlimited or total <= policy.max_messages:
        return list(conversation), 0

    prefix_end = min(1 + policy.prefix_keep, policy.max_messages, total)
    tail_count = policy.max_messages - prefix_end
    tail_start = max(total - tail_count, prefix_end)

    selected = list(conversation[:prefix_end])
    dropped = tail_start - prefix_end
    if dropped > 0:
        selected.append(truncation_notice(dropped))
    selected.extend(conversation[tail_start:])
    return selected, dropped


class HistoryWindow:
    """
    Builds the message list for each model request.

    Holds the current HistoryPolicy; the loop swaps in a new policy when
    the user changes it at runtime.
    """

    def __init__(self, policy: HistoryPolicy | None = None) -> None:
        self.policy = policy or HistoryPolicy()

    def select(self, conversation: list[Message]) -> list[Message]:
        return select_for_transmission(conversation, self.policy)

    def build_context(
        self,
        session: Session,
    ) -> tuple[list[dict[str, Any]], TruncationEvent | None]:
        """
        Build the OpenAI-format messages for the next request.

        Returns the messages and, when something was left out, an event
        describing how much.
        """
        stored = session.get_messages()
        selected, dropped = _window(stored, self.policy)

        event = None
        if dropped > 0:
            event = TruncationEvent(
                messages_dropped=dropped,
                messages_sent=len(selected),
                messages_stored=len(stored),
            )
            logger.warning(
                f"History window: sending {len(selected)} of {len(stored)} messages "
                f"({dropped} earlier messages left out)"
            )

        return [m.to_dict() for m in selected], event
