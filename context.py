import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """
    Speaker of a single conversation turn.

    Attributes:
        USER: A message sent by the person chatting.
        ASSISTANT: A response produced by the language model.
    """

    USER = "User"
    ASSISTANT = "Assistant"


@dataclass(frozen=True)
class Exchange:
    """
    One turn of the conversation.

    Attributes:
        role: Who produced the turn.
        text: Raw turn text, stored as received.
    """

    role: Role
    text: str

    def render(self) -> str:
        """Return the turn as it appears in a prompt, e.g. ``"User: hi"``."""
        return f"{self.role.value}: {self.text}"


class ConversationContext:
    """
    Rolling window of the most recent user/assistant exchanges.

    A single instance is shared by every request the server handles. All
    reads and writes go through one non-reentrant lock, which is only held
    for the duration of a list operation and never while waiting on the
    retriever or the model.

    Args:
        max_context_length: Number of user/assistant pairs to retain.
    """

    def __init__(self, max_context_length: int = 5):
        if max_context_length < 1:
            raise ValueError(
                f"max_context_length must be at least 1, got {max_context_length}"
            )
        self.max_context_length = max_context_length
        self._entries: List[Exchange] = []
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of entries kept after an eviction check."""
        return self.max_context_length * 2

    def append_user(self, text: str) -> None:
        self._append(Exchange(Role.USER, text))

    def append_assistant(self, text: str) -> None:
        self._append(Exchange(Role.ASSISTANT, text))

    def _append(self, exchange: Exchange) -> None:
        with self._lock:
            self._entries.append(exchange)

    def evict_if_over_capacity(self) -> int:
        """
        Drop the oldest pairs until the window is back within capacity.

        A pair is the oldest entry together with any assistant entries
        directly behind it. When turns are well-formed this removes exactly
        two entries per pair, and the window never starts with an assistant
        turn even if concurrent requests or failed generations left it
        unevenly interleaved.

        Returns:
            The number of entries removed.
        """
        removed = 0
        with self._lock:
            while len(self._entries) > self.capacity:
                cut = 1
                while (
                    cut < len(self._entries)
                    and self._entries[cut].role is Role.ASSISTANT
                ):
                    cut += 1
                del self._entries[:cut]
                removed += cut

        if removed:
            logger.debug(f"🧹 Evicted {removed} oldest context entries")
        return removed

    def snapshot(self) -> Tuple[Exchange, ...]:
        """Return an immutable copy of the window, taken under the lock."""
        with self._lock:
            return tuple(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
