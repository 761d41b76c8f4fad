"""Per-conversation continuation registry.

Each conversation key owns an ordered list of pending continuations
and a lock. The dispatcher holds the key's lock for the whole
fetch -> select -> execute -> update sequence, so a conversation
handles one update at a time, in arrival order, while different
conversations proceed independently.

Done continuations are pruned on every access, before the list is
handed out; there is no background sweeper. Evicting idle
conversations is left to the embedding application (discard()).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Hashable, List

import structlog

from .response import Continuation

logger = structlog.get_logger("dialogwire.conversation")


@dataclass
class Conversation:
    """Mutable state of one conversation.

    Attributes:
        key: Conversation key (sender or chat id).
        continuations: Pending continuations, first match wins.
        use_static: Whether updates matching no continuation may fall
            through to static commands. Set by the last Response.
    """
    key: Hashable
    continuations: List[Continuation] = field(default_factory=list)
    use_static: bool = True

    def prune(self) -> int:
        """Drop done continuations. Returns how many were removed."""
        before = len(self.continuations)
        self.continuations = [c for c in self.continuations if not c.done]
        return before - len(self.continuations)

    @property
    def pending(self) -> bool:
        return bool(self.continuations)


class ConversationStore:
    """Conversation key -> Conversation, created lazily.

    Not shared global state: the dispatcher owns one store and passes
    it where needed.
    """

    def __init__(self):
        self._conversations: Dict[Hashable, Conversation] = {}
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    def lock(self, key: Hashable) -> asyncio.Lock:
        """Return the lock serializing updates for ``key``."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def handlers_for(self, key: Hashable) -> Conversation:
        """Return the conversation for ``key`` with done entries pruned."""
        conversation = self._conversations.get(key)
        if conversation is None:
            conversation = self._conversations[key] = Conversation(key)
            logger.debug("conversation_created", key=key)
            return conversation
        removed = conversation.prune()
        if removed:
            logger.debug("continuations_pruned", key=key, removed=removed)
        return conversation

    def discard(self, key: Hashable) -> None:
        """Forget a conversation (external eviction)."""
        self._conversations.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def __contains__(self, key: object) -> bool:
        return key in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)
