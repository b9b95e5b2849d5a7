"""Per-card loading state: loading -> ready | error, and error -> loading on retry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional

from src.news.types import Story

LOGGER = logging.getLogger(__name__)

LOADING = "loading"
READY = "ready"
ERROR = "error"
MISSING = "missing"

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    LOADING: frozenset({READY, ERROR}),
    ERROR: frozenset({LOADING}),
    READY: frozenset(),
    MISSING: frozenset(),
}


def card_state_for(story: Story) -> str:
    """Render state for a story; placeholders carry theirs, real stories are ready."""
    if not story.is_placeholder:
        return READY
    if story.placeholder_state in (LOADING, ERROR):
        return story.placeholder_state
    return MISSING


@dataclass
class CardStateMachine:
    state: str = LOADING
    on_retry: Optional[Callable[[], Awaitable[Any]]] = None
    history: list = field(default_factory=list)

    def transition(self, target: str) -> None:
        if target not in TRANSITIONS.get(self.state, frozenset()):
            msg = f"Invalid card transition {self.state} -> {target}"
            raise ValueError(msg)
        self.history.append((self.state, target))
        self.state = target

    async def run(self, fetch: Callable[[], Awaitable[Any]]) -> Any:
        if self.state != LOADING:
            self.transition(LOADING)
        try:
            result = await fetch()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Card load failed: %s", exc)
            self.transition(ERROR)
            return None
        self.transition(READY)
        return result

    async def retry(self) -> Any:
        if self.state != ERROR:
            return None
        self.transition(LOADING)
        if self.on_retry is None:
            return None
        try:
            result = await self.on_retry()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Card retry failed: %s", exc)
            self.transition(ERROR)
            return None
        self.transition(READY if result else ERROR)
        return result

    @property
    def shows_error(self) -> bool:
        return self.state == ERROR

    @classmethod
    def for_story(cls, story: Story, on_retry: Optional[Callable[[], Awaitable[Any]]] = None) -> "CardStateMachine":
        return cls(state=card_state_for(story), on_retry=on_retry if story.placeholder_state == ERROR else None)
