"""
Agent Runtime - the single owned state object of the agent.

Holds the run flag, targeting config, status line, bounded thought log and
notifications. The scheduler, policy and every handler receive the same
instance, so a config edit or a pause is visible on the very next read.
"""

import logging
import random
from dataclasses import fields, replace
from datetime import date, datetime
from typing import Callable, List, Optional

from leadpilot.bus.events import EventBus
from leadpilot.models import (
    AgentConfig, AgentThought, Notification, FOCUS_MODES, THOUGHT_CATEGORIES,
)

logger = logging.getLogger(__name__)

MAX_THOUGHTS = 50
MAX_NOTIFICATIONS = 5

# Thought category -> log level for the log file
_THOUGHT_LOG_LEVELS = {
    'error': logging.ERROR,
    'warning': logging.WARNING,
    'wait': logging.DEBUG,
}


class AgentRuntime:
    """Mutable agent state shared by reference across the cycle."""

    def __init__(
        self,
        agent_config: Optional[AgentConfig] = None,
        bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.running = False
        self.config = agent_config or AgentConfig()
        self.status = 'Waiting'
        self.bus = bus or EventBus()
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.pending_drafts_count = 0
        self._thoughts: List[AgentThought] = []
        self._notifications: List[Notification] = []

    # -------------------------------------------------------------------------
    # Clock
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    @property
    def thoughts(self) -> List[AgentThought]:
        """Most recent first, at most MAX_THOUGHTS."""
        return list(self._thoughts)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    def add_thought(self, category: str, message: str) -> AgentThought:
        if category not in THOUGHT_CATEGORIES:
            raise ValueError(f"Unknown thought category '{category}'")
        thought = AgentThought(
            category=category, message=message, timestamp=self.now().strftime('%H:%M:%S'),
        )
        self._thoughts = [thought] + self._thoughts[:MAX_THOUGHTS - 1]
        logger.log(_THOUGHT_LOG_LEVELS.get(category, logging.INFO), f"[{category}] {message}")
        return thought

    def notify(self, title: str, message: str, level: str = 'info') -> Notification:
        note = Notification(title=title, message=message, level=level)
        self._notifications = [note] + self._notifications[:MAX_NOTIFICATIONS - 1]
        logger.info(f"Notification ({level}): {title} - {message}")
        return note

    def dismiss_notification(self, notification_id: str):
        self._notifications = [n for n in self._notifications if n.id != notification_id]

    def set_status(self, status: str):
        self.status = status

    # -------------------------------------------------------------------------
    # Config
    # -------------------------------------------------------------------------

    def update_config(self, **partial) -> AgentConfig:
        """Merge a partial update into the agent config. Takes effect on the next read."""
        allowed = {f.name for f in fields(AgentConfig)}
        invalid = set(partial) - allowed
        if invalid:
            raise ValueError(f"Invalid agent config fields: {invalid}")
        if 'focus_mode' in partial and partial['focus_mode'] not in FOCUS_MODES:
            raise ValueError(f"focus_mode must be one of {FOCUS_MODES}")

        self.config = replace(self.config, **partial)
        self.add_thought('decision', f"Configuration updated: {partial}")
        return self.config
