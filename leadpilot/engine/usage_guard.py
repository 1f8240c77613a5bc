"""
Usage Guard - daily AI budget.

Every metered AI call is preceded by UsageGuard.check_and_charge(). Once the
day's limit is reached the agent is paused and stays paused until the stored
date rolls over.
"""

import json
import logging
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Optional

from leadpilot.bus.events import EVENT_BUDGET_EXHAUSTED
from leadpilot.config import config
from leadpilot.engine.runtime import AgentRuntime
from leadpilot.models import UsageStats

logger = logging.getLogger(__name__)


class UsageStore:
    """
    Persists today's UsageStats as a JSON document.
    With path=None the counters live in memory only.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        default_limit: Optional[int] = None,
        cost_per_call: Optional[float] = None,
        today=None,
    ):
        self.path = Path(path) if path else None
        self.default_limit = default_limit if default_limit is not None else config.AGENT_DAILY_LIMIT
        self.cost_per_call = cost_per_call if cost_per_call is not None else config.AI_COST_PER_CALL
        self._today = today
        self._memory: Optional[dict] = None

    def today(self) -> str:
        return (self._today() if self._today else date.today()).isoformat()

    def _read(self) -> Optional[dict]:
        if self.path is None:
            return self._memory
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Usage file {self.path} unreadable, starting fresh: {e}")
            return None

    def _write(self, stats: UsageStats):
        if self.path is None:
            self._memory = asdict(stats)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(stats), indent=2), encoding='utf-8')

    def get(self) -> UsageStats:
        """Today's stats; a stored record from another day is replaced by fresh counters."""
        today = self.today()
        data = self._read()
        if data and data.get('date') == today:
            return UsageStats(**data)

        # The limit survives a day rollover, the counters don't
        limit = data.get('daily_limit', self.default_limit) if data else self.default_limit
        stats = UsageStats(date=today, ai_calls=0, daily_limit=limit, estimated_cost=0.0)
        self._write(stats)
        if data:
            logger.info(f"Usage counters reset for {today}")
        return stats

    def increment(self) -> UsageStats:
        stats = self.get()
        stats.ai_calls += 1
        stats.estimated_cost = round(stats.estimated_cost + self.cost_per_call, 6)
        self._write(stats)
        return stats

    def set_limit(self, limit: int) -> UsageStats:
        if limit < 0:
            raise ValueError("Daily limit cannot be negative")
        stats = self.get()
        stats.daily_limit = limit
        self._write(stats)
        logger.info(f"Daily AI limit set to {limit}")
        return stats


class UsageGuard:
    """Gate for every AI-consuming action."""

    def __init__(self, store: UsageStore, runtime: AgentRuntime):
        self.store = store
        self.runtime = runtime

    @property
    def daily_usage(self) -> int:
        return self.store.get().ai_calls

    @property
    def daily_limit(self) -> int:
        return self.store.get().daily_limit

    def can_start(self) -> bool:
        return not self.store.get().exhausted

    def check_and_charge(self) -> bool:
        """
        Charge one AI call against today's budget.
        Returns False (and pauses the agent) when the budget is already spent.
        """
        stats = self.store.get()
        if stats.exhausted:
            self.runtime.running = False
            self.runtime.set_status('Limit reached')
            self.runtime.notify('Safe mode', 'Daily AI budget reached. The agent has been paused.', 'warning')
            self.runtime.add_thought('error', 'Daily budget limit exceeded. Operations halted until tomorrow.')
            self.runtime.bus.emit(EVENT_BUDGET_EXHAUSTED, {
                'ai_calls': stats.ai_calls, 'daily_limit': stats.daily_limit,
            })
            return False

        stats = self.store.increment()
        logger.debug(f"AI call charged: {stats.ai_calls}/{stats.daily_limit}")
        return True
