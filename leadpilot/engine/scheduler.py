"""
Cycle Scheduler - drives the decision policy on a fixed interval.

    stopped --start()--> running --stop()/budget--> stopped

start() fires one pass immediately, then one every `interval` seconds.
stop() cancels the timer but lets a pass that is already in flight finish.
Passes never overlap: a timer tick that finds a pass in flight is skipped.

Usage:
    scheduler = build_agent(config)
    asyncio.run(scheduler.run_forever())
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from leadpilot.bus.events import EVENT_AGENT_STARTED, EVENT_AGENT_STOPPED
from leadpilot.engine.ai_client import AIClient
from leadpilot.engine.context import AgentContext
from leadpilot.engine.mailer import get_mailer
from leadpilot.engine.policy import DecisionPolicy
from leadpilot.engine.repository import get_repository
from leadpilot.engine.runtime import AgentRuntime
from leadpilot.engine.usage_guard import UsageGuard, UsageStore
from leadpilot.models import AgentConfig, AgentThought, Notification

logger = logging.getLogger(__name__)


class CycleScheduler:
    def __init__(self, ctx: AgentContext, interval: float = 20.0, policy: Optional[DecisionPolicy] = None):
        self.ctx = ctx
        self.runtime = ctx.runtime
        self.interval = interval
        self.policy = policy or DecisionPolicy(ctx)
        self._in_flight = False
        self._timer: Optional[asyncio.Task] = None
        self._pass_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.runtime.running

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def status(self) -> str:
        return self.runtime.status

    @property
    def thoughts(self) -> List[AgentThought]:
        return self.runtime.thoughts

    @property
    def notifications(self) -> List[Notification]:
        return self.runtime.notifications

    @property
    def daily_usage(self) -> int:
        return self.ctx.guard.daily_usage

    @property
    def daily_limit(self) -> int:
        return self.ctx.guard.daily_limit

    @property
    def pending_drafts_count(self) -> int:
        return self.runtime.pending_drafts_count

    def update_config(self, **partial) -> AgentConfig:
        return self.runtime.update_config(**partial)

    # -------------------------------------------------------------------------
    # Run / pause
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """Start the cycle. Refused (returns False) when today's AI budget is spent."""
        runtime = self.runtime
        if runtime.running:
            return True
        if not self.ctx.guard.can_start():
            runtime.notify('Limit reached', 'Daily AI budget is spent. The agent cannot start until tomorrow.', 'warning')
            runtime.add_thought('decision', 'Start refused: the daily AI budget is already used up.')
            return False

        runtime.running = True
        runtime.set_status('Starting...')
        runtime.notify('Autopilot on', 'The agent is now working in the background.', 'success')
        runtime.add_thought('decision', 'Agent started.')
        runtime.bus.emit(EVENT_AGENT_STARTED, {})
        self._timer = asyncio.create_task(self._tick_loop())
        return True

    async def stop(self):
        """Pause the cycle. A pass already in flight is allowed to finish."""
        was_running = self.runtime.running
        self.runtime.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if was_running:
            self.runtime.set_status('Paused')
            self.runtime.notify('Autopilot off', 'The agent has been paused.', 'info')
            self.runtime.bus.emit(EVENT_AGENT_STOPPED, {})

    async def toggle(self) -> bool:
        """Flip between running and stopped. Returns the new running state."""
        if self.runtime.running:
            await self.stop()
        else:
            await self.start()
        return self.runtime.running

    async def wait_idle(self):
        """Wait for an in-flight pass, if any, to finish."""
        if self._pass_task is not None and not self._pass_task.done():
            await self._pass_task

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def run_cycle_now(self) -> Optional[str]:
        """Run one pass right away. Does nothing when stopped or when a pass is in flight."""
        if not self.runtime.running:
            self.runtime.set_status('Paused')
            return None
        if self._in_flight:
            logger.debug("Pass already in flight, skipping")
            return None
        return await self._run_pass()

    async def run_single_pass(self) -> Optional[str]:
        """
        One pass without the timer, for one-shot runs from the command line.
        Refused like start() when the budget is spent; leaves the agent stopped.
        """
        if not self.ctx.guard.can_start():
            self.runtime.add_thought('decision', 'Pass refused: the daily AI budget is already used up.')
            return None
        self.runtime.running = True
        try:
            return await self.run_cycle_now()
        finally:
            self.runtime.running = False

    async def _run_pass(self) -> Optional[str]:
        # Checked and set with no await in between, so two passes can never interleave
        if not self.runtime.running or self._in_flight:
            return None
        self._in_flight = True
        try:
            return await self.policy.run_tick()
        except Exception as e:
            logger.exception(f"Agent cycle failed: {e}")
            self.runtime.set_status('Error')
            self.runtime.add_thought('error', f"Critical cycle error ({type(e).__name__}). Retrying on the next cycle.")
            return None
        finally:
            self._in_flight = False

    async def _tick_loop(self):
        while self.runtime.running:
            if not self._in_flight:
                self._pass_task = asyncio.create_task(self._run_pass())
            await asyncio.sleep(self.interval)
        logger.info("Tick loop stopped")

    async def run_forever(self, poll_seconds: float = 0.5):
        """
        Start and keep running until the agent stops (budget pause or stop()).
        Always waits for the last pass before returning.
        """
        if not await self.start():
            return
        try:
            while self.runtime.running:
                await asyncio.sleep(poll_seconds)
        finally:
            await self.stop()
            await self.wait_idle()


# =============================================================================
# FACTORY
# =============================================================================

def build_context(cfg, rng: Optional[random.Random] = None) -> AgentContext:
    """Wire the runtime and its collaborators from configuration."""
    tz = ZoneInfo(cfg.TIMEZONE)
    runtime = AgentRuntime(rng=rng, clock=lambda: datetime.now(tz))
    store = UsageStore(
        path=cfg.DATA_DIR / 'usage.json',
        default_limit=cfg.AGENT_DAILY_LIMIT,
        cost_per_call=cfg.AI_COST_PER_CALL,
        today=runtime.today,
    )
    return AgentContext(
        runtime=runtime,
        repository=get_repository(cfg),
        ai=AIClient(model=cfg.DEFAULT_AI_MODEL),
        mailer=get_mailer(cfg),
        guard=UsageGuard(store, runtime),
    )


def build_agent(cfg) -> CycleScheduler:
    return CycleScheduler(build_context(cfg), interval=cfg.AGENT_TICK_SECONDS)
