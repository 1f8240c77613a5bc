"""
Decision Policy - one pass of the agent cycle.

Handlers are tried in a fixed priority order and the pass stops at the first
one that acts:

  1. reply drafting     (service existing conversations first)
  2. social analysis
  3. outreach           (leads ready for first contact)
  4. enrichment         (active leads without an email)
  5. discovery          (fewer than LOW_POOL_THRESHOLD active leads)

Focus modes: 'discovery_only' skips straight to discovery, 'outreach_only'
never runs it.

A handler refused by the usage guard leaves the agent paused; the pass ends
there instead of falling through to the next handler.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from leadpilot.bus.events import EVENT_CYCLE_COMPLETE
from leadpilot.engine.approvals import refresh_pending_drafts
from leadpilot.engine.context import AgentContext
from leadpilot.engine.lead_scout import discover_leads, enrich_lead
from leadpilot.engine.outreach import send_first_contact
from leadpilot.engine.reply_drafter import draft_reply
from leadpilot.engine.social_analyst import analyze_social
from leadpilot.engine.targeting import is_business_hours
from leadpilot.models import Lead, STATUS_ACTIVE

logger = logging.getLogger(__name__)

LOW_POOL_THRESHOLD = 5

Handler = Callable[[List[Lead], AgentContext], Awaitable[bool]]


class DecisionPolicy:
    """Runs at most one action handler per pass."""

    def __init__(self, ctx: AgentContext):
        self.ctx = ctx

    async def _try(self, name: str, handler: Handler, leads: List[Lead]) -> Optional[str]:
        acted = await handler(leads, self.ctx)
        logger.debug(f"Handler {name}: {'acted' if acted else 'skipped'}")
        return name if acted else None

    async def _discover(self, leads: List[Lead]) -> str:
        # A discovery attempt counts as an action even when nothing new turns up
        await discover_leads(leads, self.ctx)
        return 'discovery'

    async def _select_and_run(self, leads: List[Lead]) -> Optional[str]:
        runtime = self.ctx.runtime
        agent_config = runtime.config

        if agent_config.focus_mode == 'discovery_only':
            runtime.add_thought('decision', 'Focus mode is discovery only. Searching for new leads.')
            return await self._discover(leads)

        acted = await self._try('reply_drafting', draft_reply, leads)
        if acted or not runtime.running:
            return acted
        acted = await self._try('social_analysis', analyze_social, leads)
        if acted or not runtime.running:
            return acted

        active = [lead for lead in leads if lead.lead_status == STATUS_ACTIVE and agent_config.matches(lead)]
        ready = [lead for lead in active if lead.email and not lead.last_contact_date]
        needs_enrichment = [lead for lead in active if not lead.email]
        low_pool = len(active) < LOW_POOL_THRESHOLD

        if ready:
            acted = await self._try('outreach', send_first_contact, leads)
            if acted:
                return acted

        if needs_enrichment:
            runtime.add_thought('decision', 'Leads with missing details found. Starting enrichment.')
            acted = await self._try('enrichment', enrich_lead, leads)
            if acted or not runtime.running:
                return acted

        if low_pool and agent_config.focus_mode != 'outreach_only':
            runtime.add_thought('decision', 'The pipeline is running low. Searching for new leads.')
            return await self._discover(leads)

        return None

    async def run_tick(self) -> Optional[str]:
        """
        Run one decision pass against a fresh read of the lead pool.
        Returns the name of the handler that acted, or None.
        """
        runtime = self.ctx.runtime
        leads = await self.ctx.repository.get_leads()
        runtime.add_thought('decision', 'Cycle started: scanning the pipeline for opportunities.')

        acted = await self._select_and_run(leads)
        await refresh_pending_drafts(self.ctx)

        if runtime.running:
            if acted is None:
                if is_business_hours(runtime.now()):
                    runtime.set_status('Idle (looking for work...)')
                    runtime.add_thought('wait', 'No pending work found. Waiting for the next cycle.')
                else:
                    runtime.set_status('Outside business hours (sleeping)')
                    runtime.add_thought('wait', 'Outside business hours, so the agent is sleeping.')
            else:
                runtime.set_status('Monitoring...')

        runtime.bus.emit(EVENT_CYCLE_COMPLETE, {'action': acted})
        return acted
