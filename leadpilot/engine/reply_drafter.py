"""
Reply Drafter - simulates an inbound reply from a contacted lead and drafts
an answer for human approval.

There is no real inbound channel: a random admission check models "this lead
wrote back". The drafted reply is never sent by the agent; see approvals.py.
"""

import logging
from typing import List, Optional

from leadpilot.bus.events import EVENT_DRAFT_READY
from leadpilot.config import config
from leadpilot.engine.ai_client import AIClientError
from leadpilot.engine.ai_json import AIJSONError, parse_ai_json
from leadpilot.engine.context import AgentContext
from leadpilot.engine.lead_scout import describe_error
from leadpilot.logging_config import log_call
from leadpilot.models import (
    DraftResponse, Lead, STATUS_AWAITING_APPROVAL, STATUS_NURTURING, STATUS_PROPOSAL_SENT,
)

logger = logging.getLogger(__name__)

REPLY_STATUSES = (STATUS_NURTURING, STATUS_PROPOSAL_SENT)

DEFAULT_INBOUND_MESSAGE = "What are your prices?"


def build_inbound_prompt(lead: Lead) -> str:
    return (
        f"ROLE: owner of {lead.company_name}. SITUATION: you received a sales email about a website. "
        f"TASK: write a one-line reply such as 'What are your prices?' or 'Do you have examples?'"
    )


def build_draft_prompt(lead: Lead, inbound: str) -> str:
    return (
        f"TASK: analyze the customer's reply and draft an answer on behalf of the agency.\n"
        f"CUSTOMER ({lead.company_name}): \"{inbound}\"\n"
        f'JSON: {{"subject": "...", "body": "...", "intent": "..."}}'
    )


def pick_reply_target(leads: List[Lead], ctx: AgentContext) -> Optional[Lead]:
    """First contacted lead without a draft that passes the random admission check."""
    p = config.REPLY_ADMISSION_PROBABILITY
    for lead in leads:
        if lead.lead_status in REPLY_STATUSES and lead.draft_response is None:
            if ctx.runtime.rng.random() < p:
                return lead
    return None


@log_call
async def draft_reply(leads: List[Lead], ctx: AgentContext) -> bool:
    target = pick_reply_target(leads, ctx)
    if target is None:
        return False
    if not ctx.guard.check_and_charge():
        return False

    runtime = ctx.runtime
    runtime.set_status(f"Analyzing the reply from {target.company_name}...")
    runtime.add_thought('analysis', f"Analyzing signals from {target.company_name} (simulated reply).")

    try:
        inbound = (await ctx.ai.complete(build_inbound_prompt(target)) or '').strip() or DEFAULT_INBOUND_MESSAGE
        if not ctx.guard.check_and_charge():
            return False
        text = await ctx.ai.complete(build_draft_prompt(target, inbound), response_format='json')
        data = parse_ai_json(text or '{}')
    except (AIClientError, AIJSONError) as e:
        runtime.add_thought('error', f"Reply drafting failed for {target.company_name}: {describe_error(e)}")
        return False
    if not isinstance(data, dict) or not data.get('body'):
        runtime.add_thought('error', f"Reply draft for {target.company_name} came back empty.")
        return False

    target.draft_response = DraftResponse(
        subject=str(data.get('subject') or f"Re: {target.company_name}"),
        body=str(data['body']),
        intent=str(data.get('intent') or ''),
        created_at=runtime.now().isoformat(timespec='seconds'),
    )
    target.lead_status = STATUS_AWAITING_APPROVAL
    target.add_note(f"[Customer]: {inbound}")
    await ctx.repository.update_lead(target)
    await ctx.repository.log_action('Auto-Reply Draft', target.company_name, 'info')

    runtime.pending_drafts_count += 1
    runtime.bus.emit(EVENT_DRAFT_READY, {'lead_id': target.id, 'intent': target.draft_response.intent})
    runtime.add_thought('decision', f"Reply draft for {target.company_name} created and sent for approval.")
    return True
