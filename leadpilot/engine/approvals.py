"""
Approvals - the human side of the pipeline.

approve_draft         send an AI-drafted reply (optionally edited) and move the lead back to nurturing
discard_draft         drop the draft without sending
record_proposal_sent  mark a proposal as sent and schedule the follow-up call
"""

import logging
from datetime import timedelta
from typing import Optional

from leadpilot.bus.events import EVENT_DRAFT_APPROVED, EVENT_DRAFT_DISCARDED, EVENT_PROPOSAL_SENT
from leadpilot.engine.context import AgentContext
from leadpilot.logging_config import log_call
from leadpilot.models import Lead, Task, STATUS_NURTURING, STATUS_PROPOSAL_SENT

logger = logging.getLogger(__name__)

PROPOSAL_FOLLOW_UP_DAYS = 3


async def _load_lead(ctx: AgentContext, lead_id: str) -> Lead:
    lead = await ctx.repository.get_lead(lead_id)
    if lead is None:
        raise ValueError(f"Lead {lead_id} not found")
    return lead


async def refresh_pending_drafts(ctx: AgentContext) -> int:
    """Recount leads with a draft awaiting approval into runtime.pending_drafts_count."""
    leads = await ctx.repository.get_leads()
    ctx.runtime.pending_drafts_count = sum(1 for lead in leads if lead.has_pending_draft())
    return ctx.runtime.pending_drafts_count


@log_call
async def approve_draft(
    ctx: AgentContext,
    lead_id: str,
    subject: Optional[str] = None,
    body: Optional[str] = None,
) -> Lead:
    """
    Send the lead's pending draft. subject/body override the drafted text.
    Raises MailerError if the send fails; the lead is then left untouched.
    """
    lead = await _load_lead(ctx, lead_id)
    if lead.draft_response is None:
        raise ValueError(f"Lead {lead_id} has no pending draft")
    if not lead.email:
        raise ValueError(f"Lead {lead_id} has no email address")

    final_subject = subject or lead.draft_response.subject
    final_body = body or lead.draft_response.body
    await ctx.mailer.send(lead.email, final_subject, final_body)

    lead.draft_response = None
    lead.lead_status = STATUS_NURTURING
    lead.last_contact_date = ctx.runtime.today().isoformat()
    lead.add_note(f"[Email] Approved reply sent: {final_subject}")
    await ctx.repository.update_lead(lead)
    await ctx.repository.log_action('Reply Sent', f"{lead.company_name}: {final_subject}", 'success')

    await refresh_pending_drafts(ctx)
    ctx.runtime.bus.emit(EVENT_DRAFT_APPROVED, {'lead_id': lead.id})
    ctx.runtime.notify('Sent', f"Reply sent to {lead.company_name}.", 'success')
    return lead


@log_call
async def discard_draft(ctx: AgentContext, lead_id: str) -> Lead:
    lead = await _load_lead(ctx, lead_id)
    if lead.draft_response is None:
        raise ValueError(f"Lead {lead_id} has no pending draft")

    lead.draft_response = None
    lead.lead_status = STATUS_NURTURING
    await ctx.repository.update_lead(lead)
    await ctx.repository.log_action('Draft Discarded', lead.company_name, 'info')

    await refresh_pending_drafts(ctx)
    ctx.runtime.bus.emit(EVENT_DRAFT_DISCARDED, {'lead_id': lead.id})
    return lead


@log_call
async def record_proposal_sent(ctx: AgentContext, lead_id: str) -> Task:
    """
    Mark a proposal as sent today and create a high-priority check-back task
    due in PROPOSAL_FOLLOW_UP_DAYS days. Returns the task.
    """
    lead = await _load_lead(ctx, lead_id)
    today = ctx.runtime.today()

    lead.lead_status = STATUS_PROPOSAL_SENT
    lead.last_contact_date = today.isoformat()
    await ctx.repository.update_lead(lead)

    task = Task(
        company_name=lead.company_name,
        lead_status=STATUS_PROPOSAL_SENT,
        task_type='proposal_check',
        description=f"Proposal sent, call back in {PROPOSAL_FOLLOW_UP_DAYS} days.",
        priority='high',
        due_date=(today + timedelta(days=PROPOSAL_FOLLOW_UP_DAYS)).isoformat(),
        status='open',
    )
    await ctx.repository.create_task(task)
    await ctx.repository.log_action('Proposal Sent', lead.company_name, 'success')

    ctx.runtime.bus.emit(EVENT_PROPOSAL_SENT, {'lead_id': lead.id, 'task_id': task.id})
    logger.info(f"Proposal recorded for {lead.company_name}, follow-up due {task.due_date}")
    return task
