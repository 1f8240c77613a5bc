"""
Outreach - template-based first-contact email.

Only runs during business hours. The lead is updated only after the mailer
confirms the send, so a failed send leaves it eligible for a later tick.
"""

import logging
from typing import Dict, List, Optional

from leadpilot.bus.events import EVENT_EMAIL_SENT
from leadpilot.engine.context import AgentContext
from leadpilot.engine.mailer import MailerError
from leadpilot.engine.targeting import is_business_hours
from leadpilot.logging_config import log_call
from leadpilot.models import Lead, STATUS_NURTURING

logger = logging.getLogger(__name__)


# =============================================================================
# MESSAGE
# =============================================================================

def build_contact_context(lead: Lead) -> str:
    """Short summary of the lead, used for logging and notes."""
    parts = [f"Business: {lead.company_name}"]
    if lead.sector:
        parts.append(f"Sector: {lead.sector}")
    if lead.district:
        parts.append(f"District: {lead.district}")
    if lead.social_profile and lead.social_profile.username:
        parts.append(f"Instagram: @{lead.social_profile.username}")
    return "\n".join(parts)


def compose_first_contact(lead: Lead) -> Dict[str, str]:
    """
    Subject and body of the first-contact email.
    The social profile's DM opener, when present, becomes the first paragraph.
    """
    subject = f"[{lead.company_name}] Your website draft is ready"
    body = (
        f"Hello, I prepared a modern website demo for {lead.company_name}.\n\n"
        f"Would you take a look?\n\n"
    )
    if lead.social_profile and lead.social_profile.suggested_dm_opener:
        body = f"{lead.social_profile.suggested_dm_opener}\n\n" + body
    body += "If you'd like to talk about the details, just reply to this email.\n\nBest regards,\nAI Sales Agent"
    return {'subject': subject, 'body': body}


# =============================================================================
# HANDLER
# =============================================================================

def ready_to_contact(leads: List[Lead], ctx: AgentContext) -> List[Lead]:
    agent_config = ctx.runtime.config
    return [lead for lead in leads if lead.is_outreach_eligible() and agent_config.matches(lead)]


def pick_outreach_target(candidates: List[Lead]) -> Optional[Lead]:
    """First lead with a social profile, else the first lead. Pool order breaks ties."""
    for lead in candidates:
        if lead.social_profile is not None:
            return lead
    return candidates[0] if candidates else None


@log_call
async def send_first_contact(leads: List[Lead], ctx: AgentContext) -> bool:
    runtime = ctx.runtime
    if not is_business_hours(runtime.now()):
        runtime.set_status('Outside business hours (waiting...)')
        runtime.add_thought('wait', 'Outside business hours, so first-contact email is paused.')
        return False

    target = pick_outreach_target(ready_to_contact(leads, ctx))
    if target is None:
        return False

    runtime.set_status(f"Sending email to {target.company_name}...")
    runtime.add_thought('action', f"Starting first contact with {target.company_name}.")
    logger.debug(f"Outreach target:\n{build_contact_context(target)}")

    message = compose_first_contact(target)
    try:
        receipt = await ctx.mailer.send(target.email, message['subject'], message['body'])
    except MailerError as e:
        await ctx.repository.log_action('Email Failed', f"{target.company_name}: {e}", 'error')
        runtime.add_thought('error', f"Sending email to {target.company_name} failed.")
        return False

    kind = 'personalized' if target.social_profile else 'standard'
    target.lead_status = STATUS_NURTURING
    target.last_contact_date = runtime.today().isoformat()
    target.add_note(f"[Email] Autopilot: {kind} first-contact email sent ({message['subject']}).")
    await ctx.repository.update_lead(target)
    await ctx.repository.log_action('Email Sent', f"{target.company_name} ({kind})", 'success')

    runtime.bus.emit(EVENT_EMAIL_SENT, {'lead_id': target.id, 'to': target.email, 'receipt': receipt})
    runtime.add_thought('success', f"First contact made with {target.company_name}. (Nurturing)")
    return True
