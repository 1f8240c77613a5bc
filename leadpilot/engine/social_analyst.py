"""
Social Analyst - summarizes a lead's social media presence so later outreach
can open with something specific to the business.
"""

import logging
from typing import List

from leadpilot.bus.events import EVENT_SOCIAL_ANALYZED
from leadpilot.engine.ai_client import AIClientError
from leadpilot.engine.ai_json import AIJSONError, parse_ai_json
from leadpilot.engine.context import AgentContext
from leadpilot.engine.lead_scout import describe_error
from leadpilot.logging_config import log_call
from leadpilot.models import Lead, SocialProfile, STATUS_ACTIVE

logger = logging.getLogger(__name__)

MIN_SCORE_FOR_ANALYSIS = 2


def build_social_prompt(lead: Lead) -> str:
    return (
        f'Analyze the Instagram presence of "{lead.company_name}" ({lead.sector}, {lead.district}). '
        f'Reply with JSON: {{"username": "...", "bio": "...", '
        f'"recent_post_theme": "...", "suggested_dm_opener": "..."}}'
    )


def profile_from_data(data: dict, analyzed_at: str) -> SocialProfile:
    """Accepts both snake_case and camelCase keys from the model."""
    def pick(*keys):
        for key in keys:
            if data.get(key):
                return str(data[key]).strip()
        return ''

    return SocialProfile(
        username=pick('username'),
        bio=pick('bio'),
        recent_post_theme=pick('recent_post_theme', 'recentPostTheme'),
        suggested_dm_opener=pick('suggested_dm_opener', 'suggestedDmOpener'),
        last_analyzed=analyzed_at,
    )


def social_candidates(leads: List[Lead]) -> List[Lead]:
    return [
        lead for lead in leads
        if lead.lead_status == STATUS_ACTIVE
        and lead.email
        and lead.lead_score >= MIN_SCORE_FOR_ANALYSIS
        and lead.social_profile is None
    ]


@log_call
async def analyze_social(leads: List[Lead], ctx: AgentContext) -> bool:
    candidates = social_candidates(leads)
    if not candidates:
        return False
    target = candidates[0]
    if not ctx.guard.check_and_charge():
        return False

    runtime = ctx.runtime
    runtime.set_status(f"Analyzing social media of {target.company_name}...")
    runtime.add_thought('action', f"Analyzing the Instagram profile of {target.company_name}.")

    try:
        text = await ctx.ai.complete(build_social_prompt(target), response_format='json')
        data = parse_ai_json(text or '{}')
    except (AIClientError, AIJSONError) as e:
        runtime.add_thought('error', f"Social analysis failed for {target.company_name}: {describe_error(e)}")
        return False
    if not isinstance(data, dict):
        runtime.add_thought('error', f"Social analysis for {target.company_name} returned no profile.")
        return False

    target.social_profile = profile_from_data(data, runtime.now().isoformat(timespec='seconds'))
    await ctx.repository.update_lead(target)
    await ctx.repository.log_action('Auto-Social', f"{target.company_name} analyzed", 'success')
    runtime.bus.emit(EVENT_SOCIAL_ANALYZED, {'lead_id': target.id, 'username': target.social_profile.username})
    runtime.add_thought('success', f"Instagram analysis complete: {target.social_profile.username or target.company_name}")
    return True
