"""
Lead Scout - automated lead discovery and contact enrichment.

discover_leads  asks a search-enabled model for small local businesses in a
                district/sector, retries once with a stripped prompt, dedups
                by exact company name and stores the new leads.
enrich_lead     looks up phone/email for the first incomplete active lead and
                merges what it finds without overwriting existing values.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from leadpilot.bus.events import EVENT_LEAD_DISCOVERED, EVENT_LEAD_ENRICHED
from leadpilot.engine.ai_client import AIClientError, WEB_SEARCH_TOOL
from leadpilot.engine.ai_json import AIJSONError, parse_ai_json
from leadpilot.engine.context import AgentContext
from leadpilot.engine.targeting import Strategy, pick_district, pick_sector
from leadpilot.logging_config import log_call
from leadpilot.models import Lead, STATUS_ACTIVE, STATUS_INVALID

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def describe_error(error: Exception) -> str:
    """Short, human-readable reason for a failed AI step."""
    if isinstance(error, AIClientError):
        return error.user_message
    if isinstance(error, AIJSONError):
        return "Model output was not valid JSON."
    return f"{type(error).__name__}: {error}"


# =============================================================================
# DATA MODELS
# =============================================================================

@dataclass
class LeadCandidate:
    """A business returned by the search before it is stored as a Lead."""
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_item(cls, item: Any) -> Optional['LeadCandidate']:
        if not isinstance(item, dict):
            return None
        name = str(item.get('name') or item.get('company_name') or '').strip()
        if not name:
            return None
        address = item.get('address')
        phone = item.get('phone')
        return cls(
            name=name,
            address=str(address).strip() if address else None,
            phone=str(phone).strip() if phone else None,
        )


@dataclass
class SearchOutcome:
    """Result of one search attempt: either parsed data or the error that stopped it."""
    data: Optional[List[Any]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DiscoveryError(Exception):
    """Both the primary and the degraded discovery request failed."""

    def __init__(self, primary: Exception, fallback: Exception):
        self.primary = primary
        self.fallback = fallback
        super().__init__(
            f"Discovery failed. Primary: {describe_error(primary)} Fallback: {describe_error(fallback)}"
        )


# =============================================================================
# PROMPTS
# =============================================================================

def build_discovery_prompt(district: str, sector: str, strategy: Strategy) -> str:
    return f"""Find 2 LOCAL, independent businesses in the "{sector}" sector in {district}, Istanbul.

TARGET AUDIENCE ({strategy.label}):
{strategy.audience}

FILTER RULES:
- Exclude chains, franchises, hospitals, supermarkets and corporate groups.
- Only small or medium businesses (roughly 1-50 employees) whose owner can be reached.

Return a JSON array: [{{"name": "...", "address": "..."}}]"""


def build_degraded_discovery_prompt(district: str, sector: str) -> str:
    return (
        f'List 2 small independent "{sector}" businesses in {district}, Istanbul. '
        f'No chains. Reply with only a JSON array: [{{"name": "...", "address": "..."}}]'
    )


def build_enrichment_prompt(lead: Lead) -> str:
    return (
        f'Find the public phone number and email address of "{lead.company_name}" '
        f'({lead.district}, {lead.sector}). '
        f'Reply with JSON: {{"phone": "...", "email": "..."}}. Use "" for anything not found.'
    )


# =============================================================================
# DISCOVERY
# =============================================================================

async def _search(ctx: AgentContext, prompt: str, tools) -> SearchOutcome:
    try:
        text = await ctx.ai.complete(prompt, tools=tools, response_format='json')
        data = parse_ai_json(text or '[]')
    except (AIClientError, AIJSONError) as e:
        logger.warning(f"Discovery search attempt failed: {e}")
        return SearchOutcome(error=e)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return SearchOutcome(error=AIJSONError(f"Expected a JSON array, got {type(data).__name__}"))
    return SearchOutcome(data=data)


async def search_businesses(ctx: AgentContext, district: str, sector: str, strategy: Strategy) -> SearchOutcome:
    """
    Primary search with web search enabled; on any failure one degraded retry
    without tools. If both fail the outcome carries a DiscoveryError.
    The retry is a second metered call and is charged separately.
    """
    primary = await _search(ctx, build_discovery_prompt(district, sector, strategy), [WEB_SEARCH_TOOL])
    if primary.ok:
        return primary

    ctx.runtime.add_thought('warning', f"Search failed ({describe_error(primary.error)}). Retrying with a simpler request.")
    if not ctx.guard.check_and_charge():
        return SearchOutcome(error=DiscoveryError(primary.error, AIClientError('rate_limited', 'daily budget reached')))

    fallback = await _search(ctx, build_degraded_discovery_prompt(district, sector), None)
    if fallback.ok:
        return fallback
    return SearchOutcome(error=DiscoveryError(primary.error, fallback.error))


def check_duplicate(candidate: LeadCandidate, existing_names: set) -> bool:
    """Exact company-name match against stored leads."""
    return candidate.name in existing_names


async def insert_lead(
    ctx: AgentContext,
    candidate: LeadCandidate,
    district: str,
    sector: str,
    strategy: Strategy,
) -> Lead:
    lead = Lead(
        company_name=candidate.name,
        sector=sector,
        district=district,
        address=candidate.address or district,
        phone='',
        email='',
        source='agent_discovery',
        lead_status=STATUS_ACTIVE,
        lead_score=1,
        missing_fields=['email', 'phone'],
        notes=f"Discovered by the agent ({strategy.label}).",
    )
    await ctx.repository.create_lead(lead)
    ctx.runtime.bus.emit(EVENT_LEAD_DISCOVERED, {'lead_id': lead.id, 'company_name': lead.company_name})
    return lead


@log_call
async def discover_leads(leads: List[Lead], ctx: AgentContext) -> bool:
    """
    Source new leads. Returns False only when the usage guard refuses;
    a search that finds nothing new still counts as an action.
    """
    if not ctx.guard.check_and_charge():
        return False

    runtime = ctx.runtime
    district = pick_district(runtime.config, runtime.rng)
    sector = pick_sector(runtime.config, runtime.rng)
    strategy = ctx.rotator.next_strategy()

    runtime.set_status(f"Scanning {sector} in {district}...")
    runtime.add_thought('action', f"Started a {strategy.label} scan for {sector} businesses in {district}.")

    outcome = await search_businesses(ctx, district, sector, strategy)
    if not outcome.ok:
        runtime.set_status('Discovery failed')
        runtime.add_thought('error', str(outcome.error))
        await ctx.repository.log_action('Auto-Discovery', str(outcome.error), 'error')
        return True

    # Re-read so leads created by other writers since the tick started count for dedup
    existing_names = {lead.company_name for lead in await ctx.repository.get_leads()}
    added: List[Lead] = []
    for item in outcome.data:
        candidate = LeadCandidate.from_item(item)
        if candidate is None:
            continue
        if check_duplicate(candidate, existing_names):
            logger.debug(f"Skipping duplicate: {candidate.name}")
            continue
        added.append(await insert_lead(ctx, candidate, district, sector, strategy))
        existing_names.add(candidate.name)

    if added:
        await ctx.repository.log_action('Auto-Discovery', f"{len(added)} new leads added", 'success')
        runtime.add_thought('success', f"{len(added)} new businesses added to the pipeline.")
    else:
        runtime.set_status('No new businesses found (duplicates)')
        runtime.add_thought('analysis', 'The businesses found are already in the pipeline.')
    return True


# =============================================================================
# ENRICHMENT
# =============================================================================

def merge_contact_details(lead: Lead, data: Dict[str, Any]) -> Dict[str, str]:
    """
    Fill empty phone/email from lookup data. Existing values are never overwritten.
    Returns the fields that were actually added.
    """
    added = {}
    email = str(data.get('email') or '').strip()
    phone = str(data.get('phone') or '').strip()

    if not lead.email and email and _EMAIL_RE.match(email):
        lead.email = email
        added['email'] = email
    if not lead.phone and phone:
        lead.phone = phone
        added['phone'] = phone

    lead.refresh_missing_fields()
    return added


def enrichment_candidates(leads: List[Lead], ctx: AgentContext) -> List[Lead]:
    """
    Active leads still missing contact details, leads without an email first.
    A lead with an email is only a candidate while 'phone' is in its
    missing_fields; a lookup that finds no phone removes it from there.
    """
    agent_config = ctx.runtime.config
    pool = [lead for lead in leads if lead.lead_status == STATUS_ACTIVE and agent_config.matches(lead)]
    no_email = [lead for lead in pool if not lead.email]
    phone_only = [lead for lead in pool if lead.email and not lead.phone and 'phone' in lead.missing_fields]
    return no_email + phone_only


@log_call
async def enrich_lead(leads: List[Lead], ctx: AgentContext) -> bool:
    """
    Look up contact details for the first incomplete active lead.
    A lead for which no email can be found is marked invalid and not retried.
    """
    candidates = enrichment_candidates(leads, ctx)
    if not candidates:
        return False
    target = candidates[0]
    if not ctx.guard.check_and_charge():
        return False

    runtime = ctx.runtime
    runtime.set_status(f"Enriching {target.company_name}...")
    runtime.add_thought('action', f"Searching contact details for {target.company_name}.")

    try:
        text = await ctx.ai.complete(build_enrichment_prompt(target), tools=[WEB_SEARCH_TOOL], response_format='json')
        data = parse_ai_json(text or '{}')
    except (AIClientError, AIJSONError) as e:
        runtime.add_thought('error', f"Enrichment failed for {target.company_name}: {describe_error(e)}")
        return False
    if not isinstance(data, dict):
        data = {}

    added = merge_contact_details(target, data)

    if target.email and 'email' in added:
        target.bump_score(3 if 'phone' in added else 2)
        await ctx.repository.update_lead(target)
        await ctx.repository.log_action('Auto-Enrichment', f"{target.company_name}: {', '.join(added)}", 'success')
        runtime.bus.emit(EVENT_LEAD_ENRICHED, {'lead_id': target.id, 'fields': list(added)})
        runtime.add_thought('success', f"{target.company_name} updated: {', '.join(added)}.")
        return True

    if target.email:
        # Email was already on file; only the phone was missing
        if added:
            target.bump_score(1)
            runtime.bus.emit(EVENT_LEAD_ENRICHED, {'lead_id': target.id, 'fields': list(added)})
            runtime.add_thought('success', f"{target.company_name} updated: phone.")
        else:
            # Not looked up again
            target.missing_fields = [f for f in target.missing_fields if f != 'phone']
            runtime.add_thought('analysis', f"No phone found for {target.company_name}. Not retrying.")
        await ctx.repository.update_lead(target)
        return True

    target.lead_status = STATUS_INVALID
    target.add_note("Skipped by the agent: no email address could be found (phone-only leads are not pursued).")
    await ctx.repository.update_lead(target)
    await ctx.repository.log_action('Auto-Enrichment', f"{target.company_name}: no email, marked invalid", 'warning')
    runtime.add_thought('analysis', f"No email found for {target.company_name}. Marked invalid and skipped.")
    return True
