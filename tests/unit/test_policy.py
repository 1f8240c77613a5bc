"""
Unit tests for the decision policy (leadpilot/engine/policy.py).

Every test drives one run_tick() against an in-memory context. FakeAI
raises AssertionError on any unscripted call, so a handler running when it
should not fails the test.
"""

import asyncio
import json

from leadpilot.bus.events import EVENT_CYCLE_COMPLETE
from leadpilot.engine.policy import DecisionPolicy, LOW_POOL_THRESHOLD
from leadpilot.models import AgentConfig, DraftResponse
from tests.fakes import (
    FakeAI, SATURDAY_MORNING, TUESDAY_EVENING, ScriptedRandom, make_ctx, make_lead,
)

DRAFT_JSON = '{"subject": "Re: prices", "body": "Our packages start at ...", "intent": "pricing"}'


def run(coro):
    return asyncio.run(coro)


def tick(ctx):
    ctx.runtime.running = True
    return run(DecisionPolicy(ctx).run_tick())


def complete_leads(n, **overrides):
    """Active leads with full contact details that were already contacted."""
    values = dict(email='x@b.co', phone='1', last_contact_date='2026-10-01')
    values.update(overrides)
    return [make_lead(company_name=f'Full {i}', **values) for i in range(n)]


# ---------------------------------------------------------------------------
# Priority order
# ---------------------------------------------------------------------------

def test_reply_drafting_preempts_outreach():
    leads = [
        make_lead(company_name='Contacted', email='c@b.co', lead_status='nurturing'),
        make_lead(company_name='Ready', email='r@b.co'),
    ]
    ctx = make_ctx(leads=leads, ai=FakeAI(['Hi', DRAFT_JSON]), rng=ScriptedRandom([0.1]))

    assert tick(ctx) == 'reply_drafting'
    assert ctx.mailer.sent == []


def test_social_analysis_before_outreach():
    ctx = make_ctx(
        leads=[make_lead(email='r@b.co', lead_score=3)],
        ai=FakeAI(['{"username": "acme", "suggestedDmOpener": "Hi!"}']),
    )
    assert tick(ctx) == 'social_analysis'
    assert ctx.mailer.sent == []


def test_one_action_per_tick():
    leads = [make_lead(company_name='Ready', email='r@b.co'), make_lead(company_name='Bare')]
    ctx = make_ctx(leads=leads)

    assert tick(ctx) == 'outreach'

    assert len(ctx.mailer.sent) == 1
    assert ctx.guard.daily_usage == 0
    bare = [lead for lead in run(ctx.repository.get_leads()) if lead.company_name == 'Bare'][0]
    assert bare.lead_status == 'active'


def test_outreach_outside_hours_falls_through_to_enrichment():
    leads = [make_lead(company_name='Ready', email='r@b.co', phone='1'), make_lead(company_name='Bare')]
    ctx = make_ctx(leads=leads, now=SATURDAY_MORNING, ai=FakeAI(['{"email": "bare@b.co"}']))

    assert tick(ctx) == 'enrichment'
    assert ctx.mailer.sent == []


def test_night_enrichment_targets_lead_without_email():
    leads = [
        make_lead(company_name='Has Email', email='a@b.co'),
        make_lead(company_name='No Email'),
    ]
    ai = FakeAI(['{"phone": "", "email": ""}'])
    ctx = make_ctx(
        leads=leads, ai=ai, now=TUESDAY_EVENING,
        agent_config=AgentConfig(focus_mode='outreach_only'),
    )

    actions = [tick(ctx) for _ in range(5)]

    assert actions == ['enrichment', None, None, None, None]
    assert 'No Email' in ai.calls[0]['prompt']
    assert ctx.guard.daily_usage == 1
    by_name = {lead.company_name: lead for lead in run(ctx.repository.get_leads())}
    assert by_name['No Email'].lead_status == 'invalid'
    assert by_name['Has Email'].lead_status == 'active'


# ---------------------------------------------------------------------------
# Budget exhaustion
# ---------------------------------------------------------------------------

def test_spent_budget_ends_the_pass_with_one_notification():
    leads = [
        make_lead(company_name='Contacted', email='c@b.co', lead_status='nurturing'),
        make_lead(company_name='Rated', email='r@b.co', lead_score=3),
        make_lead(company_name='Bare'),
    ]
    ai = FakeAI()
    ctx = make_ctx(leads=leads, ai=ai, limit=3, used=3, rng=ScriptedRandom(default=0.0))

    assert tick(ctx) is None

    warnings = [n for n in ctx.runtime.notifications if n.level == 'warning']
    errors = [t for t in ctx.runtime.thoughts if t.category == 'error']
    assert len(warnings) == 1
    assert len(errors) == 1
    assert ai.calls == []
    assert ctx.mailer.sent == []
    assert ctx.runtime.running is False
    assert ctx.runtime.status == 'Limit reached'


def test_budget_spent_mid_draft_sends_no_outreach():
    leads = [
        make_lead(company_name='Contacted', email='c@b.co', lead_status='nurturing'),
        make_lead(company_name='Ready', email='r@b.co', phone='1'),
    ]
    ai = FakeAI(['What are your prices?'])
    ctx = make_ctx(leads=leads, ai=ai, limit=1, rng=ScriptedRandom([0.1]))

    assert tick(ctx) is None

    assert len(ai.calls) == 1
    assert ctx.mailer.sent == []
    assert ctx.runtime.running is False


def test_low_pool_triggers_discovery():
    ai = FakeAI([json.dumps([{'name': 'Yeni Dükkan'}])])
    ctx = make_ctx(ai=ai)

    assert tick(ctx) == 'discovery'
    assert ctx.rotator.index == 1
    assert [lead.company_name for lead in run(ctx.repository.get_leads())] == ['Yeni Dükkan']


def test_failed_discovery_still_counts_as_action():
    ctx = make_ctx(ai=FakeAI(['no json', 'still no json']))
    assert tick(ctx) == 'discovery'
    assert ctx.runtime.status == 'Monitoring...'


def test_full_pool_skips_discovery():
    ctx = make_ctx(leads=complete_leads(LOW_POOL_THRESHOLD))
    assert tick(ctx) is None
    assert ctx.rotator.index == 0


def test_pool_counts_only_leads_matching_filters():
    ai = FakeAI([json.dumps([{'name': 'Kadıköy Fırın'}])])
    ctx = make_ctx(
        leads=complete_leads(LOW_POOL_THRESHOLD, district='Şişli'),
        ai=ai,
        agent_config=AgentConfig(target_district='Kadıköy'),
    )
    assert tick(ctx) == 'discovery'
    assert 'Kadıköy' in ai.calls[0]['prompt']


# ---------------------------------------------------------------------------
# Focus modes
# ---------------------------------------------------------------------------

def test_discovery_only_skips_other_handlers():
    ai = FakeAI([json.dumps([{'name': 'Yeni Dükkan'}])])
    ctx = make_ctx(
        leads=[make_lead(email='r@b.co')],
        ai=ai,
        agent_config=AgentConfig(focus_mode='discovery_only'),
    )
    assert tick(ctx) == 'discovery'
    assert ctx.mailer.sent == []


def test_outreach_only_never_discovers():
    ctx = make_ctx(agent_config=AgentConfig(focus_mode='outreach_only'))
    assert tick(ctx) is None
    assert ctx.rotator.index == 0


# ---------------------------------------------------------------------------
# Idle handling
# ---------------------------------------------------------------------------

def test_idle_during_business_hours():
    ctx = make_ctx(leads=complete_leads(LOW_POOL_THRESHOLD))
    tick(ctx)
    assert ctx.runtime.status == 'Idle (looking for work...)'
    assert ctx.runtime.thoughts[0].category == 'wait'


def test_sleeping_outside_business_hours():
    ctx = make_ctx(leads=complete_leads(LOW_POOL_THRESHOLD), now=SATURDAY_MORNING)
    tick(ctx)
    assert ctx.runtime.status == 'Outside business hours (sleeping)'
    assert ctx.runtime.thoughts[0].category == 'wait'


def test_acting_tick_sets_monitoring_status():
    ctx = make_ctx(leads=[make_lead(email='r@b.co')])
    tick(ctx)
    assert ctx.runtime.status == 'Monitoring...'


def test_tick_starts_with_decision_thought():
    ctx = make_ctx(leads=complete_leads(LOW_POOL_THRESHOLD))
    tick(ctx)
    assert ctx.runtime.thoughts[-1].message.startswith('Cycle started')


# ---------------------------------------------------------------------------
# Bookkeeping
# ---------------------------------------------------------------------------

def test_pending_drafts_recounted_after_tick():
    leads = [make_lead(email='a@b.co', lead_status='awaiting_approval', draft_response=DraftResponse(body='x'))]
    ctx = make_ctx(leads=leads, agent_config=AgentConfig(focus_mode='outreach_only'))
    ctx.runtime.pending_drafts_count = 7
    tick(ctx)
    assert ctx.runtime.pending_drafts_count == 1


def test_cycle_complete_event_carries_action():
    ctx = make_ctx(leads=[make_lead(email='r@b.co')])
    events = []
    ctx.runtime.bus.on(EVENT_CYCLE_COMPLETE, events.append)
    tick(ctx)
    assert events == [{'action': 'outreach'}]
