"""
Unit tests for first-contact outreach (leadpilot/engine/outreach.py).
"""

import asyncio

from leadpilot.bus.events import EVENT_EMAIL_SENT
from leadpilot.engine.outreach import (
    compose_first_contact, pick_outreach_target, ready_to_contact, send_first_contact,
)
from leadpilot.models import AgentConfig, SocialProfile
from tests.fakes import (
    FailingMailer, SATURDAY_MORNING, TUESDAY_EVENING, make_ctx, make_lead,
)


def run(coro):
    return asyncio.run(coro)


def leads_of(ctx):
    return run(ctx.repository.get_leads())


# ---------------------------------------------------------------------------
# Message and selection
# ---------------------------------------------------------------------------

def test_subject_names_the_business():
    assert compose_first_contact(make_lead())['subject'] == '[Acme Kahve] Your website draft is ready'


def test_dm_opener_leads_the_body():
    lead = make_lead(social_profile=SocialProfile(suggested_dm_opener='Loved your latte art!'))
    body = compose_first_contact(lead)['body']
    assert body.startswith('Loved your latte art!')
    assert 'Acme Kahve' in body


def test_standard_body_without_profile():
    assert compose_first_contact(make_lead())['body'].startswith('Hello')


def test_ready_to_contact_filters():
    ctx = make_ctx(agent_config=AgentConfig(target_sector='Restaurant'))
    leads = [
        make_lead(company_name='NoEmail'),
        make_lead(company_name='Contacted', email='a@b.co', last_contact_date='2026-10-01'),
        make_lead(company_name='Beauty', email='a@b.co', sector='Beauty'),
        make_lead(company_name='Ready', email='a@b.co'),
    ]
    assert [lead.company_name for lead in ready_to_contact(leads, ctx)] == ['Ready']


def test_target_prefers_lead_with_social_profile():
    plain = make_lead(company_name='Plain', email='a@b.co')
    social = make_lead(company_name='Social', email='s@b.co', social_profile=SocialProfile(username='s'))
    assert pick_outreach_target([plain, social]) is social


def test_target_falls_back_to_first():
    first = make_lead(company_name='First', email='a@b.co')
    second = make_lead(company_name='Second', email='b@b.co')
    assert pick_outreach_target([first, second]) is first
    assert pick_outreach_target([]) is None


# ---------------------------------------------------------------------------
# send_first_contact
# ---------------------------------------------------------------------------

def test_successful_send_moves_lead_to_nurturing():
    ctx = make_ctx(leads=[make_lead(email='info@acme.com')])

    assert run(send_first_contact(leads_of(ctx), ctx)) is True

    lead = leads_of(ctx)[0]
    assert lead.lead_status == 'nurturing'
    assert lead.last_contact_date == '2026-10-21'
    assert '[Email] Autopilot' in lead.notes
    assert len(ctx.mailer.sent) == 1
    assert ctx.mailer.sent[0]['to'] == 'info@acme.com'
    assert run(ctx.repository.get_tasks()) == []
    assert ctx.runtime.thoughts[0].message == 'First contact made with Acme Kahve. (Nurturing)'


def test_successful_send_logs_and_emits():
    ctx = make_ctx(leads=[make_lead(email='info@acme.com')])
    events = []
    ctx.runtime.bus.on(EVENT_EMAIL_SENT, events.append)
    run(send_first_contact(leads_of(ctx), ctx))

    log = run(ctx.repository.get_logs())[0]
    assert (log.action, log.severity) == ('Email Sent', 'success')
    assert events[0]['to'] == 'info@acme.com'


def test_failed_send_leaves_lead_eligible():
    mailer = FailingMailer()
    ctx = make_ctx(leads=[make_lead(email='info@acme.com')], mailer=mailer)

    assert run(send_first_contact(leads_of(ctx), ctx)) is False

    lead = leads_of(ctx)[0]
    assert mailer.attempts == 1
    assert lead.lead_status == 'active'
    assert lead.last_contact_date is None
    log = run(ctx.repository.get_logs())[0]
    assert (log.action, log.severity) == ('Email Failed', 'error')
    assert ctx.runtime.thoughts[0].category == 'error'


def test_social_lead_gets_personalized_email():
    plain = make_lead(company_name='Plain', email='plain@b.co')
    social = make_lead(
        company_name='Social', email='social@b.co',
        social_profile=SocialProfile(username='soc', suggested_dm_opener='Nice feed!'),
    )
    ctx = make_ctx(leads=[plain, social])

    run(send_first_contact(leads_of(ctx), ctx))

    assert ctx.mailer.sent[0]['to'] == 'social@b.co'
    assert ctx.mailer.sent[0]['body'].startswith('Nice feed!')


def test_outside_business_hours_waits():
    for now in (SATURDAY_MORNING, TUESDAY_EVENING):
        ctx = make_ctx(leads=[make_lead(email='info@acme.com')], now=now)

        assert run(send_first_contact(leads_of(ctx), ctx)) is False

        assert ctx.mailer.sent == []
        assert ctx.runtime.status == 'Outside business hours (waiting...)'
        assert ctx.runtime.thoughts[0].category == 'wait'


def test_no_eligible_lead():
    ctx = make_ctx(leads=[make_lead()])
    assert run(send_first_contact(leads_of(ctx), ctx)) is False
    assert ctx.mailer.sent == []


def test_outreach_spends_no_ai_budget():
    ctx = make_ctx(leads=[make_lead(email='info@acme.com')])
    run(send_first_contact(leads_of(ctx), ctx))
    assert ctx.guard.daily_usage == 0
