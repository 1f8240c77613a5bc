from pytest_bdd import scenarios, given, when, parsers

from leadpilot.cli.main import cli
from leadpilot.models import DraftResponse
from tests.bdd.conftest import add_lead
from tests.fakes import FailingMailer, make_lead

scenarios("features/drafts.feature")


def _lead_id(context, name):
    return next(lead.id for lead in context['ctx_args']['leads'] if lead.company_name == name)


@given("there are no drafts")
def no_drafts(context):
    context.setdefault('ctx_args', {})['leads'] = []


@given(parsers.parse('"{name}" has a draft about "{intent}"'))
def lead_with_draft(context, name, intent):
    add_lead(context, make_lead(
        company_name=name,
        email='info@acme.com',
        lead_status='awaiting_approval',
        last_contact_date='2026-10-19',
        draft_response=DraftResponse(subject='Re: your question', body='Thanks for writing back ...', intent=intent),
    ))


@given("the mail server is down")
def mail_server_down(context):
    context.setdefault('ctx_args', {})['mailer'] = FailingMailer()


@when("the owner lists drafts")
def list_drafts(runner, context, agent):
    context["result"] = runner.invoke(cli, ["drafts", "list"])


@when(parsers.parse('the owner approves the draft for "{name}"'))
def approve(runner, context, agent, name):
    context["result"] = runner.invoke(cli, ["drafts", "approve", _lead_id(context, name)])


@when(parsers.parse('the owner records a proposal for "{name}"'))
def record_proposal(runner, context, agent, name):
    context["result"] = runner.invoke(cli, ["proposal", _lead_id(context, name)])
