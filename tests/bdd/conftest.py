"""
Shared fixtures and step definitions for BDD tests.

- runner, context: available to all scenario files in this directory
- agent: in-memory AgentContext that the CLI picks up instead of the real one
- no_logging: autouse, prevents log file creation during tests
- shared steps: lead setup, clock, 'the output contains', lead status and sent-email counts
"""

import asyncio

import pytest
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import given, then, parsers

from tests.fakes import SATURDAY_MORNING, WEDNESDAY_MORNING, make_ctx, make_lead


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture
def agent(context):
    """
    Scenarios describe the world in Given steps by filling context['leads'],
    context['now'] etc. The AgentContext is built lazily on first use.
    """
    def build():
        if 'agent' not in context:
            context['agent'] = make_ctx(**context.get('ctx_args', {}))
        return context['agent']

    with patch("leadpilot.cli.main.build_context", side_effect=lambda cfg: build()):
        yield build


@pytest.fixture(autouse=True)
def no_logging():
    with patch("leadpilot.cli.main.configure_logging"):
        yield


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


def add_lead(context, lead):
    context.setdefault('ctx_args', {}).setdefault('leads', []).append(lead)
    return lead


def lead_named(context, name):
    leads = asyncio.run(context['agent'].repository.get_leads())
    return next(lead for lead in leads if lead.company_name == name)


@given(parsers.parse('an active lead "{name}" with email "{email}"'))
def active_lead(context, name, email):
    add_lead(context, make_lead(company_name=name, email=email))


@given("it is Wednesday morning")
def wednesday(context):
    context.setdefault('ctx_args', {})['now'] = WEDNESDAY_MORNING


@given("it is Saturday morning")
def saturday(context):
    context.setdefault('ctx_args', {})['now'] = SATURDAY_MORNING


@then(parsers.parse('"{name}" is {status}'))
def lead_has_status(context, name, status):
    assert lead_named(context, name).lead_status == status


@then(parsers.re(r'(?P<count>\d+) emails? (?:was|were) sent'), converters={'count': int})
def emails_sent(context, count):
    assert len(context['agent'].mailer.sent) == count
