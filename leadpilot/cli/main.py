#!/usr/bin/env python3
"""
LeadPilot Terminal CLI
Run the autonomous agent and work through the drafts it leaves for approval.
"""

import asyncio
import logging
import click
from typing import Optional

from leadpilot.config import config
from leadpilot.bus.events import EVENT_CYCLE_COMPLETE
from leadpilot.engine import approvals
from leadpilot.engine.context import AgentContext
from leadpilot.engine.mailer import MailerError
from leadpilot.engine.repository import RepositoryError
from leadpilot.engine.scheduler import CycleScheduler, build_context
from leadpilot.models import FOCUS_MODES, LEAD_STATUSES
from leadpilot.logging_config import configure_logging, log_call

logger = logging.getLogger("leadpilot")


def _context() -> AgentContext:
    return build_context(config)


def _scheduler(ctx: AgentContext) -> CycleScheduler:
    return CycleScheduler(ctx, interval=config.AGENT_TICK_SECONDS)


def _apply_targeting(ctx: AgentContext, district: Optional[str], sector: Optional[str], focus: Optional[str]):
    partial = {}
    if district:
        partial['target_district'] = district
    if sector:
        partial['target_sector'] = sector
    if focus:
        partial['focus_mode'] = focus
    if partial:
        ctx.runtime.update_config(**partial)


def _print_thoughts(ctx: AgentContext, limit: int = 10):
    thoughts = ctx.runtime.thoughts[:limit]
    if not thoughts:
        return
    click.echo("\nRecent thoughts:")
    for t in reversed(thoughts):
        click.echo(f"  [{t.timestamp}] {t.category:<9} {t.message}")


@click.group()
def cli():
    """LeadPilot - Autonomous Sales Agent"""
    configure_logging()


# =============================================================================
# AGENT COMMANDS
# =============================================================================

_targeting_options = [
    click.option('--district', help='Only work leads in this district'),
    click.option('--sector', help='Only work leads in this sector'),
    click.option('--focus', type=click.Choice(FOCUS_MODES), help='Focus mode'),
]


def targeting_options(func):
    for option in reversed(_targeting_options):
        func = option(func)
    return func


@cli.command('run')
@targeting_options
@log_call
def run(district, sector, focus):
    """Start the agent cycle and keep it running (Ctrl+C to stop)"""
    try:
        ctx = _context()
        _apply_targeting(ctx, district, sector, focus)
        scheduler = _scheduler(ctx)
        click.echo(f"\nAgent running, one cycle every {scheduler.interval:g}s. Press Ctrl+C to stop.\n")
        ctx.runtime.bus.on(EVENT_CYCLE_COMPLETE, lambda data: click.echo(
            f"  [{ctx.runtime.now():%H:%M:%S}] {ctx.runtime.status}"
        ))
        asyncio.run(scheduler.run_forever())
        if not ctx.guard.can_start():
            click.echo("Daily AI limit reached. The agent is paused until tomorrow.", err=True)
        _print_thoughts(ctx)

    except KeyboardInterrupt:
        click.echo("\nAgent stopped.")
    except ValueError as e:
        logger.warning(f"run command rejected: {e}")
        click.echo(f"Error: {e}", err=True)
    except Exception as e:
        logger.error(f"run command failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)


@cli.command('cycle')
@targeting_options
@log_call
def cycle(district, sector, focus):
    """Run exactly one decision pass"""
    try:
        ctx = _context()
        _apply_targeting(ctx, district, sector, focus)
        scheduler = _scheduler(ctx)

        if not ctx.guard.can_start():
            click.echo("Daily AI limit reached. Nothing to do until tomorrow.", err=True)
            return

        action = asyncio.run(scheduler.run_single_pass())
        click.echo(f"\nAction: {action or 'none'}")
        click.echo(f"Status: {ctx.runtime.status}")
        click.echo(f"AI calls today: {ctx.guard.daily_usage}/{ctx.guard.daily_limit}")
        _print_thoughts(ctx)
        click.echo()

    except ValueError as e:
        logger.warning(f"cycle command rejected: {e}")
        click.echo(f"Error: {e}", err=True)
    except Exception as e:
        logger.error(f"cycle command failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)


@cli.command('usage')
@click.option('--set-limit', type=int, help='Set the daily AI call limit')
@log_call
def usage(set_limit):
    """Show today's AI usage and cost estimate"""
    ctx = _context()
    store = ctx.guard.store
    try:
        stats = store.set_limit(set_limit) if set_limit is not None else store.get()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        return

    click.echo(f"\nDate:            {stats.date}")
    click.echo(f"AI calls:        {stats.ai_calls}/{stats.daily_limit}")
    click.echo(f"Estimated cost:  ${stats.estimated_cost:.4f}")
    if stats.exhausted:
        click.echo("Status:          limit reached (safe mode)")
    click.echo()


# =============================================================================
# LEADS COMMANDS
# =============================================================================

@cli.group()
def leads():
    """Browse the lead pipeline"""
    pass


@leads.command('list')
@click.option('--status', type=click.Choice(LEAD_STATUSES), help='Filter by status')
@click.option('--district', help='Filter by district')
@click.option('--limit', default=100, help='Max results (default: 100)')
@log_call
def leads_list(status, district, limit):
    """List leads, newest first"""
    ctx = _context()
    try:
        results = asyncio.run(ctx.repository.get_leads())
    except RepositoryError as e:
        logger.error(f"leads list failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return

    if status:
        results = [lead for lead in results if lead.lead_status == status]
    if district:
        results = [lead for lead in results if lead.district == district]
    results = results[:limit]

    if not results:
        click.echo("No leads found.")
        return

    click.echo(f"\nFound {len(results)} leads:\n")
    click.echo(f"{'ID':<14} {'Company':<30} {'District':<12} {'Status':<18} {'Score':<5}")
    click.echo("-" * 82)
    for lead in results:
        click.echo(
            f"{lead.id:<14} {lead.company_name[:28]:<30} "
            f"{(lead.district or '')[:10]:<12} {lead.lead_status:<18} {lead.lead_score:<5}"
        )


@leads.command('show')
@click.argument('lead_id')
@log_call
def leads_show(lead_id):
    """Show full lead details"""
    ctx = _context()
    lead = asyncio.run(ctx.repository.get_lead(lead_id))

    if not lead:
        logger.warning(f"leads_show | lead_id={lead_id} not found")
        click.echo(f"Lead {lead_id} not found.", err=True)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"LEAD {lead.id}: {lead.company_name}")
    click.echo(f"{'='*80}")
    click.echo(f"Sector:        {lead.sector or '(not set)'}")
    click.echo(f"District:      {lead.district or '(not set)'}")
    click.echo(f"Address:       {lead.address or '(not set)'}")
    click.echo(f"Email:         {lead.email or '(not set)'}")
    click.echo(f"Phone:         {lead.phone or '(not set)'}")
    click.echo(f"Status:        {lead.lead_status}")
    click.echo(f"Score:         {lead.lead_score}/5")
    click.echo(f"Missing:       {', '.join(lead.missing_fields) or '-'}")
    click.echo(f"Last contact:  {lead.last_contact_date or 'never'}")

    if lead.social_profile:
        click.echo(f"\nInstagram:     @{lead.social_profile.username}")
        click.echo(f"  Theme:       {lead.social_profile.recent_post_theme}")
        click.echo(f"  DM opener:   {lead.social_profile.suggested_dm_opener}")

    if lead.draft_response:
        click.echo(f"\nPending draft ({lead.draft_response.intent or 'general'}):")
        click.echo(f"  Subject: {lead.draft_response.subject}")

    if lead.notes:
        click.echo(f"\nNotes:\n{lead.notes}")
    click.echo()


# =============================================================================
# DRAFT APPROVAL COMMANDS
# =============================================================================

@cli.group()
def drafts():
    """Review replies drafted by the agent"""
    pass


@drafts.command('list')
@log_call
def drafts_list():
    """List drafts waiting for approval"""
    ctx = _context()
    pending = [lead for lead in asyncio.run(ctx.repository.get_leads()) if lead.has_pending_draft()]
    if not pending:
        click.echo("No drafts waiting for approval.")
        return

    click.echo(f"\n{len(pending)} drafts waiting for approval:\n")
    for lead in pending:
        d = lead.draft_response
        click.echo(f"{lead.id}  {lead.company_name}  [{d.intent or 'general'}]")
        click.echo(f"  Subject: {d.subject}")
        click.echo(f"  {d.body[:200]}")
        click.echo()


@drafts.command('approve')
@click.argument('lead_id')
@click.option('--subject', help='Replace the drafted subject')
@click.option('--body', help='Replace the drafted body')
@log_call
def drafts_approve(lead_id, subject, body):
    """Send a drafted reply"""
    ctx = _context()
    try:
        lead = asyncio.run(approvals.approve_draft(ctx, lead_id, subject=subject, body=body))
        click.echo(f"\n✓ Reply sent to {lead.company_name} ({lead.email})")
    except ValueError as e:
        logger.warning(f"drafts approve failed for {lead_id}: {e}")
        click.echo(f"Error: {e}", err=True)
    except MailerError as e:
        logger.error(f"drafts approve send failed for {lead_id}: {e}", exc_info=True)
        click.echo(f"Send failed: {e}", err=True)
        click.echo("The draft was kept. Check the SMTP settings in .env", err=True)


@drafts.command('discard')
@click.argument('lead_id')
@log_call
def drafts_discard(lead_id):
    """Discard a drafted reply without sending"""
    ctx = _context()
    try:
        lead = asyncio.run(approvals.discard_draft(ctx, lead_id))
        click.echo(f"\n✓ Draft for {lead.company_name} discarded")
    except ValueError as e:
        logger.warning(f"drafts discard failed for {lead_id}: {e}")
        click.echo(f"Error: {e}", err=True)


@cli.command('proposal')
@click.argument('lead_id')
@log_call
def proposal(lead_id):
    """Record that a proposal was sent and schedule the follow-up"""
    ctx = _context()
    try:
        task = asyncio.run(approvals.record_proposal_sent(ctx, lead_id))
        click.echo(f"\n✓ Proposal recorded. Follow-up task due {task.due_date}")
    except ValueError as e:
        logger.warning(f"proposal failed for {lead_id}: {e}")
        click.echo(f"Error: {e}", err=True)


# =============================================================================
# TASKS
# =============================================================================

@cli.command('tasks')
@click.option('--all', 'show_all', is_flag=True, help='Include completed tasks')
@log_call
def tasks(show_all):
    """List follow-up tasks"""
    ctx = _context()
    results = asyncio.run(ctx.repository.get_tasks())
    if not show_all:
        results = [t for t in results if t.status == 'open']
    if not results:
        click.echo("No tasks.")
        return

    click.echo(f"\n{'Due':<12} {'Priority':<9} {'Company':<30} Description")
    click.echo("-" * 80)
    for t in sorted(results, key=lambda t: t.due_date or ''):
        click.echo(f"{t.due_date or '-':<12} {t.priority:<9} {t.company_name[:28]:<30} {t.description}")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
