"""
Event Bus - Decoupled Module Communication
Handlers emit events, listeners (CLI output, audit hooks) subscribe.
Each AgentRuntime owns its own bus; there is no module-level instance.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple event bus for decoupled module communication.
    Modules emit events, other modules register handlers to listen.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """
        Register a handler for an event.

        Args:
            event_name: Name of the event to listen for
            handler: Callable that receives event_data dict
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)}")

    def emit(self, event_name: str, event_data: Dict[str, Any] = None):
        """
        Emit an event to all registered handlers.
        A failing listener is logged and never breaks the emitter.
        """
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with data: {event_data}")

        for handler in self._handlers.get(event_name, []):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Agent lifecycle
EVENT_AGENT_STARTED = 'agent_started'
EVENT_AGENT_STOPPED = 'agent_stopped'
EVENT_BUDGET_EXHAUSTED = 'budget_exhausted'
EVENT_CYCLE_COMPLETE = 'cycle_complete'

# Handler outcomes
EVENT_LEAD_DISCOVERED = 'lead_discovered'
EVENT_LEAD_ENRICHED = 'lead_enriched'
EVENT_SOCIAL_ANALYZED = 'social_analyzed'
EVENT_EMAIL_SENT = 'email_sent'
EVENT_DRAFT_READY = 'draft_ready'

# Human approval flow
EVENT_DRAFT_APPROVED = 'draft_approved'
EVENT_DRAFT_DISCARDED = 'draft_discarded'
EVENT_PROPOSAL_SENT = 'proposal_sent'
