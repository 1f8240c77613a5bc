"""
Data Models
Dataclasses for all entities. These are pure Python objects, no storage logic.
"""

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

# Lead lifecycle states
STATUS_ACTIVE = 'active'
STATUS_PENDING = 'pending'
STATUS_INVALID = 'invalid'
STATUS_NURTURING = 'nurturing'
STATUS_PROPOSAL_SENT = 'proposal_sent'
STATUS_AWAITING_APPROVAL = 'awaiting_approval'
STATUS_WON = 'won'
STATUS_LOST = 'lost'

LEAD_STATUSES = (
    STATUS_ACTIVE, STATUS_PENDING, STATUS_INVALID, STATUS_NURTURING,
    STATUS_PROPOSAL_SENT, STATUS_AWAITING_APPROVAL, STATUS_WON, STATUS_LOST,
)

# Sentinel for "no filter" in AgentConfig
ALL = 'all'

FOCUS_MODES = ('balanced', 'discovery_only', 'outreach_only')

THOUGHT_CATEGORIES = ('action', 'decision', 'analysis', 'success', 'warning', 'error', 'wait', 'info')

MIN_SCORE = 1
MAX_SCORE = 5


def new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class SocialProfile:
    """Summary of a lead's social media presence."""
    username: str = ''
    bio: str = ''
    recent_post_theme: str = ''
    suggested_dm_opener: str = ''
    last_analyzed: Optional[str] = None


@dataclass
class DraftResponse:
    """AI-drafted reply waiting for human approval."""
    subject: str = ''
    body: str = ''
    intent: str = ''
    created_at: Optional[str] = None


@dataclass
class Lead:
    """Prospective business contact tracked through the sales pipeline."""
    id: str = field(default_factory=new_id)
    company_name: str = ''
    sector: str = ''
    district: str = ''
    address: str = ''
    phone: str = ''
    email: str = ''
    source: str = 'agent'
    has_website: bool = False
    lead_status: str = STATUS_ACTIVE
    lead_score: int = MIN_SCORE
    missing_fields: List[str] = field(default_factory=list)
    last_contact_date: Optional[str] = None
    notes: str = ''
    social_profile: Optional[SocialProfile] = None
    draft_response: Optional[DraftResponse] = None
    score_detail: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None

    def bump_score(self, delta: int) -> int:
        """Adjust lead_score by delta, clamped to 1..5."""
        self.lead_score = max(MIN_SCORE, min(MAX_SCORE, self.lead_score + delta))
        return self.lead_score

    def refresh_missing_fields(self) -> List[str]:
        self.missing_fields = [f for f in ('email', 'phone') if not getattr(self, f)]
        return self.missing_fields

    def add_note(self, text: str):
        """Prepend a note; newest first."""
        self.notes = f"{text}\n\n{self.notes}" if self.notes else text

    def is_outreach_eligible(self) -> bool:
        return self.lead_status == STATUS_ACTIVE and bool(self.email) and not self.last_contact_date

    def is_enrichment_eligible(self) -> bool:
        return self.lead_status == STATUS_ACTIVE and not self.email

    def has_pending_draft(self) -> bool:
        return self.lead_status == STATUS_AWAITING_APPROVAL and self.draft_response is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Lead':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if isinstance(values.get('social_profile'), dict):
            values['social_profile'] = SocialProfile(**values['social_profile'])
        if isinstance(values.get('draft_response'), dict):
            values['draft_response'] = DraftResponse(**values['draft_response'])
        values['missing_fields'] = list(values.get('missing_fields') or [])
        return cls(**values)


@dataclass
class Task:
    """Scheduled follow-up created by handlers or the approval flow."""
    id: str = field(default_factory=new_id)
    company_name: str = ''
    lead_status: str = STATUS_ACTIVE
    task_type: str = 'follow_up'  # missing_info, follow_up, proposal_check, recontact
    description: str = ''
    priority: str = 'medium'  # low, medium, high
    due_date: Optional[str] = None
    status: str = 'open'  # open, done

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class ActionLog:
    """Audit trail entry written through the repository."""
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat(timespec='seconds'))
    action: str = ''
    detail: str = ''
    severity: str = 'info'  # info, success, warning, error

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AgentConfig:
    """User-editable targeting for the agent cycle."""
    target_district: str = ALL
    target_sector: str = ALL
    focus_mode: str = 'balanced'

    def matches(self, lead: Lead) -> bool:
        """True if the lead falls inside the configured district/sector filters."""
        return (
            (self.target_district == ALL or lead.district == self.target_district)
            and (self.target_sector == ALL or lead.sector == self.target_sector)
        )


@dataclass
class UsageStats:
    """Per-day AI call counters."""
    date: str = ''
    ai_calls: int = 0
    daily_limit: int = 50
    estimated_cost: float = 0.0

    @property
    def exhausted(self) -> bool:
        return self.ai_calls >= self.daily_limit


@dataclass
class AgentThought:
    """One entry of the agent's observable reasoning log."""
    category: str
    message: str
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=lambda: datetime.now().strftime('%H:%M:%S'))


@dataclass
class Notification:
    """User-facing toast-style notification."""
    title: str
    message: str
    level: str = 'info'  # success, info, warning, error
    id: str = field(default_factory=new_id)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
