"""
AgentContext - everything a handler needs for one invocation, passed explicitly.
"""

from dataclasses import dataclass, field

from leadpilot.engine.ai_client import AIClient
from leadpilot.engine.mailer import Mailer
from leadpilot.engine.repository import Repository
from leadpilot.engine.runtime import AgentRuntime
from leadpilot.engine.targeting import StrategyRotator
from leadpilot.engine.usage_guard import UsageGuard


@dataclass
class AgentContext:
    runtime: AgentRuntime
    repository: Repository
    ai: AIClient
    mailer: Mailer
    guard: UsageGuard
    rotator: StrategyRotator = field(default_factory=StrategyRotator)
