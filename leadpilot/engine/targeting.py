"""
Targeting - where and how the agent looks for new leads, and when it may
reach out.

  is_business_hours   pure gate for first-contact email
  StrategyRotator     round-robin over discovery strategies
  pick_district       random district with a bias toward priority districts
  pick_sector         configured sector or a random one
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from leadpilot.config import config
from leadpilot.models import ALL, AgentConfig

SECTORS = ['Health', 'Restaurant', 'Real Estate', 'Beauty', 'Other']

DISTRICTS = ['Kadıköy', 'Beşiktaş', 'Şişli', 'Üsküdar', 'Ataşehir', 'Beyoğlu', 'Bakırköy']

# Districts that get outsized discovery attention when no filter is set
PRIORITY_DISTRICTS = ['Kadıköy', 'Beşiktaş', 'Şişli']


def is_business_hours(now: datetime, start_hour: Optional[int] = None, end_hour: Optional[int] = None) -> bool:
    """True on Monday-Friday between start_hour (inclusive) and end_hour (exclusive)."""
    start = config.BUSINESS_HOURS_START if start_hour is None else start_hour
    end = config.BUSINESS_HOURS_END if end_hour is None else end_hour
    return now.weekday() < 5 and start <= now.hour < end


@dataclass(frozen=True)
class Strategy:
    """One way of sourcing leads, with the audience description used in the search prompt."""
    key: str
    label: str
    audience: str


DISCOVERY_STRATEGIES = [
    Strategy(
        key='new_unlisted',
        label='New & unlisted',
        audience="Newly opened or growing local businesses that have no website at all.",
    ),
    Strategy(
        key='outdated_site',
        label='Outdated site',
        audience="Small businesses whose website looks old, is not mobile friendly or is reported as broken.",
    ),
    Strategy(
        key='social_only',
        label='Social-only presence',
        audience="Popular local businesses with many reviews that rely only on Instagram, Linktree or WhatsApp.",
    ),
]


class StrategyRotator:
    """Cycles through the discovery strategies, one per call."""

    def __init__(self, strategies: Optional[List[Strategy]] = None):
        self.strategies = list(strategies or DISCOVERY_STRATEGIES)
        if not self.strategies:
            raise ValueError("StrategyRotator needs at least one strategy")
        self.index = 0

    def next_strategy(self) -> Strategy:
        strategy = self.strategies[self.index % len(self.strategies)]
        self.index += 1
        return strategy


def pick_district(
    agent_config: AgentConfig,
    rng: random.Random,
    priority_probability: Optional[float] = None,
) -> str:
    """
    Configured district if one is set. Otherwise a coin flip with
    priority_probability picks from PRIORITY_DISTRICTS, else from all DISTRICTS.
    """
    if agent_config.target_district != ALL:
        return agent_config.target_district

    p = config.PRIORITY_DISTRICT_PROBABILITY if priority_probability is None else priority_probability
    if rng.random() < p:
        return rng.choice(PRIORITY_DISTRICTS)
    return rng.choice(DISTRICTS)


def pick_sector(agent_config: AgentConfig, rng: random.Random) -> str:
    if agent_config.target_sector != ALL:
        return agent_config.target_sector
    return rng.choice(SECTORS)
