#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow - Pet progression (experience, levels, happiness, streaks)"""
import math
from dataclasses import replace
from datetime import date
from typing import Optional

from .types import PetState

REWARD_MIN_MINUTES = 5
REWARD_EXP = 5
HAPPINESS_GAIN = 10
HAPPINESS_MAX = 100
BASE_MAX_EXP = 100
MAX_EXP_GROWTH = 1.5

# streak day thresholds -> tier
STREAK_TIERS = ((6, 4), (4, 3), (2, 2))


def max_exp_for_level(level: int) -> int:
    return math.floor(BASE_MAX_EXP * MAX_EXP_GROWTH ** (level - 1))


def initial_pet() -> PetState:
    return PetState(level=1, current_exp=0, max_exp=max_exp_for_level(1), happiness=HAPPINESS_MAX)


def streak_tier(streak_count: int) -> int:
    for threshold, tier in STREAK_TIERS:
        if streak_count >= threshold:
            return tier
    return 1


def _parse_day(key: Optional[str]) -> Optional[date]:
    if not key:
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


def next_streak(pet: PetState, today: str) -> int:
    """Streak length after activity on ``today``.

    Consecutive days extend the streak. After a gap the streak restarts at 1,
    or at 2 when the broken streak had reached the top tier. Keys that are not
    ISO dates cannot be compared by distance and count as a fresh start.
    """
    last = _parse_day(pet.last_daily_activity_date)
    current = _parse_day(today)
    if last is None or current is None:
        return 1
    gap = (current - last).days
    if gap == 1:
        return pet.streak_count + 1
    if gap > 1:
        return 2 if streak_tier(pet.streak_count) == 4 else 1
    return max(1, pet.streak_count)


def apply_reward(pet: PetState, focused_minutes: float, today: str) -> PetState:
    """Return the pet after one session's reward; never mutates ``pet``.

    At most one reward per calendar day. A reward levels up at most once, even
    when the carried-over experience already exceeds the next threshold.
    """
    if focused_minutes < REWARD_MIN_MINUTES or pet.last_daily_activity_date == today:
        return pet
    level = pet.level
    max_exp = pet.max_exp
    new_exp = pet.current_exp + REWARD_EXP
    if new_exp >= max_exp:
        level += 1
        new_exp -= max_exp
        max_exp = max_exp_for_level(level)
    return replace(
        pet,
        level=level,
        current_exp=new_exp,
        max_exp=max_exp,
        happiness=min(HAPPINESS_MAX, pet.happiness + HAPPINESS_GAIN),
        last_daily_activity_date=today,
        streak_count=next_streak(pet, today),
    )
