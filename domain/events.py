# domain/events.py
from __future__ import annotations

import random
from typing import Dict, List, Optional, Set, Tuple

from domain.models import Catalog, ScheduledEvent, UnlockEntry, UnlockPlan

UNLOCK = "unlock"
GAIN = "gain"
LOSS = "loss"

HORIZON_MONTHS = 240
GAP_MIN, GAP_MAX = 24, 36  # months between random events, [min, max)
LOSS_PROBABILITY = 0.6
MAX_DRAW_RETRIES = 5

LOSS_EVENTS: List[Tuple[str, int]] = [
    ("Medical emergency in the family", 15_000),
    ("Your bike was stolen", 8_000),
    ("Laptop crashed and needs replacing", 12_000),
    ("Home repairs after the monsoon", 10_000),
    ("Wedding in the family", 20_000),
    ("Car accident, insurance covered only part", 18_000),
    ("Lost your wallet on the train", 3_000),
    ("Phone screen shattered", 5_000),
    ("Unexpected tax notice", 9_000),
    ("Friend borrowed money and never returned it", 7_000),
]

GAIN_EVENTS: List[Tuple[str, int]] = [
    ("Performance bonus at work", 15_000),
    ("Won a quiz competition", 5_000),
    ("Freelance project paid out", 10_000),
    ("Tax refund arrived", 6_000),
    ("Birthday gift from grandparents", 4_000),
    ("Sold old furniture online", 3_000),
    ("Salary hike arrears credited", 12_000),
]

DEFAULT_UNLOCK_PLAN = UnlockPlan(
    fixed={
        1: UnlockEntry(category="fixedDeposit",
                       message="Fixed deposits are now available"),
        2: UnlockEntry(category="stocks",
                       message="You opened a demat account: stocks unlocked"),
    },
    extra=[
        UnlockEntry(category="mutualFunds",
                    message="Mutual funds are now available"),
        UnlockEntry(category="gold", message="You can now buy gold"),
        UnlockEntry(category="ppf", message="PPF account opened"),
    ],
)


def unlock_plan_for(catalog: Catalog) -> UnlockPlan:
  """Catalog plan (or the default) with legacy `yearEvents` unlocks folded in."""
  plan = catalog.unlock_plan or DEFAULT_UNLOCK_PLAN
  if not catalog.year_events:
    return plan
  fixed = dict(plan.fixed)
  for year, ev in catalog.year_events.items():
    if ev.unlock:
      fixed[year] = UnlockEntry(category=ev.unlock, message=ev.message)
  return UnlockPlan(fixed=fixed, extra=plan.extra)


def _unlock_event(entry: UnlockEntry) -> ScheduledEvent:
  return ScheduledEvent(kind=UNLOCK,
                        message=entry.message or f"{entry.category} unlocked",
                        unlock=entry.category)


def _draw(pool: List[Tuple[str, int]], used: Set[int],
          rng: random.Random) -> Tuple[str, int]:
  # best effort: give up avoiding repeats after a few tries
  idx = rng.randrange(len(pool))
  for _ in range(MAX_DRAW_RETRIES):
    if idx not in used:
      break
    idx = rng.randrange(len(pool))
  used.add(idx)
  return pool[idx]


def generate_schedule(plan: UnlockPlan,
                      rng: Optional[random.Random] = None,
                      horizon_months: int = HORIZON_MONTHS
                      ) -> Dict[int, ScheduledEvent]:
  """
  Build a year -> event schedule.

  1. fixed unlocks at their designated years
  2. extra unlocks on consecutive years right after the last fixed one
  3. random gain/loss events: first in month [24, 36), then every [24, 36)
     months while within the horizon; a year already holding an event is
     skipped
  """
  rng = rng or random.Random()
  schedule: Dict[int, ScheduledEvent] = {}

  for year, entry in sorted(plan.fixed.items()):
    schedule[year] = _unlock_event(entry)

  year = max(plan.fixed) + 1 if plan.fixed else 1
  for entry in plan.extra:
    while year in schedule:
      year += 1
    schedule[year] = _unlock_event(entry)
    year += 1

  used_loss: Set[int] = set()
  used_gain: Set[int] = set()
  month = rng.randrange(GAP_MIN, GAP_MAX)
  while month <= horizon_months:
    year = month // 12
    if year not in schedule:
      if rng.random() < LOSS_PROBABILITY:
        message, amount = _draw(LOSS_EVENTS, used_loss, rng)
        schedule[year] = ScheduledEvent(kind=LOSS, message=message,
                                        amount=-amount)
      else:
        message, amount = _draw(GAIN_EVENTS, used_gain, rng)
        schedule[year] = ScheduledEvent(kind=GAIN, message=message,
                                        amount=amount)
    month += rng.randrange(GAP_MIN, GAP_MAX)

  return schedule
