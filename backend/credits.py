# Continuity credits - ledger for credits earned by publishing and spent on history access
from __future__ import annotations

from typing import Optional

import structlog

from audit import AuditLog
from models import SettingsStore

logger = structlog.get_logger(__name__)

# Cost to read another clinic's history, keyed on the requested depth
ACCESS_COST = {"glance": 0, "summary": 1, "full": 2}

# Reward for publishing, keyed on the encounter's own sharedDepth
PUBLISH_REWARD = {"glance": 1, "summary": 2, "full": 3}

TRUST_PER_PUBLISH = 2


def required_credits(depth: str) -> int:
    """Credits needed to request history at `depth`."""
    return ACCESS_COST.get(depth, 0)


def publish_reward(depth: str) -> int:
    """Credits earned for publishing an encounter shared at `depth`."""
    return PUBLISH_REWARD.get(depth, 1)


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError(f"Credit amount must be non-negative, got {amount}")


class CreditLedger:
    """
    Sole writer of the clinic's credit balance and trust score.
    Balance never goes negative: spend() refuses rather than overdraws.
    """

    def __init__(self, store: SettingsStore, audit: AuditLog):
        self._store = store
        self._audit = audit

    @property
    def balance(self) -> int:
        return self._store.credits

    def spend(self, amount: int) -> bool:
        """Debit `amount` if the balance covers it. Returns whether it happened."""
        _check_amount(amount)
        if self._store.credits < amount:
            logger.info("credit_spend_refused", amount=amount, balance=self._store.credits)
            return False
        self._store.commit_balance(self._store.credits - amount, self._store.trust_score)
        plural = "s" if amount > 1 else ""
        self._audit.append(
            "spent",
            f"Spent {amount} Continuity Credit{plural} to access patient history",
            -amount,
        )
        return True

    def earn(self, amount: int, message: Optional[str] = None) -> None:
        """Credit `amount` unconditionally."""
        _check_amount(amount)
        self._store.commit_balance(self._store.credits + amount, self._store.trust_score)
        self._audit.append("earned", message or f"Earned {amount} Continuity Credits", amount)

    def adjust_trust(self, delta: int) -> int:
        """Move the trust score by `delta`, clamped to [0, 100]. Returns the new score."""
        self._store.commit_balance(self._store.credits, self._store.trust_score + delta)
        return self._store.trust_score
