# Encounter publishing - turns a documented encounter into a shared record and pays the contributor
from __future__ import annotations

from dataclasses import asdict
from itertools import count
from typing import Iterator, List, Optional

import structlog

from credits import TRUST_PER_PUBLISH, CreditLedger, publish_reward
from models import Encounter, EncounterDraft, SettingsStore

logger = structlog.get_logger(__name__)


class EncounterPublisher:
    """
    Stamps drafts with the local clinic as source and masks them per the
    current origin visibility. privateNote stays on the record; read paths
    for other clinics drop it (see logic.project_encounter).
    """

    def __init__(
        self,
        store: SettingsStore,
        ledger: CreditLedger,
        encounters: List[Encounter],
        ids: Optional[Iterator[int]] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._encounters = encounters
        # Shared with the owner so ids stay unique across session resets
        self._ids = ids if ids is not None else count(1)

    def publish(self, draft: EncounterDraft) -> Encounter:
        settings = self._store.snapshot()
        encounter = Encounter(
            **asdict(draft),
            id=f"e-{next(self._ids)}",
            sourceClinic=settings.name,
            sourceClinicMasked=settings.originVisibility == "masked",
            isPublished=True,
        )
        self._encounters.insert(0, encounter)

        reward = publish_reward(encounter.sharedDepth)
        self._ledger.earn(reward, f"Published encounter summary and earned {reward} Continuity Credits")
        trust = self._ledger.adjust_trust(TRUST_PER_PUBLISH)

        logger.info(
            "encounter_published",
            encounter_id=encounter.id,
            shared_depth=encounter.sharedDepth,
            masked=encounter.sourceClinicMasked,
            reward=reward,
            trust_score=trust,
        )
        return encounter
