# History exchange service - owns one clinic's session state and serialises every operation on it
from __future__ import annotations

import threading
from itertools import count
from typing import Dict, List, Optional, Tuple

import structlog

from audit import AuditLog
from credits import CreditLedger
from logic import AccessGate, negotiate, visible_encounters
from models import (
    AccessResult,
    ClinicSettings,
    Encounter,
    EncounterDraft,
    HistoryRequest,
    LogEntry,
    Patient,
    PatientDirectory,
    SettingsStore,
    depth_rank,
)
from publishing import EncounterPublisher

logger = structlog.get_logger(__name__)

OPT_IN_LABELS = {"opted-out": "Opted Out", "opt-in-basic": "Basic Sharing", "opt-in-full": "Full Sharing"}
VISIBILITY_LABELS = {"masked": "Masked", "visible-if-allowed": "Visible if patient allows"}


class HistoryExchange:
    """
    Authorization service for one clinic's session.

    Each public method holds the instance lock for its whole run, so the
    gate's credit check and the ledger debit form one atomic decision even
    when the HTTP layer calls in from several worker threads.
    """

    def __init__(
        self,
        settings: ClinicSettings,
        patients: List[Patient],
        encounters: Optional[List[Encounter]] = None,
    ):
        self._lock = threading.Lock()
        self._load(settings, patients, encounters or [])

    def _load(self, settings: ClinicSettings, patients: List[Patient], encounters: List[Encounter]) -> None:
        self.patients = PatientDirectory(patients)
        self._encounters: List[Encounter] = list(encounters)
        self._encounter_ids = count(1)
        self._start_session(settings)

    def _start_session(self, settings: ClinicSettings) -> None:
        self.store = SettingsStore(settings)
        self.audit = AuditLog()
        self.ledger = CreditLedger(self.store, self.audit)
        self.gate = AccessGate(self.ledger, self.audit)
        self.publisher = EncounterPublisher(self.store, self.ledger, self._encounters, self._encounter_ids)
        # Highest depth granted per patient this session
        self._grants: Dict[str, str] = {}

    def reset(self, settings: ClinicSettings, patients: List[Patient], encounters: List[Encounter]) -> None:
        """Replace all session state (settings, log, grants, encounters)."""
        with self._lock:
            self._load(settings, patients, encounters)
        logger.info("exchange_reset", clinic=settings.name)

    def reset_session(self, settings: ClinicSettings) -> None:
        """Restore settings and clear the log and grants. Published encounters stay."""
        with self._lock:
            self._start_session(settings)
        logger.info("exchange_session_reset", clinic=settings.name)

    # Settings

    @property
    def settings(self) -> ClinicSettings:
        with self._lock:
            return self.store.snapshot()

    def update_opt_in_mode(self, mode: str) -> ClinicSettings:
        with self._lock:
            self.store.set_opt_in_mode(mode)
            self.audit.append("info", f"Clinic changed to {OPT_IN_LABELS[mode]}")
            return self.store.snapshot()

    def update_origin_visibility(self, visibility: str) -> ClinicSettings:
        with self._lock:
            self.store.set_origin_visibility(visibility)
            self.audit.append("info", f"Origin visibility set to {VISIBILITY_LABELS[visibility]}")
            return self.store.snapshot()

    def record_info(self, message: str) -> LogEntry:
        """Add an informational entry to the audit log."""
        with self._lock:
            return self.audit.append("info", message)

    # Exchange operations

    def request_history(self, request: HistoryRequest) -> AccessResult:
        with self._lock:
            result = self.gate.evaluate(request, self.store.snapshot(), self.patients)
            if result.allowed:
                held = self._grants.get(request.patientId)
                if held is None or depth_rank(result.grantedDepth) > depth_rank(held):
                    self._grants[request.patientId] = result.grantedDepth
            return result

    def publish_encounter(self, draft: EncounterDraft) -> Encounter:
        with self._lock:
            return self.publisher.publish(draft)

    def spend_credits(self, amount: int) -> bool:
        return self.spend_credits_with_balance(amount)[0]

    def spend_credits_with_balance(self, amount: int) -> Tuple[bool, int]:
        """Spend and report the balance left, read under the same lock."""
        with self._lock:
            spent = self.ledger.spend(amount)
            return spent, self.store.credits

    def earn_credits(self, amount: int) -> None:
        self.earn_credits_with_balance(amount)

    def earn_credits_with_balance(self, amount: int) -> int:
        with self._lock:
            self.ledger.earn(amount)
            return self.store.credits

    # Read paths

    def granted_depth(self, patient_id: str) -> Optional[str]:
        """Depth this clinic was granted for a patient, or None without a grant."""
        with self._lock:
            return self._grants.get(patient_id)

    def visible_encounters(self, patient_id: str, depth: Optional[str] = None) -> List[Dict]:
        """
        Encounters as another clinic sees them (no private notes). Detail is
        capped at the depth granted for this patient; with no grant nothing
        is returned. `depth` can only lower the view further.
        """
        with self._lock:
            granted = self._grants.get(patient_id)
            if granted is None:
                return []
            view_depth = granted if depth is None else negotiate(depth, granted, "full")
            return visible_encounters(self._encounters, patient_id, view_depth, self.patients)

    def own_encounters(self) -> List[Encounter]:
        """Encounters this clinic published, full records included."""
        with self._lock:
            name = self.store.snapshot().name
            return [ep for ep in self._encounters if ep.sourceClinic == name]

    def logs(self, limit: Optional[int] = None) -> List[LogEntry]:
        with self._lock:
            return self.audit.entries(limit)
