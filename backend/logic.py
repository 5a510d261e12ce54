# Business logic - access gate, depth negotiation and history read path
from __future__ import annotations

from typing import Dict, List, Optional

import structlog

from audit import AuditLog
from credits import CreditLedger, required_credits
from models import (
    DEPTH_ORDER,
    INSUFFICIENT_CREDITS,
    NO_BOOKING,
    NO_CONSENT,
    NOT_OPTED_IN,
    AccessResult,
    ClinicSettings,
    Encounter,
    HistoryRequest,
    Patient,
    PatientDirectory,
    depth_rank,
)

logger = structlog.get_logger(__name__)

# Fields shown at each depth; each level includes the ones below it
GLANCE_FIELDS = ["id", "patientId", "patientName", "date", "bodyRegion", "specialty", "redFlags", "allergies"]
SUMMARY_FIELDS = GLANCE_FIELDS + ["diagnosis", "diagnosisCode", "interventions"]
FULL_FIELDS = SUMMARY_FIELDS + ["outcomeScore", "contraindications"]
FIELDS_BY_DEPTH = {"glance": GLANCE_FIELDS, "summary": SUMMARY_FIELDS, "full": FULL_FIELDS}

MASKED_ORIGIN_LABEL = "Another clinic"


def clinic_shared_depth(opt_in_mode: str) -> str:
    """Depth a clinic shares (and may read) for its participation mode."""
    return "full" if opt_in_mode == "opt-in-full" else "summary"


def negotiate(requested: str, patient_allowed: str, clinic_shared: str) -> str:
    """Granted depth: the ordinal minimum of the three limits."""
    return DEPTH_ORDER[min(depth_rank(requested), depth_rank(patient_allowed), depth_rank(clinic_shared))]


class AccessGate:
    """
    Decides history requests. Checks run in a fixed order and the first
    failure wins: participation, consent, booking, credits.
    """

    def __init__(self, ledger: CreditLedger, audit: AuditLog):
        self._ledger = ledger
        self._audit = audit

    def _deny(self, code: str, log_message: str, reason: str) -> AccessResult:
        self._audit.append("denied", f"Access denied: {log_message}")
        logger.info("history_access_denied", code=code)
        return AccessResult.deny(code, reason)

    def evaluate(
        self,
        request: HistoryRequest,
        settings: ClinicSettings,
        patients: PatientDirectory,
    ) -> AccessResult:
        if settings.optInMode == "opted-out":
            return self._deny(
                NOT_OPTED_IN,
                "Your clinic has not opted in to the exchange",
                "Your clinic must opt in to access shared histories",
            )

        # The request's own consent flag, not Patient.hasConsented
        if not request.hasConsent:
            return self._deny(
                NO_CONSENT,
                "Patient has not provided consent",
                "Patient consent is required to view history",
            )

        if not request.isBooked:
            return self._deny(
                NO_BOOKING,
                "No active booking exists",
                "A confirmed booking is required to access history",
            )

        required = required_credits(request.requestedDepth)
        if settings.credits < required:
            return self._deny(
                INSUFFICIENT_CREDITS,
                f"Insufficient credits (need {required}, have {settings.credits})",
                f"You need {required} credits. Current balance: {settings.credits}",
            )

        patient = patients.get(request.patientId)
        patient_allowed = patient.allowedDepth if patient else "glance"
        granted = negotiate(request.requestedDepth, patient_allowed, clinic_shared_depth(settings.optInMode))

        # Cost follows the requested depth even when granted is lower.
        # The check above runs under the same lock, so the debit succeeds.
        if required > 0:
            self._ledger.spend(required)

        self._audit.append("info", f"History access granted at {granted} level")
        logger.info(
            "history_access_granted",
            patient_id=request.patientId,
            requested=request.requestedDepth,
            granted=granted,
            charged=required,
        )
        return AccessResult.grant(granted)


def origin_is_masked(encounter: Encounter, patient: Optional[Patient]) -> bool:
    """Origin shows only when the clinic published it visible and the patient allows it."""
    if encounter.sourceClinicMasked:
        return True
    return patient is None or not patient.allowOriginVisible


def project_encounter(encounter: Encounter, depth: str, patient: Optional[Patient]) -> Dict:
    """
    Render an encounter for an external reader at `depth`.
    Never includes privateNote. Detail is further capped by the depth the
    publishing clinic shared the encounter at.
    """
    effective = negotiate(depth, encounter.sharedDepth, "full")
    view = {name: getattr(encounter, name) for name in FIELDS_BY_DEPTH[effective]}
    masked = origin_is_masked(encounter, patient)
    view["sourceClinic"] = MASKED_ORIGIN_LABEL if masked else encounter.sourceClinic
    view["sourceClinicMasked"] = masked
    view["sharedDepth"] = encounter.sharedDepth
    view["visibleDepth"] = effective
    return view


def visible_encounters(
    encounters: List[Encounter],
    patient_id: str,
    depth: str,
    patients: PatientDirectory,
) -> List[Dict]:
    """Published encounters for a patient, redacted for an external reader."""
    patient = patients.get(patient_id)
    return [
        project_encounter(ep, depth, patient)
        for ep in encounters
        if ep.patientId == patient_id and ep.isPublished
    ]
