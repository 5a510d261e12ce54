# In-memory data models for the history exchange
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Literal, Optional

HistoryDepth = Literal["glance", "summary", "full"]
OptInMode = Literal["opted-out", "opt-in-basic", "opt-in-full"]
OriginVisibility = Literal["masked", "visible-if-allowed"]
LogType = Literal["earned", "spent", "denied", "info"]

# Ordinal scale: glance < summary < full
DEPTH_ORDER: List[str] = ["glance", "summary", "full"]
OPT_IN_MODES: List[str] = ["opted-out", "opt-in-basic", "opt-in-full"]
ORIGIN_VISIBILITIES: List[str] = ["masked", "visible-if-allowed"]

TRUST_MIN = 0
TRUST_MAX = 100

# Denial codes returned by the access gate
NOT_OPTED_IN = "NotOptedIn"
NO_CONSENT = "NoConsent"
NO_BOOKING = "NoBooking"
INSUFFICIENT_CREDITS = "InsufficientCredits"


def depth_rank(depth: str) -> int:
    """Ordinal of a depth; anything unrecognised ranks as glance."""
    if depth in DEPTH_ORDER:
        return DEPTH_ORDER.index(depth)
    return 0


@dataclass
class ClinicSettings:
    """Participation settings and balance for the local clinic"""
    name: str
    optInMode: OptInMode = "opted-out"
    originVisibility: OriginVisibility = "masked"
    credits: int = 0
    trustScore: int = 50


@dataclass(frozen=True)
class Patient:
    """Patient consent record (read-only reference data)"""
    id: str
    name: str
    dateOfBirth: str  # YYYY-MM-DD
    hasConsented: bool
    allowedDepth: HistoryDepth
    allowOriginVisible: bool


@dataclass
class Encounter:
    """Documented encounter. privateNote never leaves the owning clinic."""
    id: str
    patientId: str
    patientName: str
    date: str  # YYYY-MM-DD
    diagnosis: str
    diagnosisCode: str
    bodyRegion: str
    specialty: str
    interventions: List[str] = field(default_factory=list)
    outcomeScore: int = 0
    contraindications: List[str] = field(default_factory=list)
    redFlags: List[str] = field(default_factory=list)
    allergies: List[str] = field(default_factory=list)
    privateNote: str = ""
    sourceClinic: str = ""
    sourceClinicMasked: bool = True
    sharedDepth: HistoryDepth = "summary"
    isPublished: bool = False

    @property
    def requires_redaction(self) -> bool:
        """True when the record carries data external read paths must drop."""
        return bool(self.privateNote)


@dataclass
class EncounterDraft:
    """Encounter as documented, before the publisher stamps it"""
    patientId: str
    patientName: str
    date: str
    diagnosis: str
    diagnosisCode: str
    bodyRegion: str
    specialty: str
    interventions: List[str] = field(default_factory=list)
    outcomeScore: int = 0
    contraindications: List[str] = field(default_factory=list)
    redFlags: List[str] = field(default_factory=list)
    allergies: List[str] = field(default_factory=list)
    privateNote: str = ""
    sharedDepth: HistoryDepth = "summary"


@dataclass(frozen=True)
class HistoryRequest:
    patientId: str
    isBooked: bool
    hasConsent: bool
    requestedDepth: HistoryDepth


@dataclass(frozen=True)
class AccessResult:
    """Outcome of a history request. grantedDepth is set iff allowed."""
    allowed: bool
    reason: Optional[str] = None
    grantedDepth: Optional[HistoryDepth] = None
    code: Optional[str] = None

    @classmethod
    def deny(cls, code: str, reason: str) -> "AccessResult":
        return cls(allowed=False, reason=reason, code=code)

    @classmethod
    def grant(cls, depth: str) -> "AccessResult":
        return cls(allowed=True, grantedDepth=depth)


@dataclass(frozen=True)
class LogEntry:
    id: str
    timestamp: str  # ISO 8601, UTC
    type: LogType
    message: str
    credits: Optional[int] = None


class SettingsStore:
    """
    Holds the clinic settings. Readers get copies; credits and trust score
    are only written by the credit ledger through commit_balance().
    """

    def __init__(self, settings: ClinicSettings):
        self._settings = replace(settings)
        self.set_opt_in_mode(settings.optInMode)
        self.set_origin_visibility(settings.originVisibility)
        self.commit_balance(settings.credits, settings.trustScore)

    def snapshot(self) -> ClinicSettings:
        return replace(self._settings)

    @property
    def credits(self) -> int:
        return self._settings.credits

    @property
    def trust_score(self) -> int:
        return self._settings.trustScore

    def set_opt_in_mode(self, mode: str) -> None:
        if mode not in OPT_IN_MODES:
            raise ValueError(f"Unknown participation mode: {mode!r}")
        self._settings.optInMode = mode

    def set_origin_visibility(self, visibility: str) -> None:
        if visibility not in ORIGIN_VISIBILITIES:
            raise ValueError(f"Unknown origin visibility: {visibility!r}")
        self._settings.originVisibility = visibility

    def commit_balance(self, credits: int, trust_score: int) -> None:
        """Write balance fields. Called by CreditLedger only."""
        if credits < 0:
            raise ValueError("credits cannot go negative")
        self._settings.credits = credits
        self._settings.trustScore = max(TRUST_MIN, min(TRUST_MAX, trust_score))


class PatientDirectory:
    """Read-only lookup of patient consent records"""

    def __init__(self, patients: List[Patient]):
        self._patients: Dict[str, Patient] = {p.id: p for p in patients}

    def get(self, patient_id: str) -> Optional[Patient]:
        return self._patients.get(patient_id)

    def all(self) -> List[Patient]:
        return list(self._patients.values())

    def __len__(self) -> int:
        return len(self._patients)
