# Backend main entry point - HTTP boundary for the history exchange
import logging
import os
from dataclasses import asdict
from dotenv import load_dotenv
load_dotenv()  # Load .env so DEMO_MODE=true works for local reviewers
import structlog
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from models import EncounterDraft, HistoryRequest
from seed import build_exchange, initial_settings, seed_data
from walkthrough import Walkthrough

def _log_level(name: str) -> int:
    """Numeric level for a LOG_LEVEL name; unknown names fall back to INFO."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(_log_level(os.environ.get("LOG_LEVEL", "INFO"))),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

# Session state
exchange = build_exchange()
walkthrough = Walkthrough()

app = FastAPI(title="Patient History Exchange API")


def _is_demo_mode() -> bool:
    """True only when DEMO_MODE env var is explicitly 'true' (case-insensitive)."""
    return os.environ.get("DEMO_MODE", "").lower() == "true"

# Configure CORS - allow local dev and deployed frontend
_allowed_origins = [
    "http://localhost:5173",
    "http://localhost:8080",
]
# Add deployed frontend URL from env if set
_frontend_url = os.environ.get("FRONTEND_URL", "")
if _frontend_url:
    _allowed_origins.append(_frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Depth = Literal["glance", "summary", "full"]

# Request/Response models
class ClinicSettingsResponse(BaseModel):
    name: str
    optInMode: Literal["opted-out", "opt-in-basic", "opt-in-full"]
    originVisibility: Literal["masked", "visible-if-allowed"]
    credits: int
    trustScore: int

class ClinicSettingsUpdate(BaseModel):
    optInMode: Optional[Literal["opted-out", "opt-in-basic", "opt-in-full"]] = None
    originVisibility: Optional[Literal["masked", "visible-if-allowed"]] = None

class PatientResponse(BaseModel):
    id: str
    name: str
    dateOfBirth: str
    hasConsented: bool
    allowedDepth: Depth
    allowOriginVisible: bool

class HistoryRequestBody(BaseModel):
    patientId: str
    isBooked: bool
    hasConsent: bool
    requestedDepth: Depth

class AccessResultResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    grantedDepth: Optional[Depth] = None

class EncounterDraftBody(BaseModel):
    patientId: str
    patientName: str
    date: str  # YYYY-MM-DD
    diagnosis: str
    diagnosisCode: str = ""
    bodyRegion: str = ""
    specialty: str = ""
    interventions: List[str] = []
    outcomeScore: int = Field(default=0, ge=0, le=100)
    contraindications: List[str] = []
    redFlags: List[str] = []
    allergies: List[str] = []
    privateNote: str = ""
    sharedDepth: Depth = "summary"

class EncounterResponse(EncounterDraftBody):
    id: str
    sourceClinic: str
    sourceClinicMasked: bool
    isPublished: bool

class CreditAmount(BaseModel):
    amount: int = Field(ge=0)

class LogEntryResponse(BaseModel):
    id: str
    timestamp: str
    type: Literal["earned", "spent", "denied", "info"]
    message: str
    credits: Optional[int] = None


def _settings_response() -> ClinicSettingsResponse:
    return ClinicSettingsResponse(**asdict(exchange.settings))


@app.get("/")
def read_root():
    return {"message": "Patient History Exchange API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/clinic/settings", response_model=ClinicSettingsResponse)
def get_clinic_settings():
    """Current clinic settings, credits and trust score"""
    return _settings_response()

@app.post("/clinic/settings", response_model=ClinicSettingsResponse)
def update_clinic_settings(update: ClinicSettingsUpdate):
    """Change participation mode and/or origin visibility"""
    if update.optInMode is not None:
        exchange.update_opt_in_mode(update.optInMode)
    if update.originVisibility is not None:
        exchange.update_origin_visibility(update.originVisibility)
    return _settings_response()


@app.get("/patients", response_model=List[PatientResponse])
def get_patients():
    return [PatientResponse(**asdict(p)) for p in exchange.patients.all()]


@app.post("/history/request", response_model=AccessResultResponse, response_model_exclude_none=True)
def request_history(body: HistoryRequestBody):
    """
    Decide a history request. Denials are normal 200 responses with
    allowed=false and a reason.
    """
    result = exchange.request_history(HistoryRequest(**body.model_dump()))
    return AccessResultResponse(allowed=result.allowed, reason=result.reason, grantedDepth=result.grantedDepth)

@app.get("/history/{patient_id}")
def get_patient_history(patient_id: str, depth: Optional[Depth] = None):
    """
    Published encounters for a patient, capped at the depth granted by an
    earlier POST /history/request. Empty when no grant exists.
    """
    return exchange.visible_encounters(patient_id, depth)


@app.post("/encounters", response_model=EncounterResponse)
def publish_encounter(body: EncounterDraftBody):
    """Publish an encounter and earn credits for it"""
    encounter = exchange.publish_encounter(EncounterDraft(**body.model_dump()))
    return EncounterResponse(**asdict(encounter))

@app.get("/encounters", response_model=List[EncounterResponse])
def get_own_encounters():
    """Encounters this clinic published (owning clinic view)"""
    return [EncounterResponse(**asdict(ep)) for ep in exchange.own_encounters()]


@app.post("/credits/spend")
def spend_credits(body: CreditAmount):
    try:
        spent, credits = exchange.spend_credits_with_balance(body.amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"spent": spent, "credits": credits}

@app.post("/credits/earn")
def earn_credits(body: CreditAmount):
    try:
        credits = exchange.earn_credits_with_balance(body.amount)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"credits": credits}


@app.get("/logs", response_model=List[LogEntryResponse])
def get_logs(limit: Optional[int] = Query(default=None, ge=0)):
    """Audit log, most recent first"""
    return [LogEntryResponse(**asdict(entry)) for entry in exchange.logs(limit)]


@app.get("/walkthrough")
def get_walkthrough():
    return walkthrough.to_dict()

@app.post("/walkthrough/start")
def start_walkthrough():
    """Restore seed settings, clear the log and begin at step 1. Published encounters stay."""
    exchange.reset_session(initial_settings())
    walkthrough.start()
    exchange.record_info("Walkthrough started: Your clinic is currently opted out")
    return walkthrough.to_dict()

@app.post("/walkthrough/next")
def next_walkthrough_step():
    walkthrough.next()
    return walkthrough.to_dict()

@app.post("/walkthrough/reset")
def reset_walkthrough():
    exchange.reset_session(initial_settings())
    walkthrough.reset()
    return walkthrough.to_dict()


@app.get("/demo/status")
def demo_status():
    """Returns whether demo mode is enabled. Only for frontend visibility gate."""
    return {"demoMode": _is_demo_mode()}


@app.post("/demo/reset")
def demo_reset():
    """
    Reset prototype to baseline. Only available when DEMO_MODE=true.
    Restores: seed settings, patients, encounters; clears the audit log.
    """
    if not _is_demo_mode():
        raise HTTPException(status_code=404, detail="Demo reset not available")
    seed_data(exchange)
    walkthrough.reset()
    logger.info("demo_reset")
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
