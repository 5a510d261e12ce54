"""
Shared pytest fixtures for the history exchange tests.
"""
import pytest
from fastapi.testclient import TestClient

import main
from credits import required_credits
from exchange import HistoryExchange
from models import ClinicSettings, EncounterDraft, HistoryRequest
from seed import build_exchange, initial_encounters, initial_patients, seed_data


def make_exchange(opt_in_mode="opt-in-full", credits=0, trust_score=50, visibility="masked"):
    """Exchange with seed patients/encounters and the given clinic state."""
    settings = ClinicSettings(
        name="Test Clinic",
        optInMode=opt_in_mode,
        originVisibility=visibility,
        credits=credits,
        trustScore=trust_score,
    )
    return HistoryExchange(settings, initial_patients(), initial_encounters())


def history_request(patient_id="p1", depth="summary", booked=True, consent=True):
    return HistoryRequest(patientId=patient_id, isBooked=booked, hasConsent=consent, requestedDepth=depth)


def encounter_draft(depth="full", patient_id="p1", private_note="Private clinician note"):
    return EncounterDraft(
        patientId=patient_id,
        patientName="Sarah Johnson",
        date="2024-03-01",
        diagnosis="Patellofemoral Pain",
        diagnosisCode="M22.2",
        bodyRegion="Knee",
        specialty="Sports Medicine",
        interventions=["Taping", "Quad Strengthening"],
        outcomeScore=80,
        contraindications=["No deep squats"],
        redFlags=[],
        allergies=["Penicillin"],
        privateNote=private_note,
        sharedDepth=depth,
    )


@pytest.fixture
def seeded_exchange():
    """Fresh exchange in the seed state (opted out, 0 credits, trust 50)."""
    return build_exchange()


@pytest.fixture
def client():
    """FastAPI TestClient with the app's exchange reset to seed state."""
    seed_data(main.exchange)
    main.walkthrough.reset()
    yield TestClient(main.app)
    seed_data(main.exchange)
    main.walkthrough.reset()


def grant_history(exchange, patient_id="p1", depth="full"):
    """Fund and pass a history request so reads for the patient are allowed."""
    exchange.earn_credits(required_credits(depth))
    result = exchange.request_history(history_request(patient_id=patient_id, depth=depth))
    assert result.allowed, result.reason
    return result.grantedDepth
