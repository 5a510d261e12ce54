# Seed data - initial clinic, patients and published encounters for the session
from __future__ import annotations

from typing import List

import structlog

from exchange import HistoryExchange
from models import ClinicSettings, Encounter, Patient

logger = structlog.get_logger(__name__)

CLINIC_NAME = "Wellness Physical Therapy"


def initial_settings() -> ClinicSettings:
    """Clinic starts opted out, masked, with no credits and trust 50"""
    return ClinicSettings(
        name=CLINIC_NAME,
        optInMode="opted-out",
        originVisibility="masked",
        credits=0,
        trustScore=50,
    )


def initial_patients() -> List[Patient]:
    return [
        Patient(
            id="p1",
            name="Sarah Johnson",
            dateOfBirth="1985-03-15",
            hasConsented=True,
            allowedDepth="full",
            allowOriginVisible=False,
        ),
        Patient(
            id="p2",
            name="Michael Chen",
            dateOfBirth="1978-08-22",
            hasConsented=True,
            allowedDepth="summary",
            allowOriginVisible=True,
        ),
        Patient(
            id="p3",
            name="Emily Rodriguez",
            dateOfBirth="1992-11-30",
            hasConsented=False,
            allowedDepth="glance",
            allowOriginVisible=False,
        ),
    ]


def initial_encounters() -> List[Encounter]:
    """Encounters already published by other clinics in the network"""
    return [
        Encounter(
            id="e1",
            patientId="p1",
            patientName="Sarah Johnson",
            date="2024-01-15",
            diagnosis="Lumbar Disc Herniation",
            diagnosisCode="M51.16",
            bodyRegion="Lower Back",
            specialty="Orthopedic",
            interventions=["Manual Therapy", "Therapeutic Exercise", "Patient Education"],
            outcomeScore=75,
            contraindications=["Avoid heavy lifting", "No high-impact activities"],
            redFlags=[],
            allergies=["Latex"],
            privateNote="Patient mentioned stress at work affecting recovery. Consider referral to counseling.",
            sourceClinic="Metro Spine Center",
            sourceClinicMasked=True,
            sharedDepth="full",
            isPublished=True,
        ),
        Encounter(
            id="e2",
            patientId="p2",
            patientName="Michael Chen",
            date="2024-01-10",
            diagnosis="Rotator Cuff Tendinopathy",
            diagnosisCode="M75.10",
            bodyRegion="Shoulder",
            specialty="Sports Medicine",
            interventions=["Ultrasound Therapy", "Strengthening Exercises"],
            outcomeScore=60,
            contraindications=["Avoid overhead movements"],
            redFlags=["Night pain - monitor for progression"],
            allergies=[],
            privateNote="Competing in local tennis league, very motivated.",
            sourceClinic="Athletic Recovery Clinic",
            sourceClinicMasked=False,
            sharedDepth="summary",
            isPublished=True,
        ),
    ]


def build_exchange() -> HistoryExchange:
    """Fresh exchange holding the seed state."""
    return HistoryExchange(initial_settings(), initial_patients(), initial_encounters())


def seed_data(exchange: HistoryExchange) -> None:
    """Reset an existing exchange back to the seed state"""
    exchange.reset(initial_settings(), initial_patients(), initial_encounters())
    logger.info(
        "seed_data_initialized",
        clinic=CLINIC_NAME,
        patients=len(exchange.patients),
        encounters=len(initial_encounters()),
    )
