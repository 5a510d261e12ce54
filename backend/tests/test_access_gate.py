"""
Tests for the access gate: check order, denials, depth granted and what it costs.
"""
import pytest
from models import INSUFFICIENT_CREDITS, NO_BOOKING, NO_CONSENT, NOT_OPTED_IN, depth_rank

from conftest import history_request, make_exchange


# =============================================================================
# Check ordering
# =============================================================================
class TestCheckOrder:
    """Participation, then consent, then booking, then credits"""

    def test_opted_out_without_consent_reports_not_opted_in(self):
        exchange = make_exchange(opt_in_mode="opted-out")
        result = exchange.request_history(history_request(consent=False, booked=False))
        assert result.allowed is False
        assert result.code == NOT_OPTED_IN

    def test_no_consent_before_no_booking(self):
        exchange = make_exchange()
        result = exchange.request_history(history_request(consent=False, booked=False))
        assert result.code == NO_CONSENT

    def test_no_booking_before_credits(self):
        exchange = make_exchange(credits=0)
        result = exchange.request_history(history_request(booked=False, depth="full"))
        assert result.code == NO_BOOKING

    def test_each_denial_logs_exactly_one_entry(self):
        exchange = make_exchange(credits=0)
        for request in [
            history_request(consent=False),
            history_request(booked=False),
            history_request(depth="full"),
        ]:
            before = len(exchange.logs())
            exchange.request_history(request)
            logs = exchange.logs()
            assert len(logs) == before + 1
            assert logs[0].type == "denied"
            assert logs[0].message.startswith("Access denied: ")


# =============================================================================
# Scenarios
# =============================================================================
class TestScenarios:

    def test_scenario_a_opted_out(self):
        exchange = make_exchange(opt_in_mode="opted-out", credits=10)
        result = exchange.request_history(history_request(depth="glance"))
        assert result.allowed is False
        assert result.reason == "Your clinic must opt in to access shared histories"
        assert result.grantedDepth is None
        assert exchange.logs()[0].message == "Access denied: Your clinic has not opted in to the exchange"

    def test_scenario_b_basic_mode_without_credits(self):
        exchange = make_exchange(opt_in_mode="opt-in-basic", credits=0)
        result = exchange.request_history(history_request(depth="summary"))
        assert result.allowed is False
        assert result.code == INSUFFICIENT_CREDITS
        assert result.reason == "You need 1 credits. Current balance: 0"
        assert exchange.logs()[0].message == "Access denied: Insufficient credits (need 1, have 0)"

    def test_scenario_c_clamped_by_patient_limit(self):
        exchange = make_exchange(opt_in_mode="opt-in-full")
        exchange.earn_credits(2)
        # p2 allows summary only
        result = exchange.request_history(history_request(patient_id="p2", depth="full"))
        assert result.allowed is True
        assert result.grantedDepth == "summary"
        assert result.reason is None
        assert exchange.settings.credits == 0


# =============================================================================
# Cost follows the requested depth, not the granted depth
# =============================================================================
class TestRequestedDepthCost:
    """
    Charging is keyed on the requested depth. When the grant is clamped lower
    the requester still pays the requested price.
    """

    def test_full_request_granted_summary_costs_two(self):
        exchange = make_exchange(opt_in_mode="opt-in-basic")
        exchange.earn_credits(5)
        result = exchange.request_history(history_request(patient_id="p1", depth="full"))
        assert result.grantedDepth == "summary"  # clinic in basic mode reads summary
        assert exchange.settings.credits == 3
        spent = [entry for entry in exchange.logs() if entry.type == "spent"]
        assert spent[0].credits == -2

    def test_absent_patient_grants_glance_at_full_price(self):
        exchange = make_exchange()
        exchange.earn_credits(2)
        result = exchange.request_history(history_request(patient_id="nobody", depth="full"))
        assert result.allowed is True
        assert result.grantedDepth == "glance"
        assert exchange.settings.credits == 0


# =============================================================================
# Successful grants
# =============================================================================
class TestGrants:

    def test_glance_is_free_and_logs_no_spend(self):
        exchange = make_exchange(credits=0)
        result = exchange.request_history(history_request(depth="glance"))
        assert result.allowed is True
        assert result.grantedDepth == "glance"
        logs = exchange.logs()
        assert [entry.type for entry in logs] == ["info"]
        assert logs[0].message == "History access granted at glance level"

    def test_paid_grant_logs_spend_then_grant(self):
        exchange = make_exchange(credits=1)
        exchange.request_history(history_request(depth="summary"))
        types = [entry.type for entry in exchange.logs()]
        # Newest first
        assert types == ["info", "spent"]

    def test_request_consent_flag_is_used_not_patient_record(self):
        # p3 has not consented on record, but the request carries consent
        exchange = make_exchange()
        result = exchange.request_history(history_request(patient_id="p3", depth="glance", consent=True))
        assert result.allowed is True
        # p1 consented on record, but the request says no
        result = exchange.request_history(history_request(patient_id="p1", depth="glance", consent=False))
        assert result.code == NO_CONSENT

    @pytest.mark.parametrize("mode", ["opt-in-basic", "opt-in-full"])
    @pytest.mark.parametrize("patient_id", ["p1", "p2", "p3", "missing"])
    @pytest.mark.parametrize("depth", ["glance", "summary", "full"])
    def test_granted_never_exceeds_any_limit(self, mode, patient_id, depth):
        exchange = make_exchange(opt_in_mode=mode, credits=2)
        result = exchange.request_history(history_request(patient_id=patient_id, depth=depth))
        assert result.allowed is True
        patient = exchange.patients.get(patient_id)
        patient_allowed = patient.allowedDepth if patient else "glance"
        clinic_limit = "full" if mode == "opt-in-full" else "summary"
        assert depth_rank(result.grantedDepth) <= min(
            depth_rank(depth), depth_rank(patient_allowed), depth_rank(clinic_limit)
        )


# =============================================================================
# Denials never touch the ledger
# =============================================================================
class TestDenialsLeaveLedgerAlone:

    @pytest.mark.parametrize("kwargs", [
        {"consent": False},
        {"booked": False},
    ])
    def test_denied_request_keeps_balance(self, kwargs):
        exchange = make_exchange(credits=5)
        exchange.request_history(history_request(depth="full", **kwargs))
        assert exchange.settings.credits == 5
        assert not any(entry.type == "spent" for entry in exchange.logs())

    def test_insufficient_credits_keeps_balance(self):
        exchange = make_exchange(credits=1)
        result = exchange.request_history(history_request(depth="full"))
        assert result.code == INSUFFICIENT_CREDITS
        assert exchange.settings.credits == 1
