"""
Tests that the credit check and the debit behave as one decision when
requests arrive from several threads.
"""
from concurrent.futures import ThreadPoolExecutor

from models import INSUFFICIENT_CREDITS

from conftest import encounter_draft, history_request, make_exchange


class TestAtomicCheckThenSpend:

    def test_parallel_full_requests_cannot_overdraw(self):
        exchange = make_exchange(opt_in_mode="opt-in-full", credits=10)
        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: exchange.request_history(history_request(depth="full")), range(40)))

        granted = [r for r in results if r.allowed]
        denied = [r for r in results if not r.allowed]
        assert len(granted) == 5
        assert all(r.code == INSUFFICIENT_CREDITS for r in denied)
        assert exchange.settings.credits == 0

    def test_parallel_publishes_all_credited(self):
        exchange = make_exchange(credits=0)

        def publish(_):
            exchange.publish_encounter(encounter_draft(depth="full"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(publish, range(10)))

        assert exchange.settings.credits == 30
        assert exchange.settings.trustScore == 70
        assert len(exchange.logs()) == 10


class TestBalanceReportedWithSpend:

    def test_spend_reports_its_own_balance(self):
        exchange = make_exchange(credits=3)
        assert exchange.spend_credits_with_balance(2) == (True, 1)
        assert exchange.spend_credits_with_balance(2) == (False, 1)
        assert exchange.earn_credits_with_balance(4) == 5

    def test_parallel_spends_each_see_a_distinct_balance(self):
        exchange = make_exchange(credits=20)
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: exchange.spend_credits_with_balance(1), range(20)))

        assert all(spent for spent, _ in results)
        assert sorted(balance for _, balance in results) == list(range(20))
