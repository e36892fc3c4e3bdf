"""
Scan orchestration tests
Full pipeline against an in-memory database: lookup, validation, gate policy,
usage recording and the audit trail.
"""

import threading
from datetime import datetime, timedelta

import pytest

from ..core.exceptions import DatabaseError, GateInactiveError, GateNotFoundError
from ..models.guest import CardType
from ..models.payload import CardContext
from ..models.scan import ScanCode
from ..models.venue import GateType
from ..services.gate_policy import GateReason
from ..services.qr_codec import qr_codec
from ..services.scan_service import AccessResult, ScanService
from ..services.scan_store import ScanStore
from .conftest import LUNCH_TIME


class TestManualScan:
    """Manual scans at a staff station"""

    def test_successful_scan(self, scan_service, db_helper, venue, guest_card):
        guest, card = guest_card
        result = scan_service.manual_scan(card.card_data)

        assert result.success
        assert result.error_code is None
        assert result.outcome.matched_meal_time.name == "Lunch"
        assert result.card.usage_count == 1
        assert result.guest.id == guest.id
        assert result.restaurant.id == venue["r1"].id
        assert db_helper.get_usage_count(card.id) == 1

        logs = db_helper.scan_logs(card.id)
        assert len(logs) == 1
        assert logs[0]["id"] == result.scan_id
        assert logs[0]["is_success"]
        assert logs[0]["station_id"] == "MANUAL_STATION"
        assert logs[0]["matched_meal_time_id"] == venue["meals"][venue["r1"].id]["lunch"].id

    def test_second_scan_in_window_rejected(self, scan_service, db_helper, guest_card):
        _, card = guest_card
        assert scan_service.manual_scan(card.card_data).success

        result = scan_service.manual_scan(card.card_data, now=LUNCH_TIME + timedelta(minutes=20))
        assert not result.success
        assert result.error_code == ScanCode.MEAL_ALREADY_CONSUMED.value
        assert db_helper.get_usage_count(card.id) == 1
        assert len(db_helper.scan_logs(card.id)) == 2

    def test_next_window_allowed(self, scan_service, guest_card):
        _, card = guest_card
        assert scan_service.manual_scan(card.card_data).success
        result = scan_service.manual_scan(card.card_data, now=datetime(2024, 1, 15, 19, 0))
        assert result.success
        assert result.outcome.matched_meal_time.name == "Dinner"
        assert result.card.usage_count == 2

    def test_overnight_window_consumed_across_midnight(self, scan_service, db_helper):
        restaurant = db_helper.create_restaurant("Night Canteen")
        db_helper.create_meal_time(restaurant.id, "Night Shift", "22:00", "06:00")
        card = db_helper.create_card(db_helper.create_guest(restaurant.id).id)

        assert scan_service.manual_scan(card.card_data, now=datetime(2024, 1, 15, 23, 30)).success
        result = scan_service.manual_scan(card.card_data, now=datetime(2024, 1, 16, 2, 0))
        assert result.error_code == ScanCode.MEAL_ALREADY_CONSUMED.value
        assert scan_service.manual_scan(card.card_data, now=datetime(2024, 1, 16, 22, 5)).success

    def test_unknown_card(self, scan_service, db_helper, venue):
        result = scan_service.manual_scan("QR0000000000", station_id="DESK-2")
        assert result.error_code == ScanCode.CARD_NOT_FOUND.value
        assert result.card is None

        logs = db_helper.scan_logs()
        assert len(logs) == 1
        assert logs[0]["card_id"] is None
        assert logs[0]["station_id"] == "DESK-2"
        assert logs[0]["error_code"] == "CARD_NOT_FOUND"

    def test_outside_meal_time(self, scan_service, db_helper, guest_card):
        _, card = guest_card
        result = scan_service.manual_scan(card.card_data, now=datetime(2024, 1, 15, 16, 30))
        assert result.error_code == ScanCode.OUTSIDE_MEAL_TIME.value
        assert db_helper.get_usage_count(card.id) == 0

    def test_allow_list_enforced(self, scan_service, db_helper, venue):
        meals = venue["meals"][venue["r1"].id]
        guest = db_helper.create_guest(venue["r1"].id)
        card = db_helper.create_card(guest.id, allowed_meal_time_ids=[meals["breakfast"].id])

        result = scan_service.manual_scan(card.card_data)
        assert result.error_code == ScanCode.MEAL_NOT_ALLOWED.value
        assert [m.name for m in result.allowed_meal_times] == ["Breakfast"]

    def test_compact_payload_lookup(self, scan_service, db_helper, venue):
        """A reprinted payload still finds the card through its encoded id"""
        guest = db_helper.create_guest(venue["r1"].id)
        card = db_helper.create_card(guest.id, card_data="stored-payload")
        payload = qr_codec.encode(CardContext(card_id=card.id, card_number=card.card_number,
                                              guest_name=guest.full_name))

        result = scan_service.manual_scan(payload)
        assert result.success
        assert result.card.id == card.id

    def test_rfid_scan_uses_card_number(self, scan_service, db_helper, venue):
        guest = db_helper.create_guest(venue["r1"].id)
        card = db_helper.create_card(guest.id, card_number="RF1122334455", card_type=CardType.RFID)

        result = scan_service.manual_scan(" RF1122334455 ", scan_type=CardType.RFID)
        assert result.success
        assert result.card.id == card.id

    def test_usage_limit(self, scan_service, db_helper):
        """Three meals on a three-use card, then the limit"""
        restaurant = db_helper.create_restaurant("Open Buffet")
        card = db_helper.create_card(db_helper.create_guest(restaurant.id).id, max_usage=3)

        codes = [scan_service.manual_scan(card.card_data, now=LUNCH_TIME + timedelta(hours=i)).error_code
                 for i in range(4)]
        assert codes == [None, None, None, ScanCode.MEAL_LIMIT_EXCEEDED.value]
        assert db_helper.get_usage_count(card.id) == 3

    def test_concurrent_scans_consume_once(self, test_db, db_helper, guest_card):
        """Two stations scanning the same card at once: one meal, one rejection"""
        _, card = guest_card
        service = ScanService(test_db)
        barrier = threading.Barrier(2)
        results = []

        def scan():
            barrier.wait()
            results.append(service.manual_scan(card.card_data, now=LUNCH_TIME))

        threads = [threading.Thread(target=scan) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        codes = sorted(r.error_code or "SUCCESS" for r in results)
        assert codes == [ScanCode.MEAL_ALREADY_CONSUMED.value, "SUCCESS"]
        assert db_helper.get_usage_count(card.id) == 1
        assert len(db_helper.scan_logs(card.id)) == 2

    def test_storage_failure_reported_as_error(self, test_db, db_helper, guest_card):
        """Infrastructure errors become an ERROR result with an audit row"""

        class BrokenStore(ScanStore):
            def find_card(self, raw_payload, decoded):
                raise DatabaseError("disk on fire")

        _, card = guest_card
        service = ScanService(test_db, store=BrokenStore(test_db), clock=lambda: LUNCH_TIME)
        result = service.manual_scan(card.card_data)

        assert not result.success
        assert result.error_code == ScanCode.ERROR.value
        assert result.scan_id is not None
        assert db_helper.get_usage_count(card.id) == 0

        logs = db_helper.scan_logs()
        assert [log["error_code"] for log in logs] == ["ERROR"]
        assert len(db_helper.system_errors()) == 1

    def test_deeply_nested_payload_is_card_not_found(self, scan_service, db_helper, venue):
        result = scan_service.manual_scan("[" * 200000)
        assert result.error_code == ScanCode.CARD_NOT_FOUND.value
        assert len(db_helper.scan_logs()) == 1

    def test_usage_limit_under_concurrency(self, test_db, db_helper):
        """Simultaneous scans past the limit all fail and usage stays at the limit"""
        restaurant = db_helper.create_restaurant("Open Buffet")
        card = db_helper.create_card(db_helper.create_guest(restaurant.id).id, max_usage=3)
        service = ScanService(test_db)
        for hour in range(3):
            assert service.manual_scan(card.card_data, now=LUNCH_TIME + timedelta(hours=hour)).success

        barrier = threading.Barrier(4)
        results = []

        def scan(hour):
            barrier.wait()
            results.append(service.manual_scan(card.card_data, now=LUNCH_TIME + timedelta(hours=hour)))

        threads = [threading.Thread(target=scan, args=(hour,)) for hour in range(3, 7)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert [r.error_code for r in results] == [ScanCode.MEAL_LIMIT_EXCEEDED.value] * 4
        assert db_helper.get_usage_count(card.id) == 3


class TestGateScan:
    """Gate scans"""

    def test_main_gate_allows(self, scan_service, db_helper, venue, guest_card):
        _, card = guest_card
        gate = venue["main_gate"]
        outcome = scan_service.gate_scan(gate.id, card.card_data)

        assert outcome.result == AccessResult.ALLOWED
        assert outcome.scan.gate_decision.reason == GateReason.MAIN_GATE
        assert db_helper.get_usage_count(card.id) == 1

        assert db_helper.scan_logs(card.id)[0]["station_id"] == gate.id
        access = db_helper.access_logs(gate.id)
        assert len(access) == 1
        assert access[0]["is_success"]
        assert access[0]["access_type"] == "ENTRY"

    def test_restaurant_gate_rejects_other_restaurant(self, scan_service, db_helper, venue):
        """Denied at the gate, meal not spent"""
        guest = db_helper.create_guest(venue["r2"].id)
        card = db_helper.create_card(guest.id)
        gate = venue["restaurant_gate"]

        outcome = scan_service.gate_scan(gate.id, card.card_data)

        assert outcome.result == AccessResult.DENIED
        assert outcome.scan.error_code == GateReason.RESTAURANT_NOT_LINKED.value
        assert outcome.scan.outcome.code == ScanCode.SUCCESS
        assert db_helper.get_usage_count(card.id) == 0

        logs = db_helper.scan_logs(card.id)
        assert len(logs) == 1
        assert not logs[0]["is_success"]
        assert logs[0]["error_code"] == "RESTAURANT_NOT_LINKED"
        assert len(db_helper.access_logs(gate.id)) == 1

        # the denial did not consume the lunch window
        assert scan_service.gate_scan(venue["main_gate"].id, card.card_data).result == AccessResult.ALLOWED

    def test_restaurant_gate_allows_linked_guest(self, scan_service, venue, guest_card):
        _, card = guest_card
        outcome = scan_service.gate_scan(venue["restaurant_gate"].id, card.card_data,
                                         restaurant_id=venue["r1"].id)
        assert outcome.result == AccessResult.ALLOWED
        assert outcome.scan.gate_decision.reason == GateReason.RESTAURANT_GATE

    def test_card_denial_skips_gate_policy(self, scan_service, db_helper, venue):
        guest = db_helper.create_guest(venue["r1"].id)
        card = db_helper.create_card(guest.id, valid_to=LUNCH_TIME - timedelta(days=1))

        outcome = scan_service.gate_scan(venue["restaurant_gate"].id, card.card_data)
        assert outcome.result == AccessResult.DENIED
        assert outcome.scan.error_code == ScanCode.CARD_EXPIRED.value
        assert outcome.scan.gate_decision is None

    def test_unknown_gate(self, scan_service, guest_card):
        _, card = guest_card
        with pytest.raises(GateNotFoundError):
            scan_service.gate_scan("missing", card.card_data)

    def test_inactive_gate(self, scan_service, db_helper, guest_card):
        _, card = guest_card
        gate = db_helper.create_gate(GateType.MAIN.value, "Closed Gate", is_active=False)
        with pytest.raises(GateInactiveError):
            scan_service.gate_scan(gate.id, card.card_data)
        assert db_helper.scan_logs(card.id) == []

    def test_gate_lookup_failure_reported_as_error(self, test_db, db_helper, venue, guest_card):
        """A storage failure while loading the gate still yields an audited ERROR"""

        class BrokenStore(ScanStore):
            def get_gate(self, gate_id):
                raise DatabaseError("disk on fire")

        _, card = guest_card
        gate = venue["main_gate"]
        service = ScanService(test_db, store=BrokenStore(test_db), clock=lambda: LUNCH_TIME)
        outcome = service.gate_scan(gate.id, card.card_data)

        assert outcome.result == AccessResult.ERROR
        assert outcome.gate is None
        assert outcome.scan.error_code == ScanCode.ERROR.value
        assert db_helper.get_usage_count(card.id) == 0

        logs = db_helper.scan_logs()
        assert len(logs) == 1
        assert logs[0]["station_id"] == gate.id
        assert logs[0]["error_code"] == "ERROR"
        assert db_helper.access_logs(gate.id) == []
        assert len(db_helper.system_errors()) == 1
