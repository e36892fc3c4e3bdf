"""
Scan service
Runs a scanned payload through decoding, card validation, the gate policy and
usage recording, and writes the audit trail.

Business rules:
- every evaluation appends exactly one scan log; gate scans also append one access log
- card lookup, validation, usage increment and log writes are one transaction,
  so a card gets at most one success per meal window and never exceeds max_usage
- a gate denial is decided before consumption, so it never spends a meal
- infrastructure failures become an ERROR result with a best-effort audit row
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

from ..config.settings import settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import GateInactiveError, GateNotFoundError
from ..models.guest import Card, CardType, Guest
from ..models.payload import CardContext
from ..models.scan import AccessLog, ScanCode, ScanLog, ScanOutcome
from ..models.venue import Gate, MealTime, Restaurant
from .card_validator import AllowedWindows, CardValidator
from .gate_policy import GateAccessPolicy, GateDecision, gate_access_policy
from .qr_codec import QrCodec, qr_codec
from .scan_store import ScanStore, new_id
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class AccessResult(str, Enum):
    """Gate scan result"""
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"
    ERROR = "ERROR"


class ScanResult(BaseModel):
    """Outcome of one scan plus the records it touched"""
    scan_id: Optional[str] = None
    outcome: ScanOutcome
    gate_decision: Optional[GateDecision] = None
    success: bool
    error_code: Optional[str] = None
    message: str
    message_ar: str
    card: Optional[Card] = None
    guest: Optional[Guest] = None
    restaurant: Optional[Restaurant] = None
    allowed_meal_times: List[MealTime] = []
    scanned_at: datetime


class GateScanResult(BaseModel):
    """Outcome of a gate scan"""
    result: AccessResult
    gate: Optional[Gate] = None  # None when the gate lookup itself failed
    scan: ScanResult


class ScanService:
    """Scan orchestration service"""

    def __init__(self, db: Optional[DatabaseManager] = None, store: Optional[ScanStore] = None,
                 codec: Optional[QrCodec] = None, policy: Optional[GateAccessPolicy] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.db = db or db_manager
        self.store = store or ScanStore(self.db)
        self.ledger = UsageLedger(self.store)
        self.validator = CardValidator(self.ledger)
        self.codec = codec or qr_codec
        self.policy = policy or gate_access_policy
        self.clock = clock

    def manual_scan(self, card_data: str, station_id: Optional[str] = None,
                    scan_type: CardType = CardType.QR, now: Optional[datetime] = None) -> ScanResult:
        """
        Validate a scan at a station without gate rules

        Args:
            card_data: raw scanned payload
            station_id: scanning station, defaults to settings.default_station_id
            scan_type: QR payloads are decoded, RFID payloads are card numbers
            now: scan time, defaults to the service clock

        Returns:
            ScanResult: decision and audit row id; code ERROR on infrastructure failure
        """
        started = time.perf_counter()
        now = now or self.clock()
        station_id = station_id or settings.default_station_id
        decoded = self._decode(card_data, scan_type)

        try:
            with self.db.transaction():
                result = self._evaluate(card_data, decoded, station_id, now, started)
        except Exception as e:
            logger.exception("Scan evaluation failed at station %s", station_id)
            return self._record_failure(e, station_id, now, started)

        logger.info("Scan %s at %s: %s", result.scan_id, station_id, result.error_code or "SUCCESS")
        return result

    def gate_scan(self, gate_id: str, card_data: str, scan_type: CardType = CardType.QR,
                  restaurant_id: Optional[str] = None, now: Optional[datetime] = None) -> GateScanResult:
        """
        Validate a scan at a gate: card validation, then the gate policy

        Raises:
            GateNotFoundError: unknown gate
            GateInactiveError: gate is switched off
        """
        started = time.perf_counter()
        now = now or self.clock()

        try:
            gate = self.store.get_gate(gate_id)
        except Exception as e:
            logger.exception("Gate lookup failed for %s", gate_id)
            scan = self._record_failure(e, gate_id, now, started)
            return GateScanResult(result=AccessResult.ERROR, scan=scan)
        if gate is None:
            raise GateNotFoundError("Gate not found", details={"gate_id": gate_id})
        if not gate.is_active:
            raise GateInactiveError("Gate is currently inactive", details={"gate_id": gate_id})

        decoded = self._decode(card_data, scan_type)
        try:
            with self.db.transaction():
                scan = self._evaluate(card_data, decoded, gate.id, now, started,
                                      gate=gate, requested_restaurant_id=restaurant_id)
        except Exception as e:
            logger.exception("Gate scan evaluation failed at gate %s", gate.id)
            scan = self._record_failure(e, gate.id, now, started, gate=gate)
            return GateScanResult(result=AccessResult.ERROR, gate=gate, scan=scan)

        result = AccessResult.ALLOWED if scan.success else AccessResult.DENIED
        logger.info("Gate %s scan %s: %s", gate.id, scan.scan_id, scan.error_code or result.value)
        return GateScanResult(result=result, gate=gate, scan=scan)

    def _decode(self, card_data: str, scan_type: CardType) -> Optional[CardContext]:
        if scan_type != CardType.QR:
            return None
        decoded = self.codec.decode(card_data)
        if decoded is None:
            logger.debug("Payload not decodable, looking it up as a literal card number")
        return decoded

    def _allowed_windows(self, card: Card, restaurant: Optional[Restaurant]) -> AllowedWindows:
        restaurant_windows = self.store.list_meal_times(restaurant.id) if restaurant else []
        bound = self.store.get_meal_time(card.meal_time_id) if card.meal_time_id else None
        return AllowedWindows.compose(card, restaurant_windows, bound,
                                      self.store.allowed_meal_ids(card.id))

    def _evaluate(self, card_data: str, decoded: Optional[CardContext], station_id: str,
                  now: datetime, started: float, gate: Optional[Gate] = None,
                  requested_restaurant_id: Optional[str] = None) -> ScanResult:
        """Single evaluation; must run inside a transaction"""
        card = self.store.find_card(card_data, decoded)
        guest = restaurant = None
        windows = AllowedWindows.unrestricted()
        if card is not None:
            guest = self.store.get_guest(card.guest_id)
            if guest is not None and guest.restaurant_id:
                restaurant = self.store.get_restaurant(guest.restaurant_id)
            windows = self._allowed_windows(card, restaurant)

        outcome = self.validator.evaluate(card, guest, windows, now)

        gate_decision = None
        if outcome.success and gate is not None:
            gate_decision = self.policy.authorize(gate, restaurant, requested_restaurant_id)

        if outcome.success and (gate_decision is None or gate_decision.allowed):
            new_count = self.ledger.record_consumption(card.id)
            if new_count is None:
                outcome = ScanOutcome.of(ScanCode.MEAL_LIMIT_EXCEEDED, outcome.matched_meal_time)
            else:
                card = card.model_copy(update={"usage_count": new_count})

        if not outcome.success:
            success, error_code = False, outcome.code.value
            message, message_ar = outcome.message, outcome.message_ar
        elif gate_decision is not None and not gate_decision.allowed:
            success, error_code = False, gate_decision.reason.value
            message, message_ar = gate_decision.message, gate_decision.message_ar
        else:
            success, error_code = True, None
            message, message_ar = outcome.message, outcome.message_ar

        scan_log = ScanLog(
            id=new_id(),
            card_id=card.id if card else None,
            guest_id=card.guest_id if card else None,
            station_id=station_id,
            scan_time=now,
            is_success=success,
            error_code=error_code,
            error_message=None if success else message,
            matched_meal_time_id=outcome.matched_meal_time.id if outcome.matched_meal_time else None,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )
        self.store.insert_scan_log(scan_log)
        if gate is not None:
            self.store.insert_access_log(AccessLog(
                id=new_id(),
                gate_id=gate.id,
                card_id=scan_log.card_id,
                guest_id=scan_log.guest_id,
                scan_time=now,
                is_success=success,
                error_code=error_code,
                error_message=scan_log.error_message,
            ))

        return ScanResult(
            scan_id=scan_log.id,
            outcome=outcome,
            gate_decision=gate_decision,
            success=success,
            error_code=error_code,
            message=message,
            message_ar=message_ar,
            card=card,
            guest=guest,
            restaurant=restaurant,
            allowed_meal_times=[w for w in windows.candidates if windows.permits(w.id)],
            scanned_at=now,
        )

    def _record_failure(self, error: Exception, station_id: str, now: datetime, started: float,
                        gate: Optional[Gate] = None) -> ScanResult:
        """Best-effort audit of an infrastructure failure"""
        outcome = ScanOutcome.of(ScanCode.ERROR)
        scan_id = new_id()
        try:
            self.store.insert_scan_log(ScanLog(
                id=scan_id,
                station_id=station_id,
                scan_time=now,
                is_success=False,
                error_code=ScanCode.ERROR.value,
                error_message=outcome.message,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            ))
            if gate is not None:
                self.store.insert_access_log(AccessLog(
                    id=new_id(), gate_id=gate.id, scan_time=now, is_success=False,
                    error_code=ScanCode.ERROR.value, error_message=outcome.message,
                ))
            self.store.log_system_error({
                "station_id": station_id,
                "type": type(error).__name__,
                "message": str(error),
            })
        except Exception:
            logger.exception("Failed to record scan failure at %s", station_id)
            scan_id = None

        return ScanResult(
            scan_id=scan_id,
            outcome=outcome,
            success=False,
            error_code=ScanCode.ERROR.value,
            message=outcome.message,
            message_ar=outcome.message_ar,
            scanned_at=now,
        )


def get_scan_service() -> ScanService:
    """FastAPI dependency"""
    return ScanService()
