"""
Scan storage
Reads card/guest/restaurant/gate state and appends scan audit rows.
All reads used by a scan evaluation run inside the caller's transaction.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..core.database import DatabaseManager, db_manager
from ..models.guest import Card, Guest
from ..models.payload import CardContext
from ..models.scan import AccessLog, ScanLog
from ..models.venue import Gate, MealTime, Restaurant

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


class ScanStore:
    """Storage collaborator of the scan engine"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    # ---- cards ----

    def find_card(self, raw_payload: str, decoded: Optional[CardContext]) -> Optional[Card]:
        """
        Locate the card behind a scanned payload

        Lookup order: exact stored payload, decoded card id, then card number
        (decoded, or the raw string taken literally).
        """
        row = self.db.fetch_dict("SELECT * FROM cards WHERE card_data = ? LIMIT 1", [raw_payload])
        if row is None and decoded is not None and decoded.card_id:
            row = self.db.fetch_dict("SELECT * FROM cards WHERE id = ?", [decoded.card_id])
        if row is None:
            number = decoded.card_number if decoded is not None and decoded.card_number else raw_payload.strip()
            row = self.db.fetch_dict(
                "SELECT * FROM cards WHERE card_number = ? OR card_data = ? ORDER BY created_at DESC LIMIT 1",
                [number, number]
            )
        return Card(**row) if row else None

    def get_card(self, card_id: str) -> Optional[Card]:
        row = self.db.fetch_dict("SELECT * FROM cards WHERE id = ?", [card_id])
        return Card(**row) if row else None

    def insert_card(self, card: Card):
        self.db.execute_query(
            """
            INSERT INTO cards (id, guest_id, meal_time_id, card_type, card_number, card_data,
                               valid_from, valid_to, is_active, usage_count, max_usage, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [card.id, card.guest_id, card.meal_time_id, card.card_type.value, card.card_number,
             card.card_data, card.valid_from, card.valid_to, card.is_active, card.usage_count,
             card.max_usage, card.created_at or datetime.now()]
        )

    def set_allowed_meals(self, card_id: str, meal_time_ids: Iterable[str]):
        self.db.execute_query("DELETE FROM card_allowed_meals WHERE card_id = ?", [card_id])
        for meal_time_id in dict.fromkeys(meal_time_ids):
            self.db.execute_query(
                "INSERT INTO card_allowed_meals (card_id, meal_time_id) VALUES (?, ?)",
                [card_id, meal_time_id]
            )

    def allowed_meal_ids(self, card_id: str) -> Set[str]:
        rows = self.db.execute_query(
            "SELECT meal_time_id FROM card_allowed_meals WHERE card_id = ?", [card_id]
        )
        return {row[0] for row in rows}

    def increment_usage(self, card_id: str) -> Optional[int]:
        """Conditional increment; None when max_usage is already reached"""
        row = self.db.execute_one(
            """
            UPDATE cards SET usage_count = usage_count + 1
            WHERE id = ? AND (max_usage IS NULL OR usage_count < max_usage)
            RETURNING usage_count
            """,
            [card_id]
        )
        return row[0] if row else None

    # ---- guests, restaurants, meal times ----

    def get_guest(self, guest_id: str) -> Optional[Guest]:
        row = self.db.fetch_dict("SELECT * FROM guests WHERE id = ?", [guest_id])
        return Guest(**row) if row else None

    def get_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        row = self.db.fetch_dict("SELECT * FROM restaurants WHERE id = ?", [restaurant_id])
        return Restaurant(**row) if row else None

    def get_meal_time(self, meal_time_id: str) -> Optional[MealTime]:
        row = self.db.fetch_dict("SELECT * FROM meal_times WHERE id = ?", [meal_time_id])
        return MealTime(**row) if row else None

    def list_meal_times(self, restaurant_id: str, active_only: bool = True) -> List[MealTime]:
        query = "SELECT * FROM meal_times WHERE restaurant_id = ?"
        if active_only:
            query += " AND is_active"
        query += " ORDER BY start_time, created_at, id"
        return [MealTime(**row) for row in self.db.fetch_dicts(query, [restaurant_id])]

    # ---- gates ----

    def get_gate(self, gate_id: str) -> Optional[Gate]:
        row = self.db.fetch_dict("SELECT * FROM gates WHERE id = ?", [gate_id])
        if not row:
            return None
        linked = self.db.execute_query(
            "SELECT id FROM restaurants WHERE gate_id = ? AND is_active ORDER BY name", [gate_id]
        )
        return Gate(**row, restaurant_ids=[r[0] for r in linked])

    # ---- audit trail ----

    def has_success_between(self, card_id: str, start: datetime, end: datetime) -> bool:
        row = self.db.execute_one(
            """
            SELECT 1 FROM scan_logs
            WHERE card_id = ? AND is_success AND scan_time BETWEEN ? AND ?
            LIMIT 1
            """,
            [card_id, start, end]
        )
        return row is not None

    def insert_scan_log(self, log: ScanLog):
        self.db.execute_query(
            """
            INSERT INTO scan_logs (id, card_id, guest_id, station_id, scan_time, is_success,
                                   error_code, error_message, matched_meal_time_id, processing_time_ms)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [log.id, log.card_id, log.guest_id, log.station_id, log.scan_time, log.is_success,
             log.error_code, log.error_message, log.matched_meal_time_id, log.processing_time_ms]
        )

    def insert_access_log(self, log: AccessLog):
        self.db.execute_query(
            """
            INSERT INTO access_logs (id, gate_id, card_id, guest_id, scan_time, is_success,
                                     access_type, error_code, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [log.id, log.gate_id, log.card_id, log.guest_id, log.scan_time, log.is_success,
             log.access_type, log.error_code, log.error_message]
        )

    def get_scan_log(self, scan_id: str) -> Optional[ScanLog]:
        row = self.db.fetch_dict("SELECT * FROM scan_logs WHERE id = ?", [scan_id])
        return ScanLog(**row) if row else None

    def log_system_error(self, detail: Dict[str, Any]):
        self.db.execute_query(
            "INSERT INTO logs (action, detail_json, created_at) VALUES (?, ?, ?)",
            ["system_error", json.dumps(detail, ensure_ascii=False, default=str), datetime.now()]
        )
