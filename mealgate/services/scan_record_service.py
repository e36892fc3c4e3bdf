"""
Scan history service
Paginated, filterable view over scan_logs joined with card, guest and restaurant.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager, db_manager
from ..models.scan import SCAN_MESSAGES, WARNING_CODES, ScanCode, ScanStatus, classify_scan
from ..models.venue import MealTime
from ..schemas.scan import ScanRecord, ScanRecordPage
from .meal_window import MealWindowResolver, meal_window_resolver
from .scan_store import ScanStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

UNKNOWN_GUEST = "Unknown Guest"
UNKNOWN_RESTAURANT = ("Unknown Restaurant", "مطعم غير معروف")
SCAN_FAILED_AR = "فشل في المسح"

_WARNING_SQL = ", ".join(f"'{code.value}'" for code in sorted(WARNING_CODES))
STATUS_FILTERS = {
    ScanStatus.SUCCESS: "s.is_success",
    ScanStatus.WARNING: f"NOT s.is_success AND s.error_code IN ({_WARNING_SQL})",
    ScanStatus.FAILED: f"NOT s.is_success AND (s.error_code IS NULL OR s.error_code NOT IN ({_WARNING_SQL}))",
}

SEARCH_COLUMNS = (
    "g.first_name", "g.last_name", "g.room_number", "g.company",
    "r.name", "r.name_ar", "c.card_data", "s.error_message",
)


class ScanRecordService:
    """Scan history service"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 resolver: Optional[MealWindowResolver] = None):
        self.db = db or db_manager
        self.store = ScanStore(self.db)
        self.resolver = resolver or meal_window_resolver

    def list_scans(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
                   status: Optional[ScanStatus] = None, start: Optional[datetime] = None,
                   end: Optional[datetime] = None, restaurant_id: Optional[str] = None) -> ScanRecordPage:
        """
        List scan records, newest first

        Args:
            page: 1-based page number
            limit: page size, capped at 100
            search: case-insensitive match on guest, restaurant, card payload and error message
            status: SUCCESS / WARNING / FAILED
            start, end: inclusive scan_time range
            restaurant_id: only scans of this restaurant's guests

        Returns:
            ScanRecordPage: records plus total / page / limit / total_pages
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        conditions: List[str] = []
        params: List[Any] = []
        if search:
            conditions.append("(" + " OR ".join(f"lower({col}) LIKE ?" for col in SEARCH_COLUMNS) + ")")
            params.extend([f"%{search.lower()}%"] * len(SEARCH_COLUMNS))
        if start is not None:
            conditions.append("s.scan_time >= ?")
            params.append(start)
        if end is not None:
            conditions.append("s.scan_time <= ?")
            params.append(end)
        if restaurant_id:
            conditions.append("g.restaurant_id = ?")
            params.append(restaurant_id)
        if status is not None:
            conditions.append(STATUS_FILTERS[ScanStatus(status)])

        joins = """
            FROM scan_logs s
            LEFT JOIN cards c ON c.id = s.card_id
            LEFT JOIN guests g ON g.id = c.guest_id
            LEFT JOIN restaurants r ON r.id = g.restaurant_id
        """
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.db.execute_one(f"SELECT COUNT(*) {joins}{where}", params)[0]
        rows = self.db.fetch_dicts(
            f"""
            SELECT s.id, s.card_id, s.station_id, s.scan_time, s.is_success, s.error_code,
                   s.error_message, s.matched_meal_time_id,
                   c.usage_count, c.max_usage, c.valid_from, c.valid_to, c.meal_time_id AS bound_meal_time_id,
                   g.first_name, g.last_name, g.room_number, g.company,
                   r.id AS restaurant_id, r.name AS restaurant_name, r.name_ar AS restaurant_name_ar
            {joins}{where}
            ORDER BY s.scan_time DESC, s.id
            LIMIT {limit} OFFSET {(page - 1) * limit}
            """,
            params
        )

        logger.debug("Scan history page %s: %s of %s rows", page, len(rows), total)
        windows_by_restaurant: Dict[str, List[MealTime]] = {}
        records = [self._to_record(row, windows_by_restaurant) for row in rows]
        return ScanRecordPage(
            records=records,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    def _restaurant_windows(self, restaurant_id: Optional[str],
                            cache: Dict[str, List[MealTime]]) -> List[MealTime]:
        if not restaurant_id:
            return []
        if restaurant_id not in cache:
            cache[restaurant_id] = self.store.list_meal_times(restaurant_id, active_only=False)
        return cache[restaurant_id]

    def _matched_meal_time(self, row: Dict[str, Any],
                           cache: Dict[str, List[MealTime]]) -> Optional[MealTime]:
        """Stored match, then re-resolution at scan time, then the card's bound window"""
        windows = self._restaurant_windows(row["restaurant_id"], cache)
        stored_id = row["matched_meal_time_id"]
        if stored_id:
            stored = next((w for w in windows if w.id == stored_id), None)
            if stored is None:
                stored = self.store.get_meal_time(stored_id)
            if stored is not None:
                return stored
        resolved = self.resolver.resolve(row["scan_time"], windows)
        if resolved is not None:
            return resolved
        if row["bound_meal_time_id"]:
            return self.store.get_meal_time(row["bound_meal_time_id"])
        return None

    def _to_record(self, row: Dict[str, Any], cache: Dict[str, List[MealTime]]) -> ScanRecord:
        meal = self._matched_meal_time(row, cache)
        has_guest = row["first_name"] is not None
        guest_name = f"{row['first_name']} {row['last_name']}" if has_guest else UNKNOWN_GUEST

        if row["is_success"]:
            message, message_ar = SCAN_MESSAGES[ScanCode.SUCCESS]
            error_code = None
        else:
            error_code = row["error_code"]
            message = row["error_message"] or "Scan failed"
            message_ar = self._arabic_message(error_code)

        return ScanRecord(
            id=row["id"],
            card_id=row["card_id"],
            guest_name=guest_name,
            room_number=row["room_number"],
            company=row["company"],
            meal_type=meal.name if meal else None,
            meal_type_ar=meal.name_ar if meal else None,
            meal_start_time=meal.start_time if meal else None,
            meal_end_time=meal.end_time if meal else None,
            restaurant_name=row["restaurant_name"] or UNKNOWN_RESTAURANT[0],
            restaurant_name_ar=row["restaurant_name_ar"] or row["restaurant_name"] or UNKNOWN_RESTAURANT[1],
            station_id=row["station_id"],
            scan_time=row["scan_time"],
            status=classify_scan(row["is_success"], row["error_code"]),
            message=message,
            message_ar=message_ar,
            error_code=error_code,
            usage_count=row["usage_count"],
            max_usage=row["max_usage"],
            valid_from=row["valid_from"],
            valid_to=row["valid_to"],
        )

    @staticmethod
    def _arabic_message(error_code: Optional[str]) -> str:
        try:
            return SCAN_MESSAGES[ScanCode(error_code)][1]
        except ValueError:
            return SCAN_FAILED_AR


def get_scan_record_service() -> ScanRecordService:
    """FastAPI dependency"""
    return ScanRecordService()
