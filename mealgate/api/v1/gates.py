"""
Gate scan routes
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...config.settings import settings
from ...core.error_handler import ErrorHandler
from ...core.exceptions import GateInactiveError, GateNotFoundError
from ...schemas.gate import GateScanData, GateScanRequest, GateScanResponse, MealCount
from ...services.meal_window import describe_meal_period
from ...services.scan_service import AccessResult, GateScanResult, ScanService, get_scan_service

router = APIRouter()

RESULT_STATUS = {
    AccessResult.ALLOWED: 200,
    AccessResult.DENIED: 400,
    AccessResult.ERROR: 500,
}


def _meal_count(outcome: GateScanResult):
    card = outcome.scan.card
    if card is None:
        return None
    if card.max_usage is None:
        unlimited = settings.unlimited_usage_display
        return MealCount(used=card.usage_count, total=unlimited, remaining=unlimited)
    return MealCount(used=card.usage_count, total=card.max_usage, remaining=card.remaining_usage)


def _scan_data(outcome: GateScanResult) -> GateScanData:
    scan = outcome.scan
    matched = scan.outcome.matched_meal_time
    return GateScanData(
        guest_id=scan.guest.id if scan.guest else None,
        guest_name=scan.guest.full_name if scan.guest else None,
        card_id=scan.card.id if scan.card else None,
        restaurant_id=scan.restaurant.id if scan.restaurant else None,
        restaurant_name=scan.restaurant.name if scan.restaurant else None,
        gate_id=outcome.gate.id,
        gate_name=outcome.gate.name,
        meal_count=_meal_count(outcome),
        current_meal_time=matched.name if matched else describe_meal_period(scan.scanned_at),
        valid_from=scan.card.valid_from if scan.card else None,
        valid_to=scan.card.valid_to if scan.card else None,
        allowed_meal_times=[w.name for w in scan.allowed_meal_times],
    )


@router.post("/{gate_id}/scan", response_model=GateScanResponse)
def gate_scan(
    gate_id: str,
    request: GateScanRequest,
    service: ScanService = Depends(get_scan_service)
):
    """Scan a card at a gate: 200 allowed, 400 denied or gate inactive, 404 unknown gate, 500 error"""
    try:
        outcome = service.gate_scan(gate_id, request.card_data, request.scan_type, request.restaurant_id)
    except (GateNotFoundError, GateInactiveError) as e:
        response = GateScanResponse(
            success=False,
            result=AccessResult.ERROR.value,
            error_code=e.error_code,
            message=e.message,
            message_ar=e.message_ar,
            timestamp=datetime.now(),
        )
        return JSONResponse(status_code=ErrorHandler.status_for(e.error_code),
                            content=response.model_dump(mode="json", by_alias=True))

    scan = outcome.scan
    response = GateScanResponse(
        success=scan.success,
        result=outcome.result.value,
        scan_id=scan.scan_id,
        error_code=scan.error_code,
        reason_code=scan.gate_decision.reason.value if scan.gate_decision else None,
        message=scan.message,
        message_ar=scan.message_ar,
        data=_scan_data(outcome) if outcome.result != AccessResult.ERROR else None,
        timestamp=scan.scanned_at,
    )
    return JSONResponse(status_code=RESULT_STATUS[outcome.result],
                        content=response.model_dump(mode="json", by_alias=True))
