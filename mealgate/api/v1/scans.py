"""
Accommodation scan routes
Manual scans from staff stations and the scan history.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ...models.scan import ScanCode, ScanStatus
from ...schemas.scan import (
    CardInfo,
    GuestInfo,
    ManualScanRequest,
    ManualScanResponse,
    MealTimeInfo,
    RestaurantInfo,
    ScanRecordPage
)
from ...services.scan_record_service import ScanRecordService, get_scan_record_service
from ...services.scan_service import ScanService, get_scan_service

router = APIRouter()


@router.post("/manual-scan", response_model=ManualScanResponse)
def manual_scan(
    request: ManualScanRequest,
    service: ScanService = Depends(get_scan_service)
):
    """Validate a card at a staff station; 200 for every business outcome, 500 on system error"""
    result = service.manual_scan(request.card_data, request.station_id, request.scan_type)

    response = ManualScanResponse(
        success=result.success,
        scan_id=result.scan_id,
        error_code=result.error_code,
        message=result.message,
        message_ar=result.message_ar,
        card=CardInfo.from_model(result.card),
        guest=GuestInfo.from_model(result.guest),
        restaurant=RestaurantInfo.from_model(result.restaurant),
        matched_meal_time=MealTimeInfo.from_model(result.outcome.matched_meal_time),
        timestamp=result.scanned_at,
    )
    status_code = 500 if result.error_code == ScanCode.ERROR.value else 200
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json", by_alias=True))


@router.get("/scans", response_model=ScanRecordPage)
def list_scans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    status: Optional[ScanStatus] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    service: ScanRecordService = Depends(get_scan_record_service)
):
    """Scan history, newest first; limit is capped at 100"""
    return service.list_scans(
        page=page,
        limit=limit,
        search=search or None,
        status=status,
        start=start_date,
        end=end_date,
        restaurant_id=restaurant_id,
    )
