"""
Card routes
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ...schemas.card import CardIssueRequest, CardResponse
from ...services.card_service import CardService, get_card_service

router = APIRouter()


@router.post("", response_model=CardResponse, status_code=201)
def issue_card(
    request: CardIssueRequest,
    service: CardService = Depends(get_card_service)
):
    """Issue a card; the QR payload is generated from the guest and meal windows"""
    return service.issue_card(request)


@router.get("/{card_id}/qr")
def card_qr(
    card_id: str,
    service: CardService = Depends(get_card_service)
):
    """Printable QR code of a card"""
    png = service.qr_png(card_id)
    return Response(content=png, media_type="image/png")
