from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from arcade.payments.models import PaymentRecord, VerifyPaymentRequest
from arcade.server.dependencies import ArcadeServices, get_payer_key, get_services, limiter, logger

router = APIRouter(tags=["Paywall"])


@router.get("/play")
@limiter.limit("120/minute", key_func=get_payer_key)
async def play(
    request: Request,
    address: Optional[str] = None,
    x_payment: Optional[str] = Header(default=None, alias="X-Payment"),
    services: ArcadeServices = Depends(get_services),
):
    """
    Gated game start
    Free plays first, then an x402 challenge until a payment header verifies
    """
    if not address or not address.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Address required")

    decision = services.gate.check_access(address, x_payment)

    if not decision.allowed:
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content=decision.challenge.model_dump(exclude_none=True),
            headers={
                "X-Payment-Required": "true",
                "X-Invoice-Id": decision.invoice.id,
            },
        )

    game_data = services.game.get_game_data(address, decision.is_premium)
    body = {
        "allowed": True,
        "isPremium": decision.is_premium,
        "gameData": game_data.model_dump(),
    }
    if decision.free_play_remaining is not None:
        body["freePlayRemaining"] = decision.free_play_remaining
    return body


@router.post("/verify-payment")
@limiter.limit("60/minute")
async def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    services: ArcadeServices = Depends(get_services),
):
    """Verify a payment header out of band and record it"""
    if not body.address.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Address required")

    if services.gate.verify(body.address, body.paymentHeader):
        return {"success": True, "message": "Payment verified"}

    logger.info("verify_payment_rejected", payer=body.address.lower())
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"success": False, "error": "Invalid payment"},
    )


@router.get("/payments/{address}", response_model=List[PaymentRecord])
async def payment_history(address: str, services: ArcadeServices = Depends(get_services)):
    """Payment records for a payer"""
    return services.ledger.history(address)
