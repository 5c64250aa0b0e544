from fastapi import APIRouter, Depends

from arcade.payments.models import utcnow
from arcade.server.dependencies import ArcadeServices, get_services

router = APIRouter(tags=["General"])


@router.get("/", tags=["Health"])
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Gasless Arcade",
        "version": "0.1.0",
        "status": "operational",
        "x402_manifest": "/x402.json"
    }


@router.get("/x402.json", tags=["Paywall"])
async def get_x402_manifest(services: ArcadeServices = Depends(get_services)):
    """
    x402 protocol manifest
    Machine-readable description of the paywall
    """
    config = services.config
    return {
        "version": "1.0",
        "name": "Gasless Arcade",
        "description": "Pay-per-play arcade gated by x402 payments",
        "payment_methods": ["x402-exact-eip3009"],
        "supported_networks": [config.network],
        "asset": config.asset_address,
        "pay_to": config.pay_to_address,
        "price": str(config.game_fee_amount),
        "currency": config.game_fee_currency,
        "free_plays": config.free_play_limit,
        "endpoints": {
            "play": "/play",
            "verify_payment": "/verify-payment",
            "claim_reward": "/claim-reward",
        },
    }


@router.get("/health", tags=["Health"])
async def health_check(services: ArcadeServices = Depends(get_services)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "paid_players": len(services.ledger),
        "open_invoices": len(services.invoices),
        "rewards_enabled": services.rewards is not None,
    }
