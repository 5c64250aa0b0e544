from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from arcade.game.rewards import RewardClaim
from arcade.game.service import ScoreSubmission, UserStats
from arcade.server.dependencies import ArcadeServices, get_services, limiter, logger

router = APIRouter(tags=["Game"])


@router.post("/score")
async def submit_score(body: ScoreSubmission, services: ArcadeServices = Depends(get_services)):
    """Record a finished game"""
    stats = services.game.record_score(body.address, body.score, body.isPremium)
    return {"success": True, "message": f"Score recorded: {body.score}", "stats": stats}


@router.get("/stats/{address}", response_model=UserStats)
async def user_stats(address: str, services: ArcadeServices = Depends(get_services)):
    return services.game.get_user_stats(address)


@router.get("/leaderboard", response_model=List[UserStats])
async def leaderboard(limit: int = 10, services: ArcadeServices = Depends(get_services)):
    return services.game.get_leaderboard(max(1, min(limit, 100)))


@router.post("/claim-reward")
@limiter.limit("10/minute")
async def claim_reward(
    request: Request,
    body: RewardClaim,
    services: ArcadeServices = Depends(get_services),
):
    """
    Pay out a score reward
    Only classic-mode scores at or above the reward rate qualify
    """
    if services.rewards is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reward service not initialized",
        )

    result = await services.rewards.send_reward(body.address, body.score, body.gameMode)

    if result.success:
        logger.info(
            "reward_claimed",
            address=body.address.lower(),
            score=body.score,
            reward_amount=result.reward_amount,
            tx_hash=result.tx_hash,
        )
        return {
            "success": True,
            "txHash": result.tx_hash,
            "rewardAmount": str(result.reward_amount),
            "rewardAmountFormatted": result.reward_amount_formatted,
            "message": f"Reward of {result.reward_amount_formatted} sent successfully",
        }

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": result.error,
            "rewardAmount": str(result.reward_amount),
            "rewardAmountFormatted": result.reward_amount_formatted,
        },
    )
