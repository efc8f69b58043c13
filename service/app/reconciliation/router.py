from fastapi import APIRouter, Depends, HTTPException

from app.agents.matching_agent import PaymentMatchingAgent
from app.config import MatchingConfig
from app.matching.confirmation import MatchConflictError, confirm_group, confirm_match
from app.schemas.matching import (
    ConfirmedMatch,
    ConfirmGroupRequest,
    ConfirmRequest,
    MatchRequest,
    MatchResponse,
    ScoreRequest,
    ScoreResponse,
)

router = APIRouter(prefix="/v1/matching")


def get_matching_agent() -> PaymentMatchingAgent:
    """Agent for the current environment; a bad MATCHING_* setting is a 503, not an import error."""
    try:
        return PaymentMatchingAgent(MatchingConfig.from_env())
    except ValueError as exc:
        raise HTTPException(status_code=503, detail="Matching is misconfigured: %s" % exc)


@router.post("/run", response_model=MatchResponse)
async def run_matching(
    request: MatchRequest,
    agent: PaymentMatchingAgent = Depends(get_matching_agent),
) -> MatchResponse:
    return await agent.run(request)


@router.post("/score", response_model=ScoreResponse)
async def score_pair(
    request: ScoreRequest,
    agent: PaymentMatchingAgent = Depends(get_matching_agent),
) -> ScoreResponse:
    return agent.score(request)


@router.post("/confirm", response_model=ConfirmedMatch)
async def confirm(request: ConfirmRequest) -> ConfirmedMatch:
    try:
        return confirm_match(request.result, request.match_type, request.existing)
    except MatchConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/confirm-group", response_model=list[ConfirmedMatch])
async def confirm_group_match(request: ConfirmGroupRequest) -> list[ConfirmedMatch]:
    try:
        return confirm_group(request.suggestion, request.existing)
    except MatchConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
