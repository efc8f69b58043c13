"""Payment matching agent.

Runs the synchronous matching engine for API requests. The engine is CPU
bound, so it runs on a worker thread to keep the event loop free; each
request still gets one single-threaded, deterministic run.
"""

import asyncio

import structlog

from app.config import MatchingConfig
from app.matching.engine import GroupMatchingOptions, exclude_confirmed, find_matches_extended
from app.matching.scorer import calculate_match_confidence, match_quality
from app.matching.tracing import RecordingTracer, StructlogTracer
from app.schemas.matching import MatchRequest, MatchResponse, ScoreRequest, ScoreResponse, TraceEvent

logger = structlog.get_logger()


class PaymentMatchingAgent:
    """Match incoming payments to open invoices."""

    def __init__(self, config: MatchingConfig | None = None):
        self.config = config or MatchingConfig.from_env()

    async def run(self, request: MatchRequest) -> MatchResponse:
        invoices, payments = exclude_confirmed(request.invoices, request.payments, request.confirmed)
        options = GroupMatchingOptions(
            enable_group_matching=request.enable_group_matching,
            max_months_to_group=request.max_months_to_group,
        )
        tracer = StructlogTracer() if request.debug else None

        with structlog.contextvars.bound_contextvars(request_id=request.request_id):
            logger.info(
                "matching_started",
                invoices=len(invoices),
                payments=len(payments),
                already_confirmed=len(request.confirmed),
            )
            result = await asyncio.to_thread(
                find_matches_extended, invoices, payments, options, self.config, tracer=tracer,
            )
            if result.error:
                logger.warning("matching_refused", reason=result.error.message)
            else:
                logger.info(
                    "matching_finished",
                    auto_matches=len(result.auto_matches),
                    suggestions=len(result.suggestions),
                    group_suggestions=len(result.group_suggestions),
                )

        return MatchResponse(request_id=request.request_id, **dict(result))

    def score(self, request: ScoreRequest) -> ScoreResponse:
        """Score a single pair, e.g. for a manually created match."""
        tracer = RecordingTracer() if request.explain else None
        result = calculate_match_confidence(request.invoice, request.payment, self.config, tracer=tracer)
        trace = [TraceEvent(event=name, details=details) for name, details in tracer.events] if tracer else []
        return ScoreResponse(
            result=result,
            quality=match_quality(result.confidence, self.config),
            trace=trace,
        )
