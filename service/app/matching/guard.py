"""Input-size limits checked before any cross-product work."""

import structlog

from app.config import DEFAULT_CONFIG, MatchingConfig
from app.schemas.matching import CapacityError

logger = structlog.get_logger()


def check_capacity(
    invoice_count: int,
    payment_count: int,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> CapacityError | None:
    """Return a CapacityError when the run would be too large, else None.

    Fail-fast: callers narrow the date range or batch and retry.
    """
    total = invoice_count + payment_count
    comparisons = invoice_count * payment_count

    problem = None
    if invoice_count > config.max_input_invoices:
        problem = "Too many invoices: %d (max %d)." % (invoice_count, config.max_input_invoices)
    elif payment_count > config.max_input_payments:
        problem = "Too many payments: %d (max %d)." % (payment_count, config.max_input_payments)
    elif total > config.max_total_records:
        problem = "Too many records: %d invoices + %d payments = %d (max %d)." % (
            invoice_count, payment_count, total, config.max_total_records,
        )
    elif comparisons > config.max_comparisons:
        problem = "Too many comparisons: %d x %d = %d (max %d)." % (
            invoice_count, payment_count, comparisons, config.max_comparisons,
        )

    if problem is None:
        if total > config.warning_threshold:
            logger.warning("large_matching_input", invoices=invoice_count, payments=payment_count)
        return None

    logger.warning(
        "capacity_exceeded",
        invoices=invoice_count,
        payments=payment_count,
        comparisons=comparisons,
    )
    return CapacityError(
        message=problem + " Narrow the date range or match a smaller batch.",
        invoice_count=invoice_count,
        payment_count=payment_count,
        max_input_invoices=config.max_input_invoices,
        max_input_payments=config.max_input_payments,
        max_total_records=config.max_total_records,
        max_comparisons=config.max_comparisons,
    )
