"""
Bid summary reporting: a log block at shutdown plus a JSON record on disk.
"""

import json
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Optional

from cca_bidder.core.registry import BidStatus, BidSummary
from cca_bidder.utils.logger import get_logger

logger = get_logger("report")


def log_summary(summary: BidSummary, reason: IntEnum, error: Optional[str] = None) -> None:
    """Log totals and one line per bid."""
    logger.info("=" * 60)
    logger.info(f"Shutdown reason: {reason.name}")
    if error:
        logger.error(f"Shutdown error: {error}")
    logger.info(
        f"Bids: {summary.submitted} submitted, {summary.failed} failed, "
        f"{summary.pending} pending ({summary.total} total)"
    )
    for index, outcome in enumerate(summary.outcomes, start=1):
        prefix = f"  #{index} owner={outcome.owner} amount={outcome.amount} max_bid={outcome.max_bid}"
        if outcome.status == BidStatus.SUBMITTED:
            logger.info(f"{prefix} SUBMITTED tx={outcome.tx_hash}")
        elif outcome.status == BidStatus.FAILED:
            logger.error(f"{prefix} FAILED after {outcome.attempts} attempt(s): {outcome.error}")
        else:
            logger.warning(
                f"{prefix} PENDING {outcome.attempts}/{outcome.max_retries} attempt(s), "
                f"last error: {outcome.last_error}"
            )
    if summary.pending:
        logger.warning(f"{summary.pending} bid(s) still pending, verify their state on chain")
    logger.info("=" * 60)


def persist_summary(
    summary: BidSummary,
    reason: IntEnum,
    directory: Path,
    error: Optional[str] = None,
) -> Path:
    """
    Write the summary as JSON under directory.

    Returns:
        Path of the written file (bid-summary-<UTC timestamp>.json)
    """
    now = datetime.now(timezone.utc)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"bid-summary-{now.strftime('%Y%m%dT%H%M%S%fZ')}.json"
    record = {
        "timestamp": now.isoformat(),
        "reason": reason.name,
        "error": error,
        **summary.to_dict(),
    }
    with open(path, "w") as f:
        json.dump(record, f, indent=2)
    return path


__all__ = ["log_summary", "persist_summary"]
