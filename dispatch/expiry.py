"""
Purpose: Explicit bidding-window sweep.
What it does:
Requesters see a countdown while bids come in, but nothing in the lifecycle
expires a request by itself. This sweep is the scheduled job (cron, Celery
beat, ...) that cancels requests still OPEN_FOR_BIDS once the policy's
bidding window has passed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from orders.errors import InvalidTransitionError
from orders.models import DeliveryRequest, LifecycleState
from orders.policy import MarketplacePolicy

from .lifecycle import RequestLifecycle

logger = logging.getLogger(__name__)

EXPIRY_REASON = "bidding_expired"


class BiddingWindowSweeper:
    """
    The time-based "heartbeat" for open requests.
    Reads request ages from the store, compares them against the policy,
    and cancels the ones whose window has closed.
    """
    def __init__(self, lifecycle: RequestLifecycle, policy: Optional[MarketplacePolicy] = None):
        self.lifecycle = lifecycle
        self.policy = policy or lifecycle.policy

    def expired(self, now: Optional[datetime] = None) -> List[DeliveryRequest]:
        now = now or self.lifecycle.clock()
        cutoff = now - timedelta(seconds=self.policy.bidding_window_sec)
        return [
            record
            for record in self.lifecycle.store.list_requests(LifecycleState.OPEN_FOR_BIDS)
            if record.created_at <= cutoff
        ]

    def run_cycle(self, now: Optional[datetime] = None) -> List[DeliveryRequest]:
        """
        Cancel every expired request. Returns the cancelled snapshots.

        A request that moved on between the listing and the cancel (a bid got
        accepted) is skipped.
        """
        cancelled: List[DeliveryRequest] = []
        for record in self.expired(now):
            try:
                outcome = self.lifecycle.cancel(
                    record.id, reason=EXPIRY_REASON, expected_state=LifecycleState.OPEN_FOR_BIDS
                )
            except InvalidTransitionError as e:
                logger.info(f"Skipping expiry of request {record.id}: {e.message}")
                continue
            cancelled.append(outcome.request)

        if cancelled:
            logger.info(f"Bidding sweep cancelled {len(cancelled)} expired request(s)")
        return cancelled
