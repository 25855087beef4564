"""
Purpose: BidRegistry, the bidder-facing side of a request.
What it does:
Accepts bid submissions while a request is open, lists bids for display
(lowest amount first), and hands acceptance to the lifecycle, whose
conditional write enforces at most one accepted bid per request.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from orders.errors import ConflictError
from orders.models import Bid, BidState

from .lifecycle import AcceptanceOutcome, RequestLifecycle

logger = logging.getLogger(__name__)


def sort_bids(bids: Iterable[Bid]) -> List[Bid]:
    """
    Lowest amount first; ties broken by earliest created_at, then by
    submission order.
    """
    return sorted(bids, key=lambda bid: (bid.amount, bid.created_at, bid.sequence))


class BidRegistry:
    def __init__(self, lifecycle: RequestLifecycle):
        self.lifecycle = lifecycle

    def submit(self, request_id: str, bidder_id: str, amount, estimated_time: str) -> Bid:
        """
        Add a pending bid. ValidationError if the request is not open for bids
        or the amount is not positive.
        """
        _, bid = self.lifecycle.submit_bid(request_id, bidder_id, amount, estimated_time)
        logger.info(f"Bid {bid.id} submitted on request {request_id} by {bid.bidder_id}: {bid.amount}")
        return bid

    def accept(self, request_id: str, bid_id: str, requester_id: Optional[str] = None) -> AcceptanceOutcome:
        """
        The outcome carries the accepted bid and the rejected siblings for
        notification.
        """
        try:
            outcome = self.lifecycle.accept_bid(request_id, bid_id, requester_id=requester_id)
        except ConflictError as e:
            logger.warning(f"Bid {bid_id} on request {request_id} not accepted: {e.message}")
            raise
        return outcome

    def list_bids(self, request_id: str, state: Optional[BidState] = None) -> List[Bid]:
        bids = self.lifecycle.get(request_id).bids
        if state is not None:
            bids = tuple(bid for bid in bids if bid.state is state)
        return sort_bids(bids)

    def list_open_bids(self, request_id: str) -> List[Bid]:
        return self.list_bids(request_id, BidState.PENDING)
