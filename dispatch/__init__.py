#Expose the engine pieces:
#Lifecycle (state changes + conditional writes)
#Bidding (submit / accept / list)
#Status projection for legacy read models
#MarketplaceService (the "one handle" entry point for the UI/API)

from .lifecycle import RequestLifecycle
from .bidding import BidRegistry, sort_bids
from .status_projector import LegacyStatus, project, to_legacy
from .expiry import BiddingWindowSweeper
from .service import MarketplaceService #the main handle, constructed once at process start

__all__ = [
    "RequestLifecycle",
    "BidRegistry",
    "sort_bids",
    "LegacyStatus",
    "project",
    "to_legacy",
    "BiddingWindowSweeper",
    "MarketplaceService",
]
