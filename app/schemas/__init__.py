from app.schemas.bids import BidCreateRequest, BidResponse
from app.schemas.milestones import MilestoneBatchRequest, MilestoneBatchResponse, MilestoneItem, MilestoneResponse
from app.schemas.notifications import DispatchResponse, NotificationResponse
from app.schemas.offers import OfferCreateRequest, OfferResponse, PaymentMethod
from app.schemas.orders import (
    BuyerRatingRequest,
    DeliverySubmitRequest,
    OrderResponse,
    OrderReviewStatusResponse,
    OrderStatus,
    OrderStatusUpdateRequest,
    ReviewResponse,
    ReviewSubmitRequest,
)
from app.schemas.tokens import (
    SellerPlusResponse,
    TokenBalanceResponse,
    TokenPlanResponse,
    TokenPurchaseRequest,
    TokenPurchaseResponse,
)

__all__ = [
    "BidCreateRequest",
    "BidResponse",
    "MilestoneBatchRequest",
    "MilestoneBatchResponse",
    "MilestoneItem",
    "MilestoneResponse",
    "DispatchResponse",
    "NotificationResponse",
    "OfferCreateRequest",
    "OfferResponse",
    "PaymentMethod",
    "BuyerRatingRequest",
    "DeliverySubmitRequest",
    "OrderResponse",
    "OrderReviewStatusResponse",
    "OrderStatus",
    "OrderStatusUpdateRequest",
    "ReviewResponse",
    "ReviewSubmitRequest",
    "SellerPlusResponse",
    "TokenBalanceResponse",
    "TokenPlanResponse",
    "TokenPurchaseRequest",
    "TokenPurchaseResponse",
]
