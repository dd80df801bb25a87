from app.models.database import Base, get_db
from app.models.user import User
from app.models.project import Bid, Project
from app.models.offer import Offer
from app.models.order import Order
from app.models.milestone import Milestone
from app.models.review import Review
from app.models.token import TokenBalance, TokenPlan, TokenPurchase
from app.models.service import SellerSubscription, Service
from app.models.notification import Notification

__all__ = [
    "Base",
    "get_db",
    "User",
    "Project",
    "Bid",
    "Offer",
    "Order",
    "Milestone",
    "Review",
    "TokenPlan",
    "TokenBalance",
    "TokenPurchase",
    "Service",
    "SellerSubscription",
    "Notification",
]
