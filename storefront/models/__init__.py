# Import all models here so SQLAlchemy registers them with Base.metadata
from storefront.models.affiliate import AffiliateStat, PromoCode
from storefront.models.order import FulfillmentStatus, Order
from storefront.models.payment import Payment, PaymentStatus
from storefront.models.user import User

__all__ = [
    "AffiliateStat",
    "FulfillmentStatus",
    "Order",
    "Payment",
    "PaymentStatus",
    "PromoCode",
    "User",
]
