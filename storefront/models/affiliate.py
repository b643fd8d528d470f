import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    affiliate_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class AffiliateStat(Base):
    __tablename__ = "affiliate_stats"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    promo_code_id: Mapped[str] = mapped_column(ForeignKey("promo_codes.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # one commission row per order
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
