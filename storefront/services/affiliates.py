import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.models.affiliate import AffiliateStat, PromoCode
from storefront.models.order import Order

logger = logging.getLogger(__name__)


class AffiliateCommissions:
    """Records one commission row per paid order that used an affiliate promo code."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record(self, order_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Order.user_id, PromoCode.id, PromoCode.affiliate_id)
                .join(PromoCode, Order.promo_code_id == PromoCode.id)
                .where(Order.id == order_id)
            )
            row = result.first()
            if row is None or not row.affiliate_id:
                return False

            db.add(
                AffiliateStat(
                    affiliate_id=row.affiliate_id,
                    promo_code_id=row.id,
                    user_id=row.user_id,
                    order_id=order_id,
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Affiliate commission already recorded", extra={"order_id": order_id})
                return False

        logger.info(
            "Affiliate commission recorded",
            extra={"order_id": order_id, "affiliate_id": row.affiliate_id},
        )
        return True
