"""
Order and payment persistence.

Every status transition is a conditional ``UPDATE ... WHERE status = 'pending'``;
the affected row count tells the caller whether it won the transition. Stores
never commit: the caller owns the transaction.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.models.order import FulfillmentStatus, Order
from storefront.models.payment import Payment, PaymentStatus


class OrderStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, order_id: str) -> Order | None:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id).options(selectinload(Order.user))
        )
        return result.scalars().first()

    async def get_for_owner(self, order_id: str, user_id: str) -> Order | None:
        result = await self.db.execute(
            select(Order).where(
                Order.id == order_id,
                Order.user_id == user_id,
                Order.archived_at.is_(None),
            )
        )
        return result.scalars().first()

    async def mark_paid(self, order_id: str) -> bool:
        return await self._resolve(
            order_id,
            payment_status=PaymentStatus.SUCCESS,
            status=FulfillmentStatus.PAID,
        )

    async def mark_failed(self, order_id: str) -> bool:
        # fulfillment status is left untouched
        return await self._resolve(order_id, payment_status=PaymentStatus.FAILED)

    async def _resolve(self, order_id: str, **values: Any) -> bool:
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_status == PaymentStatus.PENDING)
            .values(**values, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class PaymentStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        return payment

    async def get(self, payment_id: str) -> Payment | None:
        result = await self.db.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalars().first()

    async def get_for_owner(self, payment_id: str, user_id: str) -> Payment | None:
        """Payment with its order loaded, only when the caller owns the order."""
        result = await self.db.execute(
            select(Payment)
            .join(Order, Payment.order_id == Order.id)
            .where(Payment.id == payment_id, Order.user_id == user_id)
            .options(selectinload(Payment.order))
        )
        return result.scalars().first()

    async def resolve(
        self,
        payment_id: str,
        status: PaymentStatus,
        transaction_id: str | None,
        gateway_response: dict[str, Any],
    ) -> bool:
        """Compare-and-set ``pending -> status``; False when another writer got there first."""
        now = datetime.utcnow()
        values: dict[str, Any] = {
            "status": status,
            "gateway_response": gateway_response,
            "updated_at": now,
        }
        if transaction_id:
            values["gateway_transaction_id"] = transaction_id
        if status is PaymentStatus.SUCCESS:
            values["processed_at"] = now

        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
