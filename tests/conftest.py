import os

# Must be set before storefront.config is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["OTLP_ENDPOINT"] = ""
os.environ["KAFKA_BOOTSTRAP_SERVERS"] = ""
os.environ.setdefault("JWT_SECRET", "storefront-test-signing-key-0123456789")

from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from gateways.registry import build_registry  # noqa: E402
from storefront import models  # noqa: E402
from storefront.database import Base  # noqa: E402
from storefront.services.affiliates import AffiliateCommissions  # noqa: E402
from storefront.services.orchestrator import PaymentOrchestrator  # noqa: E402
from support import CM_ORDER_ID, COMMON, KORA, MTN, ORANGE, ORDER_ID, PAYFAST, PAYGATE, FakeProviders  # noqa: E402


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    async def notify(self, event) -> None:
        self.events.append(event)


@pytest_asyncio.fixture
async def engine(tmp_path):
    # file-backed so concurrent sessions get their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Two customers (ZA and CM), each with one pending order."""
    async with session_factory() as db:
        db.add_all(
            [
                models.User(id="user-za", email="thandi@example.com", full_name="Thandi Nkosi", country="ZA"),
                models.User(
                    id="user-cm",
                    email="paul@example.com",
                    full_name="Paul Biya",
                    country="CM",
                    phone_number="677 12 34 56",
                ),
                models.User(id="user-other", email="eve@example.com", full_name="Eve Other", country="ZA"),
                models.PromoCode(id="promo-1", code="FRIEND10", affiliate_id="aff-42"),
            ]
        )
        await db.flush()
        db.add_all(
            [
                models.Order(
                    id=ORDER_ID,
                    user_id="user-za",
                    total_amount=Decimal("1000.00"),
                    currency="ZAR",
                    item_count=3,
                    promo_code_id="promo-1",
                ),
                models.Order(id=CM_ORDER_ID, user_id="user-cm", total_amount=Decimal("5000"), currency="XAF"),
            ]
        )
        await db.commit()

    async with session_factory() as db:
        return {
            "za": await db.get(models.User, "user-za"),
            "cm": await db.get(models.User, "user-cm"),
            "other": await db.get(models.User, "user-other"),
        }


@pytest.fixture
def providers():
    return FakeProviders()


@pytest_asyncio.fixture
async def http_client(providers):
    async with httpx.AsyncClient(transport=httpx.MockTransport(providers.handler)) as client:
        yield client


@pytest.fixture
def registry(http_client):
    return build_registry(
        http_client, COMMON, kora=KORA, paygate=PAYGATE, payfast=PAYFAST, mtn=MTN, orange=ORANGE
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(registry, session_factory, notifier):
    return PaymentOrchestrator(
        registry,
        session_factory,
        notifier,
        affiliates=AffiliateCommissions(session_factory),
        default_country="ZA",
    )
