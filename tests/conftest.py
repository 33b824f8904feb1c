"""
Pytest configuration and fixtures

Tests run against in-memory SQLite and stubbed bank / merchant services
(httpx.MockTransport); no Postgres or Redis is needed.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["COLLECT_REQUESTS_ASYNC"] = "false"
os.environ["DEFAULT_BANK_PROVIDER"] = "AXIS"
os.environ["INTERNAL_CALLBACK_TOKEN"] = "test-internal-token"
os.environ["METRICS_PUBLIC"] = "false"
os.environ["METRICS_TOKEN"] = "test-metrics-token"
os.environ["MERCHANT_SERVICE_URL"] = "http://merchants.test"
os.environ["HDFC_API_URL"] = "http://hdfc.bank.test"
os.environ["ICICI_API_URL"] = "http://icici.bank.test"
os.environ["KOTAK_API_URL"] = "http://kotak.bank.test"
os.environ["AXIS_API_URL"] = "http://axis.bank.test"

from upi_gateway.infrastructure.database import get_db
from upi_gateway.main import app
from upi_gateway.models import Base, Payment, PaymentMethod, PaymentStatus
from upi_gateway.services.banks.registry import BankAdapterRegistry, get_bank_registry
from upi_gateway.services.merchant_directory import MerchantDirectory, get_merchant_directory


test_engine = create_engine(
    "sqlite://",
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeHttpService:
    """
    Programmable remote service behind httpx.MockTransport.

    Unregistered routes answer 503, so every bank call falls back unless a
    test registers a response.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method: str, url: str, status_code: int = 200, json=None, exc: Exception = None):
        self.routes[(method.upper(), url)] = (status_code, json, exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, str(request.url)))
        if route is None:
            return httpx.Response(503, json={"error": "service unavailable"})
        status_code, body, exc = route
        if exc is not None:
            raise exc
        return httpx.Response(status_code, json=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh database session for each test.
    Clears all tables before and after each test.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def fake_bank() -> FakeHttpService:
    """Stub for all four bank APIs (hosts differ per bank)"""
    return FakeHttpService()


@pytest.fixture
def bank_registry(fake_bank: FakeHttpService) -> BankAdapterRegistry:
    registry = BankAdapterRegistry.from_settings(client=fake_bank.client())
    yield registry
    registry.resolve(None).close()


@pytest.fixture
def fake_merchants() -> FakeHttpService:
    """Stub merchant service; unknown merchants answer 503 (default profile)"""
    return FakeHttpService()


@pytest.fixture
def merchant_directory(fake_merchants: FakeHttpService) -> MerchantDirectory:
    return MerchantDirectory(client=fake_merchants.client())


@pytest.fixture(scope="function")
def client(db_session: Session, bank_registry: BankAdapterRegistry, merchant_directory: MerchantDirectory):
    """
    Create FastAPI test client with dependency overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bank_registry] = lambda: bank_registry
    app.dependency_overrides[get_merchant_directory] = lambda: merchant_directory

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_payment(db_session: Session):
    """Insert a payment row directly, bypassing the bank call"""
    counter = {"n": 0}

    def _make(
        status: PaymentStatus = PaymentStatus.PENDING,
        bank_provider: str = "HDFC",
        bank_transaction_id: str = None,
        amount: Decimal = Decimal("500.00"),
        payment_method: PaymentMethod = PaymentMethod.UPI_QR,
        created_at: datetime = None,
        **kwargs,
    ) -> Payment:
        counter["n"] += 1
        payment = Payment(
            transaction_id=kwargs.pop("transaction_id", f"TXN1700000000000TEST{counter['n']:02d}"),
            merchant_id=kwargs.pop("merchant_id", "M-100"),
            amount=amount,
            currency="INR",
            payment_method=payment_method,
            status=status,
            bank_provider=bank_provider,
            bank_transaction_id=bank_transaction_id or f"{bank_provider}_bank{counter['n']:04d}",
            **kwargs,
        )
        if created_at is not None:
            payment.created_at = created_at
        if status in (PaymentStatus.SUCCESS, PaymentStatus.FAILED):
            payment.completed_at = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        db_session.add(payment)
        db_session.commit()
        db_session.refresh(payment)
        return payment

    return _make
