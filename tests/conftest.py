"""Test configuration."""
import hashlib
import hmac
import json
import os
import time
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
import stripe
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# --- Default env, read once when barberpay.config is imported
os.environ.setdefault("BARBERPAY_ENV", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_barberpay")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_barberpay")
os.environ.setdefault("OPERATOR_API_KEY", "operator-test-key")
os.environ.setdefault("PLATFORM_FEE_PERCENTAGE", "10")

from barberpay import db as db_module  # noqa: E402
from barberpay.config import get_settings  # noqa: E402
from barberpay.db import get_db  # noqa: E402
from barberpay.main import app  # noqa: E402
from barberpay.models import Appointment, Barber, Base, Payment, PaymentStatus, TransferStatus  # noqa: E402
from barberpay.services.pipeline import PaymentPipeline, build_pipeline  # noqa: E402
from barberpay.services.psp_stripe import AccountReadiness, StripeClient, get_stripe_client  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False
)

# Jobs and health checks open their own sessions through barberpay.db.
db_module.engine = engine
db_module.SessionLocal = TestingSessionLocal


class FakeStripeClient(StripeClient):
    """Real webhook verification; canned answers for every network call."""

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.accounts: dict[str, AccountReadiness] = {}
        self.invalid_accounts: set[str] = set()
        self.payment_intents: dict[str, dict[str, Any]] = {}
        self.transfer_calls: list[dict[str, Any]] = []
        self.transfer_error: Exception | None = None
        self.transfer_errors: dict[int, Exception] = {}
        self.created_accounts: list[int] = []
        self._transfer_seq = 0

    def set_account(
        self,
        account_id: str,
        *,
        charges_enabled: bool = True,
        payouts_enabled: bool = True,
        details_submitted: bool = True,
    ) -> None:
        self.accounts[account_id] = AccountReadiness(
            account_id=account_id,
            charges_enabled=charges_enabled,
            payouts_enabled=payouts_enabled,
            details_submitted=details_submitted,
        )

    def retrieve_account_readiness(self, account_id: str) -> AccountReadiness:
        if account_id in self.invalid_accounts or account_id not in self.accounts:
            raise stripe.InvalidRequestError(f"No such account: '{account_id}'", "account")
        return self.accounts[account_id]

    def create_connected_account(self, barber) -> str:
        account_id = f"acct_{uuid4().hex[:12]}"
        self.created_accounts.append(barber.id)
        self.set_account(account_id, charges_enabled=False, payouts_enabled=False, details_submitted=False)
        return account_id

    def create_account_link(self, account_id: str) -> str:
        return f"https://connect.stripe.test/setup/{account_id}"

    def create_login_link(self, account_id: str) -> str:
        return f"https://connect.stripe.test/express/{account_id}"

    def create_payment_intent(self, appointment, amount) -> tuple[str, str]:
        intent_id = f"pi_{uuid4().hex[:14]}"
        self.payment_intents[intent_id] = {
            "id": intent_id,
            "status": "requires_payment_method",
            "amount": int(Decimal(amount) * 100),
            "currency": self.currency,
            "receipt_email": appointment.email,
            "metadata": {"appointment_id": str(appointment.id)},
        }
        return intent_id, f"{intent_id}_secret_test"

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        if payment_intent_id not in self.payment_intents:
            raise stripe.InvalidRequestError(f"No such payment_intent: '{payment_intent_id}'", "id")
        return dict(self.payment_intents[payment_intent_id])

    def create_transfer_to_connected(self, *, payment, destination_account_id, idempotency_key) -> str:
        self.transfer_calls.append(
            {
                "payment_id": payment.id,
                "amount": payment.barber_amount,
                "destination": destination_account_id,
                "idempotency_key": idempotency_key,
            }
        )
        error = self.transfer_errors.get(payment.id, self.transfer_error)
        if error is not None:
            raise error
        self._transfer_seq += 1
        return f"tr_test_{self._transfer_seq}"


@pytest.fixture(autouse=True)
def _schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Iterator[Session]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_stripe() -> FakeStripeClient:
    return FakeStripeClient(get_settings())


@pytest.fixture(autouse=True)
def override_dependencies(db_session: Session, fake_stripe: FakeStripeClient) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe
    yield
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_stripe_client, None)


@pytest.fixture
def pipeline(db_session: Session, fake_stripe: FakeStripeClient) -> PaymentPipeline:
    return build_pipeline(db_session, fake_stripe, get_settings())


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return {"X-API-Key": os.environ["OPERATOR_API_KEY"]}


@pytest.fixture
def make_barber(db_session: Session) -> Callable[..., Barber]:
    def _factory(*, stripe_account_id: str | None = None, name: str = "Sam Fade") -> Barber:
        barber = Barber(
            name=name,
            email=f"barber-{uuid4().hex[:8]}@example.com",
            stripe_account_id=stripe_account_id,
        )
        db_session.add(barber)
        db_session.commit()
        db_session.refresh(barber)
        return barber

    return _factory


@pytest.fixture
def make_appointment(db_session: Session) -> Callable[..., Appointment]:
    def _factory(
        barber: Barber,
        *,
        payment_intent_id: str | None = None,
        total_price: str = "25.00",
    ) -> Appointment:
        appointment = Appointment(
            customer_name="Alex Client",
            email="alex.client@example.com",
            phone="07700 900123",
            scheduled_at=datetime.now(tz=UTC) + timedelta(days=2),
            barber_id=barber.id,
            services_json=[{"name": "Skin fade", "price": total_price, "duration": 45}],
            total_price=Decimal(total_price),
            payment_intent_id=payment_intent_id,
            pay_online=payment_intent_id is not None,
        )
        db_session.add(appointment)
        db_session.commit()
        db_session.refresh(appointment)
        return appointment

    return _factory


@pytest.fixture
def make_payment(db_session: Session) -> Callable[..., Payment]:
    """Ledger row for ``appointment`` as if the success webhook had been recorded."""

    def _factory(
        appointment: Appointment,
        *,
        status: PaymentStatus = PaymentStatus.SUCCEEDED,
        transfer_status: TransferStatus = TransferStatus.PENDING,
        stripe_transfer_id: str | None = None,
    ) -> Payment:
        payment = Payment(
            appointment_id=appointment.id,
            barber_id=appointment.barber_id,
            customer_email=appointment.email,
            customer_name=appointment.customer_name,
            total_amount=Decimal("25.00"),
            platform_fee=Decimal("2.50"),
            barber_amount=Decimal("22.50"),
            currency="gbp",
            stripe_payment_intent_id=appointment.payment_intent_id or f"pi_{uuid4().hex[:14]}",
            stripe_transfer_id=stripe_transfer_id,
            status=status,
            transfer_status=transfer_status,
        )
        db_session.add(payment)
        db_session.commit()
        db_session.refresh(payment)
        return payment

    return _factory


def stripe_event(event_type: str, obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f"evt_{uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def sign_payload(payload: str, secret: str | None = None, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe signs deliveries."""

    secret = secret or os.environ["STRIPE_WEBHOOK_SECRET"]
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def post_payload(client: AsyncClient):
    """POST a raw webhook body; ``signature=""`` omits the header entirely."""

    async def _post(body: str, *, signature: str | None = None):
        headers = {"Content-Type": "application/json"}
        if signature is None:
            headers["Stripe-Signature"] = sign_payload(body)
        elif signature:
            headers["Stripe-Signature"] = signature
        return await client.post("/webhooks/provider", content=body, headers=headers)

    return _post


@pytest.fixture
def post_event(post_payload):
    async def _post(event_type: str, obj: dict[str, Any], *, signature: str | None = None):
        return await post_payload(json.dumps(stripe_event(event_type, obj)), signature=signature)

    return _post
