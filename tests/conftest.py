"""Shared fixtures: in-memory stores, a fake clock and test configuration."""
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

os.environ.setdefault("AIRWALLEX_CLIENT_ID", "test_client_id")
os.environ.setdefault("AIRWALLEX_API_KEY", "test_api_key_0123")
os.environ["TESTING"] = "true"
os.environ["ENABLE_RATE_LIMITING"] = "false"

from mindbridge.core.config import Config, get_config
from mindbridge.core.exceptions import PersistenceError
from mindbridge.models.appointment import (
    Appointment,
    AppointmentDraft,
    AppointmentStatus,
    ConsultationType,
    PaymentStatus,
)
from mindbridge.models.checkout import CheckoutSession, CheckoutStatus
from mindbridge.models.customer import CustomerMapping
from mindbridge.models.earnings import EarningsStatus, TherapistEarnings


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float) -> None:
        self.current += seconds


class InMemoryAppointmentRepository:
    """Dict-backed stand-in for the Firestore appointment repository."""

    def __init__(self):
        self.appointments: Dict[str, Appointment] = {}
        self.claims: Dict[str, str] = {}
        self.fail_writes = False
        self._lock = threading.Lock()

    def _check_writable(self):
        if self.fail_writes:
            raise PersistenceError("datastore unavailable")

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return self.appointments.get(str(appointment_id))

    def upsert(self, appointment: Appointment) -> Appointment:
        self._check_writable()
        self.appointments[appointment.id] = appointment
        return appointment

    def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Appointment]:
        appointment_id = self.claims.get(payment_intent_id)
        if appointment_id:
            return self.appointments.get(appointment_id)
        for appointment in self.appointments.values():
            if appointment.payment_intent_id == payment_intent_id:
                return appointment
        return None

    def create_for_payment_intent(self, appointment: Appointment) -> Tuple[Appointment, bool]:
        self._check_writable()
        with self._lock:
            if appointment.payment_intent_id in self.claims:
                return self.appointments[self.claims[appointment.payment_intent_id]], False
            self.claims[appointment.payment_intent_id] = appointment.id
            self.appointments[appointment.id] = appointment
        return appointment, True

    def mark_paid(self, appointment_id: str, payment_intent_id: str) -> Tuple[Optional[Appointment], bool]:
        self._check_writable()
        with self._lock:
            appointment = self.appointments.get(str(appointment_id))
            if appointment is None:
                return None, False
            if appointment.is_paid():
                return appointment, False
            appointment.payment_status = PaymentStatus.PAID
            appointment.payment_intent_id = payment_intent_id
            appointment.paid_at = datetime.utcnow()
            self.claims[payment_intent_id] = appointment.id
        return appointment, True


class InMemoryCheckoutRepository:
    def __init__(self):
        self.sessions: Dict[str, CheckoutSession] = {}

    def create(self, session: CheckoutSession) -> CheckoutSession:
        self.sessions[session.payment_intent_id] = session
        return session

    def get(self, payment_intent_id: str) -> Optional[CheckoutSession]:
        return self.sessions.get(payment_intent_id)

    def update_status(
        self,
        payment_intent_id: str,
        status: CheckoutStatus,
        appointment_id: Optional[str] = None
    ) -> None:
        session = self.sessions[payment_intent_id]
        session.status = status
        if appointment_id:
            session.appointment_id = appointment_id

    def list_open(self, created_after: datetime, limit: int = 100) -> List[CheckoutSession]:
        return [
            s for s in self.sessions.values()
            if s.status == CheckoutStatus.OPEN and s.created_at >= created_after
        ][:limit]


class InMemoryEarningsRepository:
    def __init__(self):
        self.earnings: Dict[str, TherapistEarnings] = {}

    def create_if_absent(self, earnings: TherapistEarnings) -> bool:
        if earnings.appointment_id in self.earnings:
            return False
        self.earnings[earnings.appointment_id] = earnings
        return True

    def get_by_appointment(self, appointment_id: str) -> Optional[TherapistEarnings]:
        return self.earnings.get(appointment_id)

    def update_status(self, appointment_id: str, status: EarningsStatus) -> bool:
        if appointment_id not in self.earnings:
            return False
        self.earnings[appointment_id].status = status
        return True


class InMemoryCustomerRepository:
    def __init__(self):
        self.mappings: Dict[str, CustomerMapping] = {}

    def get_by_user(self, user_id: str) -> Optional[CustomerMapping]:
        return self.mappings.get(user_id)

    def save(self, mapping: CustomerMapping) -> CustomerMapping:
        self.mappings[mapping.user_id] = mapping
        return mapping


def make_config(**overrides) -> Config:
    values = {
        "airwallex_client_id": "test_client_id",
        "airwallex_api_key": "test_api_key_0123",
        "testing": True,
        "enable_rate_limiting": False,
        "widget_script_retry_delay_seconds": 0,
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def sandbox_config():
    return make_config(sandbox_mode=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def appointment_repository():
    return InMemoryAppointmentRepository()


@pytest.fixture
def checkout_repository():
    return InMemoryCheckoutRepository()


@pytest.fixture
def earnings_repository():
    return InMemoryEarningsRepository()


@pytest.fixture
def customer_repository():
    return InMemoryCustomerRepository()


@pytest.fixture
def draft():
    return AppointmentDraft(
        therapist_id="therapist_7",
        slot_start=datetime(2025, 7, 3, 10, 0),
        consultation_type=ConsultationType.ONLINE,
        price=50000,
        notes="First session"
    )


@pytest.fixture
def unpaid_appointment():
    return Appointment(
        id="42",
        client_id="client_1",
        therapist_id="therapist_7",
        slot_start=datetime(2025, 7, 3, 10, 0),
        consultation_type=ConsultationType.IN_PERSON,
        price=50000,
        status=AppointmentStatus.PENDING,
        payment_status=PaymentStatus.PENDING
    )


@pytest.fixture(autouse=True)
def fresh_config_cache():
    get_config.cache_clear()
    yield
    get_config.cache_clear()
