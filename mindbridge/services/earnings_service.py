"""Service for therapist earnings bookkeeping."""
from typing import Optional
from mindbridge.models.appointment import Appointment
from mindbridge.models.earnings import TherapistEarnings, EarningsStatus
from mindbridge.repositories.earnings_repository import EarningsRepository
from mindbridge.core.config import get_config, Config
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


class EarningsService:
    """Splits paid appointments into platform commission and therapist share."""

    def __init__(self, repository: Optional[EarningsRepository] = None, config: Optional[Config] = None):
        self.config = config or get_config()
        self.repository = repository or EarningsRepository()

    def record_paid_appointment(self, appointment: Appointment) -> bool:
        """Create pending earnings for a newly paid appointment."""
        earnings = TherapistEarnings.for_appointment(
            appointment_id=appointment.id,
            therapist_id=appointment.therapist_id,
            price=appointment.price,
            commission_rate=self.config.platform_commission_rate
        )
        return self.repository.create_if_absent(earnings)

    def release_for_completed(self, appointment: Appointment) -> Optional[TherapistEarnings]:
        """Make earnings available once the session has been held."""
        earnings = self.repository.get_by_appointment(appointment.id)

        if earnings is None:
            if appointment.price <= 0:
                return None
            earnings = TherapistEarnings.for_appointment(
                appointment_id=appointment.id,
                therapist_id=appointment.therapist_id,
                price=appointment.price,
                commission_rate=self.config.platform_commission_rate,
                status=EarningsStatus.AVAILABLE
            )
            self.repository.create_if_absent(earnings)
            return earnings

        if earnings.status == EarningsStatus.PENDING:
            self.repository.update_status(appointment.id, EarningsStatus.AVAILABLE)
            earnings.status = EarningsStatus.AVAILABLE

        return earnings
