"""Reconciles checkouts that settled after the client stopped watching.

Monitoring in the request only lasts a minute. A client who closes the tab
mid-payment, or whose check timed out, may still have been charged; this job
reads each open checkout once and books the ones whose intent succeeded.
"""
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from mindbridge.models.checkout import CheckoutStatus
from mindbridge.models.payment_intent import IntentStatus
from mindbridge.services.booking_service import BookingService
from mindbridge.core.exceptions import ExternalServiceError, PostSettlementPersistenceFailure
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


class SettlementSweeper:
    """Single pass over open checkout sessions."""

    def __init__(self, booking_service: Optional[BookingService] = None):
        self.booking_service = booking_service or BookingService()

    def run(self, max_age_minutes: Optional[int] = None, dry_run: bool = False) -> Dict[str, Any]:
        """Check every open checkout younger than ``max_age_minutes``."""
        service = self.booking_service
        max_age_minutes = max_age_minutes or service.config.checkout_session_ttl_minutes
        created_after = datetime.utcnow() - timedelta(minutes=max_age_minutes)

        results = {
            "checked": 0,
            "reconciled": 0,
            "failed": 0,
            "pending": 0,
            "errors": [],
            "timestamp": datetime.utcnow().isoformat()
        }

        sessions = service.checkout_repository.list_open(created_after)
        logger.info(
            "Starting settlement sweep",
            extra={"open_sessions": len(sessions), "max_age_minutes": max_age_minutes, "dry_run": dry_run}
        )

        for session in sessions:
            results["checked"] += 1
            payment_intent_id = session.payment_intent_id
            try:
                status = service.gateway.get_intent_status(payment_intent_id)
            except ExternalServiceError as e:
                results["errors"].append(f"{payment_intent_id}: {e.message}")
                continue

            if status == IntentStatus.SUCCEEDED:
                if dry_run:
                    logger.info("Would reconcile checkout", extra={"payment_intent_id": payment_intent_id})
                    results["reconciled"] += 1
                    continue
                try:
                    service.reconcile_session(session)
                    results["reconciled"] += 1
                except PostSettlementPersistenceFailure as e:
                    results["errors"].append(f"{payment_intent_id}: {e.reason}")
            elif status in (IntentStatus.FAILED, IntentStatus.CANCELLED):
                if not dry_run:
                    service.set_session_status(payment_intent_id, CheckoutStatus.FAILED)
                results["failed"] += 1
            else:
                results["pending"] += 1

        logger.info("Settlement sweep completed", extra={"sweep_results": results})
        return results
