from abc import ABC, abstractmethod
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter


class TicketingObserver(ABC):
    """Side-channel observer of the enrollment and ticketing engine.

    Implementations must never raise; the engine does not guard the calls.
    """

    @abstractmethod
    def admission(self, outcome: str) -> None:
        pass

    @abstractmethod
    def ticket_issued(self, success: bool) -> None:
        pass

    @abstractmethod
    def ticket_validated(self, valid: bool, reason: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def ticket_scanned(self, success: bool, secure: bool) -> None:
        pass


class NullObserver(TicketingObserver):
    def admission(self, outcome: str) -> None:
        pass

    def ticket_issued(self, success: bool) -> None:
        pass

    def ticket_validated(self, valid: bool, reason: Optional[str] = None) -> None:
        pass

    def ticket_scanned(self, success: bool, secure: bool) -> None:
        pass


class PrometheusObserver(TicketingObserver):
    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.admissions = Counter(
            "enrollment_admissions_total",
            "Admission attempts by outcome",
            ["outcome"],
            registry=registry,
        )
        self.tickets_issued = Counter(
            "ticket_issued_total",
            "Signed tickets issued",
            ["status"],
            registry=registry,
        )
        self.tickets_validated = Counter(
            "ticket_validation_total",
            "Ticket validations by result",
            ["valid", "reason"],
            registry=registry,
        )
        self.tickets_scanned = Counter(
            "ticket_scan_total",
            "Ticket scans at the door",
            ["status", "format"],
            registry=registry,
        )

    def admission(self, outcome: str) -> None:
        self.admissions.labels(outcome=outcome).inc()

    def ticket_issued(self, success: bool) -> None:
        self.tickets_issued.labels(status="success" if success else "failure").inc()

    def ticket_validated(self, valid: bool, reason: Optional[str] = None) -> None:
        self.tickets_validated.labels(
            valid=str(valid).lower(), reason=reason or "none"
        ).inc()

    def ticket_scanned(self, success: bool, secure: bool) -> None:
        self.tickets_scanned.labels(
            status="success" if success else "failure",
            format="secure" if secure else "legacy",
        ).inc()


metrics_observer = PrometheusObserver()
