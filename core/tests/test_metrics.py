from unittest import TestCase

from prometheus_client import CollectorRegistry

from core.metrics import PrometheusObserver


class TestPrometheusObserver(TestCase):
    def setUp(self) -> None:
        self.registry = CollectorRegistry()
        self.observer = PrometheusObserver(registry=self.registry)

    def _value(self, name, **labels):
        return self.registry.get_sample_value(name, labels) or 0

    def test_admissions(self):
        self.observer.admission("admitted")
        self.observer.admission("admitted")
        self.observer.admission("capacity_exceeded")
        self.assertEqual(self._value("enrollment_admissions_total", outcome="admitted"), 2)
        self.assertEqual(self._value("enrollment_admissions_total", outcome="capacity_exceeded"), 1)

    def test_tickets(self):
        self.observer.ticket_issued(True)
        self.observer.ticket_issued(False)
        self.observer.ticket_validated(True)
        self.observer.ticket_validated(False, "expired")
        self.observer.ticket_scanned(True, False)

        self.assertEqual(self._value("ticket_issued_total", status="success"), 1)
        self.assertEqual(self._value("ticket_issued_total", status="failure"), 1)
        self.assertEqual(self._value("ticket_validation_total", valid="true", reason="none"), 1)
        self.assertEqual(self._value("ticket_validation_total", valid="false", reason="expired"), 1)
        self.assertEqual(self._value("ticket_scan_total", status="success", format="legacy"), 1)
