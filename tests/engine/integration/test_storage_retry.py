"""Storage failures come back as storage_error; only idempotent operations retry."""

import pytest
from protean import current_domain as active_domain

from production import engine as engine_module
from production.engine import ProductionEngine
from production.manufacturing.job import ManufacturingJob
from production.manufacturing.opening import OpenManufacturingJob
from production.receiving.shipment import InboundShipment
from production.shared.locking import KeyedLocks
from production.shared.result import ErrorKind


class _FlakyDomain:
    """Stands in for the active domain, failing the first ``failures`` calls."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def _attempt(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("connection reset by peer")

    def repository_for(self, aggregate_cls):
        self._attempt()
        return active_domain.repository_for(aggregate_cls)

    def process(self, command, asynchronous=True):
        self._attempt()
        return active_domain.process(command, asynchronous=asynchronous)


@pytest.fixture
def engine():
    return ProductionEngine(locks=KeyedLocks(), retries=2)


def _flaky(monkeypatch, failures):
    flaky = _FlakyDomain(failures)
    monkeypatch.setattr(engine_module, "current_domain", flaky)
    return flaky


def _job_id():
    return active_domain.process(OpenManufacturingJob(order_id="ord-001", sample_required=False), asynchronous=False)


class TestIdempotentReads:
    def test_read_succeeds_after_transient_failures(self, engine, monkeypatch):
        job_id = _job_id()
        flaky = _flaky(monkeypatch, failures=2)

        result = engine.get_job(job_id)
        assert result.ok
        assert flaky.calls == 3

    def test_read_gives_up_after_retries(self, engine, monkeypatch):
        job_id = _job_id()
        flaky = _flaky(monkeypatch, failures=10)

        result = engine.get_job(job_id)
        assert result.error.kind is ErrorKind.STORAGE_ERROR
        assert result.error.details == {"operation": "get_job"}
        assert result.error.retryable
        assert flaky.calls == 3

    def test_retries_can_be_disabled(self, monkeypatch):
        job_id = _job_id()
        flaky = _flaky(monkeypatch, failures=1)

        result = ProductionEngine(locks=KeyedLocks(), retries=0).get_job(job_id)
        assert result.error.kind is ErrorKind.STORAGE_ERROR
        assert flaky.calls == 1


class TestMutations:
    def test_non_idempotent_operation_is_not_retried(self, engine, monkeypatch):
        job_id = _job_id()
        flaky = _flaky(monkeypatch, failures=1)

        result = engine.transition_job(job_id, "sample_production")
        assert result.error.kind is ErrorKind.STORAGE_ERROR
        assert flaky.calls == 1

        job = active_domain.repository_for(ManufacturingJob).get(job_id)
        assert job.manufacturer_status == "accepted"

    def test_record_inspection_is_retried(self, engine, monkeypatch):
        job_id = _job_id()
        shipment = engine.register_inbound_shipment(
            job_id, "wh-001", [{"variant_id": "var-001", "declared_quantity": 10}]
        ).unwrap()
        shipment_id = str(shipment.id)
        engine.mark_in_transit(shipment_id).unwrap()
        engine.mark_arrived(shipment_id).unwrap()
        line_id = str(engine.begin_inspection(shipment_id).unwrap().line_items[0].id)

        flaky = _flaky(monkeypatch, failures=1)
        result = engine.record_inspection(shipment_id, line_id, 9, 1)
        assert result.ok
        assert flaky.calls == 3

        reloaded = active_domain.repository_for(InboundShipment).get(shipment_id)
        inspection = reloaded.inspection_for(line_id)
        assert (inspection.accepted_quantity, inspection.rejected_quantity) == (9, 1)


class TestStorageRetriesSetting:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("ENGINE_STORAGE_RETRIES", raising=False)
        assert engine_module.storage_retries() == 2

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("ENGINE_STORAGE_RETRIES", "5")
        assert engine_module.storage_retries() == 5

    def test_negative_is_clamped(self, monkeypatch):
        monkeypatch.setenv("ENGINE_STORAGE_RETRIES", "-3")
        assert engine_module.storage_retries() == 0
