"""Tests for the in-memory bake job registry."""

import pytest

from py_noise3d.api.jobs import BakeJobRegistry
from py_noise3d.core.parameters import BakeMode, NoiseParameters


@pytest.fixture
def parameters():
    return NoiseParameters(size=2)


class TestBakeJobRegistry:
    """Test job bookkeeping and retention."""

    def test_create_and_get(self, parameters):
        registry = BakeJobRegistry()
        job = registry.create(parameters, BakeMode.CURL, export=True)

        assert registry.get(job.id) is job
        assert job.status == "pending"
        assert job.export is True
        assert registry.get("missing") is None

    def test_mark_finished(self, parameters):
        registry = BakeJobRegistry()
        job = registry.create(parameters, BakeMode.SCALAR)

        registry.mark_running(job.id)
        assert job.status == "running"
        assert job.started_at is not None

        registry.mark_finished(job.id, "failed", error_message="boom")
        assert job.finished
        assert job.error_message == "boom"
        assert job.completed_at is not None

    def test_unbounded_by_default(self, parameters):
        registry = BakeJobRegistry()
        for _ in range(20):
            registry.mark_finished(registry.create(parameters, BakeMode.SCALAR).id, "completed")
        assert len(registry.list()) == 20

    def test_oldest_finished_jobs_evicted(self, parameters):
        registry = BakeJobRegistry(max_retained_jobs=2)
        first = registry.create(parameters, BakeMode.SCALAR)
        second = registry.create(parameters, BakeMode.SCALAR)
        registry.mark_finished(first.id, "completed")
        registry.mark_finished(second.id, "cancelled")

        third = registry.create(parameters, BakeMode.SCALAR)

        assert registry.get(first.id) is None
        assert registry.get(second.id) is second
        assert registry.get(third.id) is third

    def test_active_jobs_never_evicted(self, parameters):
        """The cap is soft when every retained job is still pending or running."""
        registry = BakeJobRegistry(max_retained_jobs=1)
        pending = registry.create(parameters, BakeMode.SCALAR)
        running = registry.create(parameters, BakeMode.SCALAR)
        registry.mark_running(running.id)

        registry.create(parameters, BakeMode.SCALAR)

        assert registry.get(pending.id) is pending
        assert registry.get(running.id) is running
        assert len(registry.list()) == 3

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            BakeJobRegistry(max_retained_jobs=0)
