"""
Integration tests for the bake job API.
"""

from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from py_noise3d.api import main
from py_noise3d.api.main import app, jobs, run_volume_bake
from py_noise3d.api.jobs import progress_percent
from py_noise3d.core.parameters import BakeMode, NoiseParameters
from py_noise3d.core.volume_baker import BakeProgress


class TestBakeAPI:
    """Test the bake job lifecycle through the HTTP API."""

    def setup_method(self):
        """Set up test client."""
        jobs.clear()
        self.client = TestClient(app)

    def _submit(self, **body):
        response = self.client.post("/bakes", json=body)
        assert response.status_code == 200
        return response.json()

    def test_root_endpoint(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_endpoint(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_scalar_bake_lifecycle(self):
        """Submitting returns a pending job that the background task completes."""
        job = self._submit(size=4, seed=3)
        assert job["status"] == "pending"
        assert job["mode"] == "scalar"
        assert job["size"] == 4

        status = self.client.get(f"/bakes/{job['job_id']}").json()
        assert status["status"] == "completed"
        assert status["progress_percent"] == 100
        assert status["stage"] == "scalar"

        stats = self.client.get(f"/bakes/{job['job_id']}/statistics").json()
        assert stats["sample_count"] == 64
        assert stats["monochrome"] is True
        assert stats["max_vector_length"] is None

    def test_curl_bake_statistics(self):
        job = self._submit(size=6, curl=True)
        stats = self.client.get(f"/bakes/{job['job_id']}/statistics").json()
        assert stats["mode"] == "curl"
        assert stats["sample_count"] == 216
        assert stats["max_vector_length"] <= 1.000001

    def test_slice_endpoint(self):
        job = self._submit(size=4)
        response = self.client.get(f"/bakes/{job['job_id']}/slices/2")
        assert response.status_code == 200
        data = response.json()
        assert data["z"] == 2
        assert len(data["samples"]) == 4
        assert len(data["samples"][0]) == 4
        assert len(data["samples"][0][0]) == 4
        r, g, b, a = data["samples"][1][3]
        assert r == g == b
        assert a == 1.0

    def test_slice_out_of_range(self):
        job = self._submit(size=4)
        response = self.client.get(f"/bakes/{job['job_id']}/slices/4")
        assert response.status_code == 400

    def test_list_bakes(self):
        self._submit(size=2)
        self._submit(size=2, curl=True)
        data = self.client.get("/bakes").json()
        assert len(data) == 2
        assert {job["mode"] for job in data} == {"scalar", "curl"}

    @pytest.mark.parametrize(
        "body",
        [
            {"size": 0},
            {"size": 100000},
            {"octaves": 0},
            {"octaves": 7},
            {"frequency": 0.1},
            {"lacunarity": 0.5},
            {"persistence": 0.0},
        ],
    )
    def test_invalid_request_rejected(self, body):
        response = self.client.post("/bakes", json=body)
        assert response.status_code == 422
        assert jobs.list() == []

    def test_budget_exceeded(self):
        with patch.object(main.baker, "max_bake_bytes", 10):
            response = self.client.post("/bakes", json={"size": 4})
        assert response.status_code == 413
        assert jobs.list() == []

    def test_unknown_job(self):
        assert self.client.get("/bakes/missing").status_code == 404
        assert self.client.delete("/bakes/missing").status_code == 404
        assert self.client.get("/bakes/missing/statistics").status_code == 404

    def test_cancel_finished_job(self):
        job = self._submit(size=2)
        response = self.client.delete(f"/bakes/{job['job_id']}")
        assert response.status_code == 409

    def test_cancel_pending_job(self):
        """A job cancelled before its task runs never starts baking."""
        job = jobs.create(NoiseParameters(size=4), BakeMode.SCALAR)

        response = self.client.delete(f"/bakes/{job.id}")
        assert response.status_code == 200
        assert response.json()["message"] == "Cancellation requested"

        run_volume_bake(job.id)
        assert jobs.get(job.id).status == "cancelled"
        assert jobs.get(job.id).result is None

    def test_statistics_of_unfinished_job(self):
        job = jobs.create(NoiseParameters(size=4), BakeMode.SCALAR)
        response = self.client.get(f"/bakes/{job.id}/statistics")
        assert response.status_code == 409

    def test_failed_bake_is_recorded(self):
        with patch.object(main.baker, "bake", side_effect=RuntimeError("boom")):
            job = self._submit(size=2)
        status = self.client.get(f"/bakes/{job['job_id']}").json()
        assert status["status"] == "failed"
        assert status["error_message"] == "boom"

    def test_finished_jobs_are_evicted_beyond_cap(self):
        """Old results are released instead of accumulating with every submission."""
        with patch.object(jobs, "max_retained_jobs", 2):
            submitted = []
            for seed in range(4):
                job_id = self._submit(size=4, seed=seed, curl=True)["job_id"]
                submitted.append(jobs.get(job_id))

        retained = jobs.list()
        assert {job.id for job in retained} == {submitted[2].id, submitted[3].id}
        assert sum(job.result.samples.nbytes for job in retained) == 2 * 64 * 4 * 4

        for job in submitted[:2]:
            assert job.result is None
            assert self.client.get(f"/bakes/{job.id}").status_code == 404

    def test_export_on_completion(self, tmp_path):
        with patch.object(main.settings, "output_folder", str(tmp_path)):
            job = self._submit(size=4, seed=2, curl=True, export=True)

        status = self.client.get(f"/bakes/{job['job_id']}").json()
        assert status["status"] == "completed"
        assert Path(status["asset_path"]) == tmp_path / "Noise3D_Curl_4_2.npz"
        assert Path(status["asset_path"]).exists()


class TestProgressPercent:
    """Test mapping of slice ticks to job percentages."""

    def test_scalar(self):
        assert progress_percent(BakeProgress("scalar", 2, 8), BakeMode.SCALAR) == 25
        assert progress_percent(BakeProgress("scalar", 8, 8), BakeMode.SCALAR) == 100

    def test_curl_stages_split_evenly(self):
        assert progress_percent(BakeProgress("potentials", 4, 8), BakeMode.CURL) == 25
        assert progress_percent(BakeProgress("potentials", 8, 8), BakeMode.CURL) == 50
        assert progress_percent(BakeProgress("curl", 4, 8), BakeMode.CURL) == 75
        assert progress_percent(BakeProgress("curl", 8, 8), BakeMode.CURL) == 100
