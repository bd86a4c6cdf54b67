"""FastAPI main application."""

import logging
from functools import partial
from typing import List, Optional

import structlog
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config import settings
from ..core.errors import BakeCancelledError, ConfigurationError, ResourceExhaustionError
from ..core.noise_kernels import get_kernel
from ..core.parameters import BakeMode, NoiseParameters
from ..core.volume_analysis import slice_rgba, summarize
from ..core.volume_baker import BakeProgress, VolumeFieldBaker
from ..export.volume_asset import VolumeAssetExporter
from .jobs import BakeJob, BakeJobRegistry, progress_percent

# Configure logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Noise3D Volume Baker API",
    description="Bakes scalar and curl noise volumes for 3D textures",
    version="0.1.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

baker = VolumeFieldBaker(
    kernel_factory=partial(get_kernel, settings.noise_kernel),
    max_bake_bytes=settings.max_bake_bytes,
    workers=settings.bake_workers,
)
jobs = BakeJobRegistry(max_retained_jobs=settings.max_retained_jobs)


# Request/Response models
class BakeRequest(BaseModel):
    """Request to bake a new volume. Ranges mirror the editor tool's sliders."""

    size: int = Field(settings.default_size, ge=1, le=settings.max_volume_size, description="Grid edge length")
    octaves: int = Field(3, ge=1, le=6, description="Number of fractal octaves")
    frequency: float = Field(2.0, ge=0.25, le=8.0, description="Initial spatial frequency")
    lacunarity: float = Field(2.0, ge=1.0, le=4.0, description="Per-octave frequency multiplier")
    persistence: float = Field(0.5, ge=0.1, le=1.0, description="Per-octave amplitude multiplier")
    seed: int = Field(0, description="Noise seed")
    curl: bool = Field(False, description="Bake a curl vector field instead of scalar noise")
    export: bool = Field(False, description="Write the volume asset when the bake completes")


class JobResponse(BaseModel):
    """Response with job information."""

    job_id: str
    status: str
    progress_percent: int
    message: str
    mode: str
    size: int
    stage: Optional[str] = None
    asset_path: Optional[str] = None
    error_message: Optional[str] = None


class VolumeStatisticsResponse(BaseModel):
    """Channel statistics of a finished bake."""

    size: int
    mode: str
    sample_count: int
    channel_min: List[float]
    channel_max: List[float]
    channel_mean: List[float]
    monochrome: bool
    saturated_fraction: float
    max_vector_length: Optional[float] = None
    mean_vector_length: Optional[float] = None


class SliceResponse(BaseModel):
    """RGBA samples of one z-slice, indexed [y][x][channel]."""

    job_id: str
    z: int
    size: int
    samples: List[List[List[float]]]


def _job_response(job: BakeJob, message: Optional[str] = None) -> JobResponse:
    return JobResponse(
        job_id=job.id,
        status=job.status,
        progress_percent=job.progress_percent,
        message=message or f"Job {job.status}",
        mode=job.mode.value,
        size=job.parameters.size,
        stage=job.stage,
        asset_path=job.asset_path,
        error_message=job.error_message,
    )


def _get_job_or_404(job_id: str) -> BakeJob:
    job = jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _get_completed_job(job_id: str) -> BakeJob:
    job = _get_job_or_404(job_id)
    if job.status != "completed" or job.result is None:
        raise HTTPException(status_code=409, detail=f"Job is {job.status}, not completed")
    return job


# Event handlers
@app.on_event("startup")
async def startup_event():
    logger.info("Starting Noise3D Volume Baker API", output_folder=settings.output_folder)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Noise3D Volume Baker API")


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Noise3D Volume Baker API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "jobs": len(jobs.list())}


@app.post("/bakes", response_model=JobResponse)
async def create_bake(request: BakeRequest, background_tasks: BackgroundTasks):
    """
    Start a bake job.

    Returns immediately with job ID. Use /bakes/{job_id} to check status.
    """
    logger.info("Volume bake requested", request=request.model_dump())
    mode = BakeMode.CURL if request.curl else BakeMode.SCALAR

    try:
        parameters = NoiseParameters(
            size=request.size,
            octaves=request.octaves,
            frequency=request.frequency,
            lacunarity=request.lacunarity,
            persistence=request.persistence,
            seed=request.seed,
        )
        baker.check_budget(parameters.size, mode)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ResourceExhaustionError as e:
        raise HTTPException(status_code=413, detail=str(e))

    job = jobs.create(parameters, mode, export=request.export)
    background_tasks.add_task(run_volume_bake, job.id)

    return _job_response(job, "Volume bake job started")


@app.get("/bakes", response_model=List[JobResponse])
async def list_bakes():
    """List all bake jobs, newest first."""
    return [_job_response(job) for job in jobs.list()]


@app.get("/bakes/{job_id}", response_model=JobResponse)
async def get_bake_status(job_id: str):
    """Get status of a bake job."""
    return _job_response(_get_job_or_404(job_id))


@app.delete("/bakes/{job_id}", response_model=JobResponse)
async def cancel_bake(job_id: str):
    """Request cancellation; the bake stops after its current slice."""
    job = _get_job_or_404(job_id)
    if job.finished:
        raise HTTPException(status_code=409, detail=f"Job already {job.status}")

    job.cancel_token.cancel()
    logger.info("Volume bake cancellation requested", job_id=job_id)
    return _job_response(job, "Cancellation requested")


@app.get("/bakes/{job_id}/statistics", response_model=VolumeStatisticsResponse)
async def get_bake_statistics(job_id: str):
    """Channel statistics of a completed bake."""
    job = _get_completed_job(job_id)
    return VolumeStatisticsResponse(**summarize(job.result).to_dict())


@app.get("/bakes/{job_id}/slices/{z}", response_model=SliceResponse)
async def get_bake_slice(job_id: str, z: int):
    """RGBA samples of one z-slice of a completed bake."""
    job = _get_completed_job(job_id)
    if z < 0 or z >= job.result.size:
        raise HTTPException(status_code=400, detail="Invalid slice index")

    return SliceResponse(
        job_id=job.id,
        z=z,
        size=job.result.size,
        samples=slice_rgba(job.result, z).tolist(),
    )


# Background task functions
def run_volume_bake(job_id: str):
    """
    Background task to bake a volume.
    """
    job = jobs.get(job_id)
    if job.cancel_token.cancelled:
        jobs.mark_finished(job_id, "cancelled")
        logger.info("Volume bake cancelled before start", job_id=job_id)
        return

    logger.info("Starting volume bake", job_id=job_id)
    jobs.mark_running(job_id)

    def on_progress(progress: BakeProgress):
        jobs.update(job_id, stage=progress.stage, progress_percent=progress_percent(progress, job.mode))

    try:
        result = baker.bake(job.parameters, job.mode, progress=on_progress, cancel_token=job.cancel_token)

        asset_path = None
        if job.export:
            asset_path = str(VolumeAssetExporter(settings.output_folder).export(result))

        jobs.mark_finished(job_id, "completed", result=result, asset_path=asset_path, progress_percent=100)
        logger.info("Volume bake completed", job_id=job_id, asset_path=asset_path)

    except BakeCancelledError:
        jobs.mark_finished(job_id, "cancelled")
        logger.info("Volume bake cancelled", job_id=job_id)

    except Exception as e:
        logger.error("Volume bake failed", job_id=job_id, error=str(e))
        jobs.mark_finished(job_id, "failed", error_message=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
