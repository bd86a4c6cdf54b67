"""
Volume field baking.

Fills a cubic grid with either scalar fractal noise or the curl of three
fractal-noise potential fields, and packs the result into an ordered RGBA
sample buffer ready to be stored as a volume texture.

Traversal is outer z, then y, then x. Each z-slice is evaluated as one
vectorized (y, x) block, and progress/cancellation happen once per slice.
Curl mode runs in two stages: all three potential fields are materialized
first, and only then differentiated.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

import numpy as np
import structlog

from .errors import BakeCancelledError, ResourceExhaustionError
from .fractal_noise import FractalNoiseEvaluator
from .noise_kernels import FoldedPerlinKernel, NoiseKernel
from .parameters import BakeMode, NoiseParameters

logger = structlog.get_logger()

# Fixed coordinate offsets that decorrelate the three potential fields
CURL_OFFSETS: Tuple[Tuple[float, float, float], ...] = (
    (0.13, 0.17, 0.19),
    (0.23, 0.29, 0.31),
    (0.37, 0.41, 0.43),
)
SCALAR_OFFSETS: Tuple[Tuple[float, float, float], ...] = ((0.0, 0.0, 0.0),)

CHANNELS = 4  # RGBA
SAMPLE_DTYPE = np.float32
FIELD_DTYPE = np.float64

DEFAULT_MAX_BAKE_BYTES = 4 * 1024 ** 3

Offset = Tuple[float, float, float]


@dataclass(frozen=True)
class BakeProgress:
    """One slice of progress within a bake stage."""

    stage: str  # "scalar", "potentials" or "curl"
    completed: int
    total: int

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0


ProgressCallback = Callable[[BakeProgress], None]


class CancellationToken:
    """Cooperative cancellation flag, checked by the baker after every slice."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BakeCancelledError("Bake cancelled")


@dataclass(frozen=True, eq=False)
class BakeResult:
    """
    Output of one bake.

    ``samples`` has shape (size³, 4). Row ``i`` holds the cell at
    ``i = x + y*size + z*size²``; consumers of the volume texture rely on
    this order.

    The result stores a read-only view of the array it is given, without
    copying. The caller's array keeps its own flags.
    """

    size: int
    mode: BakeMode
    samples: np.ndarray
    parameters: NoiseParameters

    def __post_init__(self):
        expected = (self.size ** 3, CHANNELS)
        if self.samples.shape != expected:
            raise ValueError(f"samples must have shape {expected}, got {self.samples.shape}")
        view = self.samples.view()
        view.setflags(write=False)
        object.__setattr__(self, "samples", view)

    def __len__(self) -> int:
        return self.samples.shape[0]

    def sample_at(self, x: int, y: int, z: int) -> np.ndarray:
        """RGBA sample of lattice cell (x, y, z)."""
        return self.samples[linear_index(x, y, z, self.size)]

    def as_volume(self) -> np.ndarray:
        """View of the samples indexed [z, y, x, channel]."""
        return self.samples.reshape(self.size, self.size, self.size, CHANNELS)

    def to_rgba8(self) -> np.ndarray:
        """Quantize to 8 bits per channel, as stored in an RGBA32 texture."""
        return np.round(np.clip(self.samples, 0.0, 1.0) * 255.0).astype(np.uint8)

    def metadata(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "mode": self.mode.value,
            "channels": CHANNELS,
            "sample_count": len(self),
            "parameters": self.parameters.to_dict(),
        }


def linear_index(x: int, y: int, z: int, size: int) -> int:
    """Position of lattice cell (x, y, z) in the output sequence."""
    return x + y * size + z * size * size


def lattice_coordinate(index: int, size: int) -> Tuple[int, int, int]:
    """Inverse of linear_index."""
    z, rest = divmod(index, size * size)
    y, x = divmod(rest, size)
    return x, y, z


def cell_centres(size: int) -> np.ndarray:
    """Normalized centres ``(i + 0.5) / size`` for i in [0, size)."""
    return (np.arange(size, dtype=FIELD_DTYPE) + 0.5) / size


def estimate_bake_bytes(size: int, mode: BakeMode) -> int:
    """
    Peak buffer memory for a bake.

    The output buffer is always size³ RGBA float32. Curl mode also keeps
    three float64 potential fields alive until differentiation finishes;
    scalar mode only needs one slice of working memory.
    """
    cells = size ** 3
    output = cells * CHANNELS * np.dtype(SAMPLE_DTYPE).itemsize
    field_bytes = np.dtype(FIELD_DTYPE).itemsize
    if BakeMode(mode) is BakeMode.CURL:
        working = len(CURL_OFFSETS) * cells * field_bytes
    else:
        working = size * size * field_bytes
    return int(output + working)


def central_difference(field: np.ndarray, axis: int, size: int) -> np.ndarray:
    """
    Derivative along ``axis`` with respect to the normalized [0, 1] domain.

    Neighbour indices are clamped to [0, n-1], so edge cells get a one-sided
    difference at half weight rather than a wrapped one.
    """
    n = field.shape[axis]
    idx = np.arange(n)
    forward = np.minimum(idx + 1, n - 1)
    backward = np.maximum(idx - 1, 0)
    return (np.take(field, forward, axis=axis) - np.take(field, backward, axis=axis)) * 0.5 * size


def curl_components(
    n1: np.ndarray, n2: np.ndarray, n3: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Unclamped discrete curl of the potential (n1, n2, n3).

    Fields are indexed [z, y, x], so axis 0 is z, axis 1 is y, axis 2 is x.
    """
    size = n1.shape[0]
    cx = central_difference(n3, 1, size) - central_difference(n2, 0, size)
    cy = central_difference(n1, 0, size) - central_difference(n3, 2, size)
    cz = central_difference(n2, 2, size) - central_difference(n1, 1, size)
    return cx, cy, cz


def curl_slice(potentials: np.ndarray, z: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Curl of one z-slice. ``potentials`` has shape (3, size, size, size).

    In-plane derivatives use the slice itself; the z derivative reads the
    clamped neighbouring slices.
    """
    size = potentials.shape[1]
    zm = max(z - 1, 0)
    zp = min(z + 1, size - 1)
    n1, n2, n3 = potentials[0], potentials[1], potentials[2]

    dn3_dy = central_difference(n3[z], 0, size)
    dn2_dz = (n2[zp] - n2[zm]) * 0.5 * size
    dn1_dz = (n1[zp] - n1[zm]) * 0.5 * size
    dn3_dx = central_difference(n3[z], 1, size)
    dn2_dx = central_difference(n2[z], 1, size)
    dn1_dy = central_difference(n1[z], 0, size)

    return dn3_dy - dn2_dz, dn1_dz - dn3_dx, dn2_dx - dn1_dy


def clamp_magnitude(
    cx: np.ndarray, cy: np.ndarray, cz: np.ndarray, max_length: float = 1.0
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Rescale vectors longer than ``max_length``; shorter ones are untouched."""
    length = np.sqrt(cx * cx + cy * cy + cz * cz)
    scale = max_length / np.maximum(length, max_length)
    return cx * scale, cy * scale, cz * scale


def encode_signed(component: np.ndarray) -> np.ndarray:
    """Map [-1, 1] to [0, 1]."""
    return component * 0.5 + 0.5


class VolumeFieldBaker:
    """
    Bakes scalar or curl noise volumes.

    The baker holds no per-bake state, so one instance can serve many bakes
    (including concurrent ones from different threads).
    """

    def __init__(
        self,
        kernel_factory: Callable[[int], NoiseKernel] = FoldedPerlinKernel,
        max_bake_bytes: Optional[int] = DEFAULT_MAX_BAKE_BYTES,
        workers: int = 1,
    ):
        """
        Initialize the baker.

        Args:
            kernel_factory: Builds a noise kernel from a seed
            max_bake_bytes: Memory budget checked before allocation; None
                disables the check
            workers: Threads used to evaluate z-slices. 1 runs inline.
        """
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.kernel_factory = kernel_factory
        self.max_bake_bytes = max_bake_bytes
        self.workers = workers

    def check_budget(self, size: int, mode: BakeMode) -> int:
        """Return the estimated bytes, or raise if they exceed the budget."""
        required = estimate_bake_bytes(size, mode)
        if self.max_bake_bytes is not None and required > self.max_bake_bytes:
            logger.warning(
                "Volume bake exceeds memory budget",
                size=size,
                mode=BakeMode(mode).value,
                required_bytes=required,
                budget_bytes=self.max_bake_bytes,
            )
            raise ResourceExhaustionError(required, self.max_bake_bytes)
        return required

    def bake(
        self,
        params: NoiseParameters,
        mode: BakeMode = BakeMode.SCALAR,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BakeResult:
        """
        Bake a full volume.

        Args:
            params: Noise parameters; validated before anything is allocated
            mode: Scalar noise or curl vector field
            progress: Called once per z-slice of every stage
            cancel_token: Checked after every z-slice

        Returns:
            Complete BakeResult

        Raises:
            ConfigurationError: Invalid parameters
            ResourceExhaustionError: Grid exceeds the memory budget
            BakeCancelledError: The token was cancelled mid-bake
        """
        params.validate()
        mode = BakeMode(mode)
        required = self.check_budget(params.size, mode)

        logger.info(
            "Volume bake started",
            size=params.size,
            mode=mode.value,
            octaves=params.octaves,
            seed=params.seed,
            estimated_bytes=required,
        )
        started = time.perf_counter()
        evaluator = FractalNoiseEvaluator(params, self.kernel_factory(params.seed))

        try:
            if mode is BakeMode.CURL:
                samples = self._bake_curl(evaluator, params.size, progress, cancel_token)
            else:
                samples = self._bake_scalar(evaluator, params.size, progress, cancel_token)
        except BakeCancelledError:
            logger.warning("Volume bake cancelled", size=params.size, mode=mode.value)
            raise

        logger.info(
            "Volume bake completed",
            size=params.size,
            mode=mode.value,
            samples=samples.shape[0],
            elapsed_seconds=round(time.perf_counter() - started, 3),
        )
        return BakeResult(size=params.size, mode=mode, samples=samples, parameters=params)

    def _bake_scalar(self, evaluator, size, progress, cancel_token) -> np.ndarray:
        volume = np.empty((size, size, size, CHANNELS), dtype=SAMPLE_DTYPE)
        for z, fields in self._evaluate_slices(
            evaluator, size, SCALAR_OFFSETS, "scalar", progress, cancel_token, final_stage=True
        ):
            volume[z, :, :, :3] = fields[0][:, :, np.newaxis]
            volume[z, :, :, 3] = 1.0
        return volume.reshape(-1, CHANNELS)

    def _bake_curl(self, evaluator, size, progress, cancel_token) -> np.ndarray:
        # Stage 1: materialize all three potentials
        potentials = np.empty((len(CURL_OFFSETS), size, size, size), dtype=FIELD_DTYPE)
        for z, fields in self._evaluate_slices(
            evaluator, size, CURL_OFFSETS, "potentials", progress, cancel_token
        ):
            potentials[:, z] = fields
        logger.debug("Potential fields materialized", size=size)

        # Stage 2: differentiate, clamp and encode
        volume = np.empty((size, size, size, CHANNELS), dtype=SAMPLE_DTYPE)
        for z in range(size):
            cx, cy, cz = clamp_magnitude(*curl_slice(potentials, z))
            volume[z, :, :, 0] = encode_signed(cx)
            volume[z, :, :, 1] = encode_signed(cy)
            volume[z, :, :, 2] = encode_signed(cz)
            volume[z, :, :, 3] = 1.0
            _report(progress, "curl", z + 1, size)
            if cancel_token is not None and z + 1 < size:
                cancel_token.raise_if_cancelled()
        return volume.reshape(-1, CHANNELS)

    def _evaluate_slices(
        self,
        evaluator: FractalNoiseEvaluator,
        size: int,
        offsets: Sequence[Offset],
        stage: str,
        progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
        final_stage: bool = False,
    ) -> Iterator[Tuple[int, np.ndarray]]:
        """
        Yield (z, fields) for every slice in ascending z.

        ``fields`` has shape (len(offsets), size, size), indexed [field, y, x].
        Slices are independent, so with several workers they are computed on
        a thread pool; results are still consumed in z order.

        In the final stage of a bake the last slice completes the volume, so
        cancellation is not checked after it.
        """
        centres = cell_centres(size)
        grids = [
            (*np.meshgrid(centres + dv, centres + du, indexing="ij"), dw)
            for du, dv, dw in offsets
        ]

        def evaluate(z: int) -> np.ndarray:
            w = centres[z]
            return np.stack(
                [evaluator.evaluate(u_grid, v_grid, w + dw) for v_grid, u_grid, dw in grids]
            )

        if self.workers == 1:
            results = map(evaluate, range(size))
            executor = None
        else:
            executor = ThreadPoolExecutor(max_workers=self.workers)
            results = executor.map(evaluate, range(size))

        try:
            for z, fields in enumerate(results):
                yield z, fields
                _report(progress, stage, z + 1, size)
                if cancel_token is not None and not (final_stage and z + 1 == size):
                    cancel_token.raise_if_cancelled()
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)


def _report(progress: Optional[ProgressCallback], stage: str, completed: int, total: int) -> None:
    if progress is not None:
        progress(BakeProgress(stage=stage, completed=completed, total=total))


def bake_volume(
    params: NoiseParameters, mode: BakeMode = BakeMode.SCALAR, **kwargs
) -> BakeResult:
    """Bake with a default VolumeFieldBaker. Keyword arguments go to ``bake``."""
    return VolumeFieldBaker().bake(params, mode, **kwargs)
