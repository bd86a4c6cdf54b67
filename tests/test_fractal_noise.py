"""Tests for fractal noise evaluation."""

import numpy as np
import pytest

from py_noise3d.core.fractal_noise import FractalNoiseEvaluator
from py_noise3d.core.noise_kernels import FoldedPerlinKernel, GradientNoise3DKernel
from py_noise3d.core.parameters import NoiseParameters


class ConstantKernel:
    """Kernel returning a fixed value and recording octave frequencies."""

    def __init__(self, value):
        self.value = value
        self.frequencies = []

    def sample(self, u, v, w, frequency):
        self.frequencies.append(frequency)
        return np.full(np.broadcast(np.asarray(u), np.asarray(v), np.asarray(w)).shape, self.value)


class TestFractalNoiseEvaluator:
    """Test octave accumulation and the output contract."""

    @pytest.fixture
    def params(self):
        return NoiseParameters(size=8, octaves=3, frequency=2.0, lacunarity=2.0, persistence=0.5, seed=0)

    def test_scalar_input_returns_float(self, params):
        value = FractalNoiseEvaluator(params).evaluate(0.25, 0.5, 0.75)
        assert isinstance(value, float)
        assert 0.0 <= value <= 1.0

    def test_array_input_keeps_shape(self, params):
        u, v = np.meshgrid(np.linspace(0, 1, 16), np.linspace(0, 1, 16), indexing="ij")
        values = FractalNoiseEvaluator(params).evaluate(u, v, 0.5)
        assert values.shape == (16, 16)
        assert values.min() >= 0.0
        assert values.max() <= 1.0

    def test_deterministic(self, params):
        a = FractalNoiseEvaluator(params).evaluate(0.1, 0.2, 0.3)
        b = FractalNoiseEvaluator(params).evaluate(0.1, 0.2, 0.3)
        assert a == b

    def test_octave_frequencies(self, params):
        """Each octave multiplies the frequency by the lacunarity."""
        kernel = ConstantKernel(0.2)
        FractalNoiseEvaluator(params, kernel).evaluate(0.5, 0.5, 0.5)
        assert kernel.frequencies == [2.0, 4.0, 8.0]

    def test_amplitudes_are_not_renormalized(self, params):
        """0.3 * (1 + 0.5 + 0.25) = 0.525, with no division by total amplitude."""
        value = FractalNoiseEvaluator(params, ConstantKernel(0.3)).evaluate(0.5, 0.5, 0.5)
        assert value == pytest.approx(0.525)

    def test_sum_saturates_at_one(self, params):
        value = FractalNoiseEvaluator(params, ConstantKernel(0.8)).evaluate(0.5, 0.5, 0.5)
        assert value == 1.0

    def test_negative_sum_clamps_to_zero(self, params):
        value = FractalNoiseEvaluator(params, ConstantKernel(-0.2)).evaluate(0.5, 0.5, 0.5)
        assert value == 0.0

    def test_single_octave_matches_kernel(self):
        params = NoiseParameters(size=4, octaves=1, frequency=3.0)
        kernel = FoldedPerlinKernel(params.seed)
        value = FractalNoiseEvaluator(params, kernel).evaluate(0.4, 0.7, 0.2)
        expected = float(np.clip(kernel.sample(0.4, 0.7, 0.2, 3.0), 0.0, 1.0))
        assert value == pytest.approx(expected)

    def test_default_kernel_uses_seed(self):
        evaluator = FractalNoiseEvaluator(NoiseParameters(seed=17))
        assert isinstance(evaluator.kernel, FoldedPerlinKernel)
        assert evaluator.kernel.seed == 17

    def test_seed_changes_values(self):
        points = np.linspace(0.05, 0.95, 10)
        a = FractalNoiseEvaluator(NoiseParameters(octaves=1, seed=0)).evaluate(points, points, points)
        b = FractalNoiseEvaluator(NoiseParameters(octaves=1, seed=1)).evaluate(points, points, points)
        assert not np.allclose(a, b)

    def test_swapped_kernel_keeps_contract(self, params):
        evaluator = FractalNoiseEvaluator(params, GradientNoise3DKernel(params.seed))
        u = np.linspace(0.0, 1.0, 50)
        values = evaluator.evaluate(u, u[::-1], 0.3)
        assert values.shape == (50,)
        assert values.min() >= 0.0
        assert values.max() <= 1.0
