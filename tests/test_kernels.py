"""Tests for the SPH smoothing kernels."""

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax.sph.kernels import (
    KERNEL_TYPES,
    CubicSplineKernel,
    WendlandC2Kernel,
    createKernel,
)


@pytest.fixture(params=KERNEL_TYPES)
def kernelType(request):
    return request.param


class TestNormalization:
    def test_integrates_to_one_in_2d(self, kernelType):
        kernel = createKernel(kernelType, 2)
        step = 0.02
        axis = np.arange(-2.0 + step / 2, 2.0, step)
        x, y = np.meshgrid(axis, axis, indexing='ij')
        r = np.hypot(x, y).ravel()
        total = np.sum(kernel.evaluateBatch(r, 1.0)) * step * step
        npt.assert_allclose(total, 1.0, atol=2e-3)

    def test_integrates_to_one_in_3d(self, kernelType):
        kernel = createKernel(kernelType, 3)
        step = 0.05
        axis = np.arange(-2.0 + step / 2, 2.0, step)
        x, y, z = np.meshgrid(axis, axis, axis, indexing='ij')
        r = np.sqrt(x * x + y * y + z * z).ravel()
        total = np.sum(kernel.evaluateBatch(r, 1.0)) * step ** 3
        npt.assert_allclose(total, 1.0, atol=5e-3)


class TestSupport:
    def test_zero_beyond_support(self, kernelType):
        kernel = createKernel(kernelType, 2)
        r = np.array([2.0, 2.5, 10.0])
        npt.assert_array_equal(kernel.evaluateBatch(r, 1.0), 0.0)
        npt.assert_array_equal(kernel.gradientMagnitudeBatch(r, 1.0), 0.0)

    def test_positive_inside_support(self, kernelType):
        kernel = createKernel(kernelType, 3)
        r = np.linspace(0.0, 1.99, 50)
        assert np.all(kernel.evaluateBatch(r, 1.0) > 0.0)

    def test_scales_with_smoothing_length(self, kernelType):
        kernel = createKernel(kernelType, 2)
        npt.assert_allclose(kernel.evaluate(1.0, 2.0), kernel.evaluate(0.5, 1.0) / 4.0)

    def test_per_pair_smoothing_length(self, kernelType):
        kernel = createKernel(kernelType, 2)
        r = np.array([0.5, 0.5])
        h = np.array([1.0, 2.0])
        values = kernel.evaluateBatch(r, h)
        npt.assert_allclose(values[0], kernel.evaluate(0.5, 1.0))
        npt.assert_allclose(values[1], kernel.evaluate(0.5, 2.0))


class TestGradient:
    def test_antisymmetric(self, kernelType):
        kernel = createKernel(kernelType, 3)
        dr = np.array([[0.3, -0.4, 0.2]])
        dist = np.linalg.norm(dr, axis=1)
        gradIJ = kernel.gradientBatch(dr, dist, 1.0)
        gradJI = kernel.gradientBatch(-dr, dist, 1.0)
        npt.assert_allclose(gradIJ, -gradJI)

    def test_points_toward_neighbor(self, kernelType):
        kernel = createKernel(kernelType, 2)
        dr = np.array([[0.8, 0.0]])
        grad = kernel.gradientBatch(dr, np.array([0.8]), 1.0)
        assert grad[0, 0] < 0.0
        npt.assert_allclose(grad[0, 1], 0.0)

    def test_zero_at_coincident_points(self, kernelType):
        kernel = createKernel(kernelType, 2)
        grad = kernel.gradientBatch(np.zeros((1, 2)), np.zeros(1), 1.0)
        npt.assert_array_equal(grad, 0.0)

    def test_matches_finite_difference(self, kernelType):
        kernel = createKernel(kernelType, 2)
        r = np.array([0.3, 0.9, 1.4])
        eps = 1e-6
        numeric = (kernel.evaluateBatch(r + eps, 1.0) - kernel.evaluateBatch(r - eps, 1.0)) / (2 * eps)
        npt.assert_allclose(kernel.gradientMagnitudeBatch(r, 1.0), numeric, rtol=1e-5)


class TestShapeFunction:
    def test_unit_at_origin_zero_at_support(self, kernelType):
        kernel = createKernel(kernelType, 2)
        npt.assert_allclose(kernel.shapeFunction(np.array([0.0, 2.0, 3.0])), [1.0, 0.0, 0.0])

    def test_monotonically_decreasing(self, kernelType):
        kernel = createKernel(kernelType, 3)
        values = kernel.shapeFunction(np.linspace(0.0, 2.0, 101))
        assert np.all(np.diff(values) <= 0.0)


class TestFactory:
    def test_kernel_classes(self):
        assert isinstance(createKernel('cubicSpline', 2), CubicSplineKernel)
        assert isinstance(createKernel('wendlandC2', 3), WendlandC2Kernel)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            createKernel('gaussian', 2)

    def test_unsupported_dimension(self):
        with pytest.raises(ValueError):
            CubicSplineKernel(1)
