"""Tests for the sampled signed-distance field."""

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry import Box, SignedDistanceField, Sphere


class TestConstruction:
    def test_from_shape_grid(self, diskField):
        assert diskField.dimensions == 2
        assert diskField.shape == (81, 81)
        npt.assert_allclose(diskField.lower, [-10.0, -10.0])
        npt.assert_allclose(diskField.upper, [10.0, 10.0])

    def test_from_voxels(self):
        values = -np.ones((3, 4, 5))
        field = SignedDistanceField.fromVoxels(values, [1.0, 2.0, 3.0], 0.5)
        assert field.dimensions == 3
        npt.assert_allclose(field.upper, [2.0, 3.5, 5.0])

    def test_values_are_read_only(self, diskField):
        with pytest.raises(ValueError):
            diskField.values[0, 0] = 1.0

    def test_missing_shape(self):
        with pytest.raises(GeometryError):
            SignedDistanceField.fromShape(None, [0.0, 0.0], [1.0, 1.0], 0.1)

    def test_missing_voxels(self):
        with pytest.raises(GeometryError):
            SignedDistanceField.fromVoxels(None, [0.0, 0.0], 0.1)

    def test_rejects_one_dimensional_grid(self):
        with pytest.raises(GeometryError):
            SignedDistanceField(-np.ones(5), [0.0], 1.0)

    def test_rejects_single_node_axis(self):
        with pytest.raises(GeometryError):
            SignedDistanceField(-np.ones((1, 5)), [0.0, 0.0], 1.0)

    def test_rejects_non_finite(self):
        values = -np.ones((4, 4))
        values[1, 2] = np.nan
        with pytest.raises(GeometryError):
            SignedDistanceField(values, [0.0, 0.0], 1.0)

    def test_rejects_bad_spacing(self):
        with pytest.raises(GeometryError):
            SignedDistanceField(-np.ones((4, 4)), [0.0, 0.0], 0.0)

    def test_rejects_field_without_interior(self):
        with pytest.raises(GeometryError):
            SignedDistanceField(np.ones((4, 4)), [0.0, 0.0], 1.0)

    def test_rejects_origin_mismatch(self):
        with pytest.raises(GeometryError):
            SignedDistanceField(-np.ones((4, 4)), [0.0, 0.0, 0.0], 1.0)


class TestDistance:
    def test_matches_analytic_sphere(self, sphere, sphereField):
        rng = np.random.default_rng(0)
        points = rng.uniform(-7.0, 7.0, size=(400, 3))
        # Linear interpolation cannot follow the cone tip at the center
        points = points[np.linalg.norm(points, axis=1) > 2.5]
        npt.assert_allclose(
            sphereField.distance(points), sphere.signedDistance(points), atol=0.05
        )

    def test_single_point_returns_float(self, diskField):
        d = diskField.distance(np.array([0.0, 0.0]))
        assert isinstance(d, float)
        npt.assert_allclose(d, -5.0, atol=1e-9)

    def test_outside_grid_uses_nearest_sample(self, diskField):
        far = diskField.distance(np.array([[50.0, 0.0]]))
        edge = diskField.distance(np.array([[10.0, 0.0]]))
        assert np.all(np.isfinite(far))
        npt.assert_allclose(far, edge)

    def test_contains(self, diskField):
        inside = diskField.contains(np.array([[0.0, 0.0], [4.0, 0.0], [6.0, 0.0]]))
        npt.assert_array_equal(inside, [True, True, False])

    def test_empty_query(self, diskField):
        assert diskField.distance(np.zeros((0, 2))).shape == (0,)


class TestGradient:
    def test_unit_outward_normal(self, diskField):
        points = np.array([[5.0, 0.0], [0.0, -4.0], [3.0, 3.0]])
        grad = diskField.gradient(points)
        npt.assert_allclose(np.linalg.norm(grad, axis=1), 1.0)
        expected = points / np.linalg.norm(points, axis=1)[:, np.newaxis]
        npt.assert_allclose(grad, expected, atol=0.02)

    def test_zero_where_undefined(self, diskField):
        npt.assert_allclose(diskField.gradient(np.array([0.0, 0.0])), [0.0, 0.0], atol=1e-12)

    def test_normal_alias(self, diskField):
        p = np.array([[2.0, 1.0]])
        npt.assert_array_equal(diskField.normal(p), diskField.gradient(p))


class TestProject:
    def test_onto_surface(self, diskField):
        points = np.array([[4.0, 0.0], [0.0, 6.5], [-3.0, 3.0]])
        projected = diskField.project(points, tolerance=1e-4)
        npt.assert_allclose(diskField.distance(projected), 0.0, atol=1e-4)

    def test_onto_offset_surface(self, sphereField):
        points = np.array([[3.0, 1.0, 0.5], [0.0, 0.0, 5.0]])
        projected = sphereField.project(points, targetDistance=-0.5, tolerance=1e-4)
        npt.assert_allclose(sphereField.distance(projected), -0.5, atol=1e-4)

    def test_input_unchanged(self, diskField):
        points = np.array([[4.0, 0.0]])
        original = points.copy()
        diskField.project(points)
        npt.assert_array_equal(points, original)

    def test_box_corner_region(self):
        box = Box([0.0, 0.0], [3.0, 2.0])
        field = SignedDistanceField.fromShape(box, [-6.0, -6.0], [6.0, 6.0], 0.25)
        projected = field.project(np.array([[0.0, 2.6], [3.4, 0.0]]), tolerance=1e-4)
        npt.assert_allclose(field.distance(projected), 0.0, atol=1e-4)


class TestSampling:
    def test_sphere_center_value(self):
        field = SignedDistanceField.fromShape(Sphere([0.0, 0.0, 0.0], 1.5), [-3.0] * 3, [3.0] * 3, 0.5)
        npt.assert_allclose(field.distance(np.zeros(3)), -1.5)
