"""Tests for the analytic implicit shapes."""

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry import Box, ComplexShape, Cylinder, Sphere


class TestSphere:
    def test_center_surface_outside(self):
        s = Sphere([0.0, 0.0, 0.0], 2.0)
        d = s.signedDistance(np.array([[0, 0, 0], [2, 0, 0], [0, 3, 0]], dtype=float))
        npt.assert_allclose(d, [-2.0, 0.0, 1.0])

    def test_disk_in_2d(self):
        s = Sphere([1.0, 1.0], 1.0)
        assert s.dimensions == 2
        npt.assert_allclose(s.signedDistance(np.array([[1.0, 1.0]])), [-1.0])

    def test_non_positive_radius(self):
        with pytest.raises(GeometryError):
            Sphere([0.0, 0.0], 0.0)

    def test_dimension_mismatch(self):
        with pytest.raises(GeometryError):
            Sphere([0.0, 0.0], 1.0).signedDistance(np.zeros((2, 3)))


class TestBox:
    def test_inside_and_outside(self):
        b = Box([0.0, 0.0], [1.0, 2.0])
        d = b.signedDistance(np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 3.0]]))
        npt.assert_allclose(d, [-1.0, 1.0, np.sqrt(2.0)])

    def test_invalid_half_size(self):
        with pytest.raises(GeometryError):
            Box([0.0, 0.0], [1.0, -1.0])


class TestCylinder:
    def test_axis_and_radius(self):
        c = Cylinder([0.0, 0.0, 0.0], radius=1.0, halfLength=2.0, axis=2)
        d = c.signedDistance(np.array([[0, 0, 0], [3, 0, 0], [0, 0, 5]], dtype=float))
        npt.assert_allclose(d, [-1.0, 2.0, 3.0])

    def test_only_3d(self):
        with pytest.raises(GeometryError):
            Cylinder([0.0, 0.0], 1.0, 1.0)


class TestComplexShape:
    def test_union_is_minimum(self):
        body = ComplexShape('pair').add(Sphere([-2.0, 0.0], 1.0)).add(Sphere([2.0, 0.0], 1.0))
        d = body.signedDistance(np.array([[-2.0, 0.0], [2.0, 0.0], [0.0, 0.0]]))
        npt.assert_allclose(d, [-1.0, -1.0, 1.0])

    def test_subtract_carves_hole(self):
        body = ComplexShape('ring').add(Sphere([0.0, 0.0], 3.0)).subtract(Sphere([0.0, 0.0], 1.0))
        d = body.signedDistance(np.array([[0.0, 0.0], [2.0, 0.0]]))
        npt.assert_allclose(d, [1.0, -1.0])
        assert body.nShapes == 2

    def test_empty_body(self):
        with pytest.raises(GeometryError):
            ComplexShape('empty').signedDistance(np.zeros((1, 2)))

    def test_mixed_dimensions(self):
        body = ComplexShape().add(Sphere([0.0, 0.0], 1.0))
        with pytest.raises(GeometryError):
            body.add(Sphere([0.0, 0.0, 0.0], 1.0))
