"""Shared fixtures for the particle relaxation tests."""

import numpy as np
import pytest

from bodyFitted.ParticleRelax.geometry import SignedDistanceField, Sphere
from bodyFitted.ParticleRelax.sph import RelaxationConfig


@pytest.fixture
def disk():
    return Sphere([0.0, 0.0], 5.0)


@pytest.fixture
def diskField(disk):
    return SignedDistanceField.fromShape(disk, [-10.0, -10.0], [10.0, 10.0], 0.25)


@pytest.fixture
def diskConfig():
    return RelaxationConfig(
        domainMin=np.array([-8.0, -8.0]),
        domainMax=np.array([8.0, 8.0]),
        particleSpacing=1.0,
        minRatio=1.0,
        maxRatio=1.0,
        iterations=20,
        recordInterval=5,
        randomSeed=3,
    )


@pytest.fixture
def sphere():
    return Sphere([0.0, 0.0, 0.0], 4.0)


@pytest.fixture
def sphereField(sphere):
    return SignedDistanceField.fromShape(sphere, [-9.0] * 3, [9.0] * 3, 0.5)
