"""Tests for the client-side coordinate transform."""
import pytest
import numpy as np

from geoveil.client.transform import CoordinateTransform, approximate_inverse, derive_matrix


class TestDeriveMatrix:
    """Test key-derived matrices."""

    def test_same_key_same_matrix(self):
        """Matrices depend only on the key and derivation tags."""
        a = derive_matrix("k1", 4)
        b = derive_matrix("k1", 4)
        np.testing.assert_array_equal(a, b)

    def test_different_keys_differ(self):
        assert not np.array_equal(derive_matrix("k1", 4), derive_matrix("k2", 4))

    def test_seed_suffix_changes_matrix(self):
        plain = derive_matrix("k1", 4)
        extended = derive_matrix("k1", 4, seed_suffix="extended", cell_tag="ext-")
        assert not np.array_equal(plain, extended[:4, :4])

    def test_cells_in_unit_interval(self):
        matrix = derive_matrix("some key", 6)
        assert matrix.shape == (6, 6)
        assert np.all(matrix >= 0.0)
        assert np.all(matrix <= 1.0)


class TestApproximateInverse:
    """Test Gauss-Jordan inversion."""

    def test_inverts_key_matrix(self, master_key):
        matrix = derive_matrix(master_key, 4)
        inverse = approximate_inverse(matrix)
        np.testing.assert_allclose(matrix @ inverse, np.eye(4), atol=1e-8)

    def test_singular_matrix_does_not_raise(self):
        """Near-zero pivots are skipped instead of failing."""
        singular = np.array([[1.0, 2.0], [2.0, 4.0]])
        inverse = approximate_inverse(singular)
        assert inverse.shape == (2, 2)


class TestCoordinateTransform:
    """Test location encryption."""

    def test_output_dimension(self, master_key, rng):
        transform = CoordinateTransform(master_key, rng=rng)
        location = transform.encrypt_point(40.7128, -74.0060)
        assert len(location) == 4
        assert location.version == "1.0"

    def test_same_seed_reproduces_output(self, master_key):
        """With a seeded generator the padding and noise are reproducible."""
        a = CoordinateTransform(master_key, rng=np.random.default_rng(7))
        b = CoordinateTransform(master_key, rng=np.random.default_rng(7))
        assert a.encrypt_point(10.0, 20.0).coords == b.encrypt_point(10.0, 20.0).coords

    def test_repeat_encryption_is_randomized(self, master_key, rng):
        transform = CoordinateTransform(master_key, rng=rng)
        first = transform.encrypt_point(10.0, 20.0)
        second = transform.encrypt_point(10.0, 20.0)
        assert first.coords != second.coords

    def test_distinct_points_distinct_outputs(self, master_key, rng):
        transform = CoordinateTransform(master_key, rng=rng)
        a = transform.encrypt_point(40.0, -74.0)
        b = transform.encrypt_point(-33.9, 151.2)
        assert a.coords != b.coords

    def test_timestamp_from_clock(self, master_key, rng, clock):
        transform = CoordinateTransform(master_key, rng=rng, clock=clock)
        assert transform.encrypt_point(0.0, 0.0).timestamp == clock.now

    def test_out_of_range_input_accepted(self, master_key, rng):
        """Range checks happen upstream, not in the transform."""
        location = CoordinateTransform(master_key, rng=rng).encrypt_point(120.0, 400.0)
        assert len(location) == 4

    def test_recover_coordinates_without_noise(self, master_key, rng):
        transform = CoordinateTransform(master_key, noise_scale=0.0, rng=rng)
        location = transform.encrypt_point(48.8566, 2.3522)
        lat, lng = transform.recover_coordinates(location.coords)
        assert lat == pytest.approx(48.8566, abs=1e-6)
        assert lng == pytest.approx(2.3522, abs=1e-6)

    def test_random_key_when_omitted(self):
        a = CoordinateTransform()
        b = CoordinateTransform()
        assert a.master_key != b.master_key
        assert len(a.master_key) == 64

    def test_normalize(self):
        assert CoordinateTransform.normalize(-90.0, -180.0) == (0.0, 0.0)
        assert CoordinateTransform.normalize(90.0, 180.0) == (1.0, 1.0)
