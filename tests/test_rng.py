"""Tests for waypoint_contagion.rng — seeded RNG hierarchy."""

import numpy as np

from waypoint_contagion.rng import STREAM_NAMES, create_rng_hierarchy, spawn_seeds


class TestCreateRngHierarchy:
    def test_returns_correct_keys(self):
        rngs = create_rng_hierarchy(42)
        assert set(rngs) == {'place_probabilities', 'constant_rate', 'variable_rate'}
        assert tuple(rngs) == STREAM_NAMES

    def test_generators_are_independent(self):
        """Different streams produce different sequences."""
        rngs = create_rng_hierarchy(42)
        vals = {name: rng.random() for name, rng in rngs.items()}
        assert len(set(vals.values())) == len(vals), "RNG streams produced duplicate values"

    def test_reproducibility(self):
        """Same seed produces identical sequences."""
        rngs1 = create_rng_hierarchy(42)
        rngs2 = create_rng_hierarchy(42)
        for name in rngs1:
            np.testing.assert_array_equal(rngs1[name].random(100), rngs2[name].random(100))

    def test_different_seeds_differ(self):
        rngs1 = create_rng_hierarchy(42)
        rngs2 = create_rng_hierarchy(43)
        assert not np.array_equal(
            rngs1['place_probabilities'].random(10),
            rngs2['place_probabilities'].random(10),
        )

    def test_streams_do_not_interfere(self):
        """Consuming one stream leaves the others untouched."""
        rngs1 = create_rng_hierarchy(7)
        rngs2 = create_rng_hierarchy(7)
        rngs1['constant_rate'].random(10_000)
        np.testing.assert_array_equal(
            rngs1['place_probabilities'].random(20),
            rngs2['place_probabilities'].random(20),
        )

    def test_none_seed_gives_fresh_entropy(self):
        rngs1 = create_rng_hierarchy(None)
        rngs2 = create_rng_hierarchy(None)
        assert not np.array_equal(
            rngs1['variable_rate'].random(10),
            rngs2['variable_rate'].random(10),
        )

    def test_returns_generators(self):
        for rng in create_rng_hierarchy(0).values():
            assert isinstance(rng, np.random.Generator)


class TestSpawnSeeds:
    def test_count_and_type(self):
        seeds = spawn_seeds(42, 5)
        assert len(seeds) == 5
        assert all(isinstance(s, int) and s >= 0 for s in seeds)

    def test_distinct(self):
        seeds = spawn_seeds(42, 50)
        assert len(set(seeds)) == 50

    def test_reproducible(self):
        assert spawn_seeds(7, 4) == spawn_seeds(7, 4)

    def test_prefix_stable(self):
        """Asking for more seeds does not change the earlier ones."""
        assert spawn_seeds(7, 10)[:3] == spawn_seeds(7, 3)

    def test_zero(self):
        assert spawn_seeds(1, 0) == []
