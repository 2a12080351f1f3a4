"""Tests for waypoint_contagion.infection — infection models and place tables.

Statistical checks use fixed seeds and large samples, so they are
deterministic and far from their tolerances.
"""

import numpy as np
import pytest

from waypoint_contagion.exposure import ExposureRecord
from waypoint_contagion.infection import (
    beta_parameters,
    beta_probabilities,
    canonical_order,
    check_place_coverage,
    count_based_infections,
    infection_probability_from_count,
    log_transform_probabilities,
    non_infection_probability,
    place_probability_table,
    validate_place_table,
    variable_rate_infections,
)
from waypoint_contagion.types import (
    InconsistentPlaceKeyError,
    InfectionModel,
    InvalidParameterError,
)


def _uniform_record(n_entities, places):
    return ExposureRecord({e: list(places) for e in range(n_entities)})


# ── Ordering ─────────────────────────────────────────────────────────

class TestCanonicalOrder:
    def test_sorts_comparable_keys(self):
        assert canonical_order({"c", "a", "b"}) == ["a", "b", "c"]

    def test_mixed_types_fall_back_to_repr(self):
        ordered = canonical_order([3, "x", 1])
        assert ordered == canonical_order(["x", 1, 3])
        assert set(ordered) == {1, 3, "x"}


# ── Count-based model ────────────────────────────────────────────────

class TestCountBased:
    def test_closed_form(self):
        assert infection_probability_from_count(1, 0.2) == pytest.approx(0.2)
        assert infection_probability_from_count(3, 0.2) == pytest.approx(1 - 0.8 ** 3)
        assert infection_probability_from_count(0, 0.2) == 0.0

    def test_closed_form_vectorised(self):
        k = np.array([0.0, 1.0, 3.0])
        np.testing.assert_allclose(
            infection_probability_from_count(k, 0.2), [0.0, 0.2, 1 - 0.8 ** 3])

    @pytest.mark.parametrize("k", [1, 3, 8])
    def test_rate_converges(self, k):
        p = 0.2
        record = _uniform_record(10_000, ["A"] * k)
        infected = count_based_infections(record, p, np.random.default_rng(k))
        rate = len(infected) / len(record)
        assert rate == pytest.approx(1 - (1 - p) ** k, abs=0.02)

    def test_certain_transmission(self):
        record = ExposureRecord({1: ["A"], 2: ["B", "B"]})
        infected = count_based_infections(record, 1.0, np.random.default_rng(0))
        assert infected == frozenset({1, 2})

    def test_infected_subset_of_exposed(self):
        record = ExposureRecord({e: ["A"] * (e % 4 + 1) for e in range(200)})
        infected = count_based_infections(record, 0.3, np.random.default_rng(1))
        assert infected <= record.exposed

    def test_empty_record(self):
        rng = np.random.default_rng(0)
        assert count_based_infections(ExposureRecord({}), 0.5, rng) == frozenset()

    def test_reproducible(self):
        record = ExposureRecord({e: ["A"] for e in range(500)})
        a = count_based_infections(record, 0.4, np.random.default_rng(11))
        b = count_based_infections(record, 0.4, np.random.default_rng(11))
        assert a == b


# ── Log-transform table ──────────────────────────────────────────────

class TestLogTransform:
    @pytest.mark.parametrize("p", [0.05, 0.25, 0.6])
    def test_mean_close_to_p(self, p):
        table = log_transform_probabilities(range(50_000), p, np.random.default_rng(2))
        assert np.mean(list(table.values())) == pytest.approx(p, abs=0.01)

    def test_decimal_grid_p_hits_exact_mean(self):
        table = log_transform_probabilities(range(200_000), 0.07, np.random.default_rng(15))
        assert np.mean(list(table.values())) == pytest.approx(0.07, rel=0.02)

    def test_values_in_unit_interval(self):
        table = log_transform_probabilities(range(5_000), 0.1, np.random.default_rng(4))
        values = np.array(list(table.values()))
        assert np.all(values > 0.0)
        assert np.all(values <= 1.0)

    def test_covers_every_place(self):
        table = log_transform_probabilities(["A", "B", "C"], 0.3, np.random.default_rng(0))
        assert set(table) == {"A", "B", "C"}

    def test_independent_of_input_order(self):
        a = log_transform_probabilities(["C", "A", "B"], 0.3, np.random.default_rng(8))
        b = log_transform_probabilities(["B", "C", "A"], 0.3, np.random.default_rng(8))
        assert a == b

    @pytest.mark.parametrize("p", [0.0, 1.0, 1.5])
    def test_rejects_bad_p(self, p):
        with pytest.raises(InvalidParameterError):
            log_transform_probabilities(["A"], p, np.random.default_rng(0))


# ── Beta table ───────────────────────────────────────────────────────

class TestBeta:
    def test_parameters(self):
        alpha, beta = beta_parameters(0.2)
        assert alpha == pytest.approx(0.6)
        assert beta == pytest.approx(2.4)

    @pytest.mark.parametrize("p", [0.0, 0.5, 0.8])
    def test_rejects_p_at_or_above_half(self, p):
        with pytest.raises(InvalidParameterError):
            beta_parameters(p)

    @pytest.mark.parametrize("p", [0.05, 0.2, 0.4])
    def test_mean_and_sd_equal_p(self, p):
        table = beta_probabilities(range(100_000), p, np.random.default_rng(6))
        values = np.array(list(table.values()))
        assert values.mean() == pytest.approx(p, rel=0.03)
        assert values.std() == pytest.approx(p, rel=0.03)

    def test_independent_of_input_order(self):
        a = beta_probabilities([3, 1, 2], 0.1, np.random.default_rng(9))
        b = beta_probabilities([2, 3, 1], 0.1, np.random.default_rng(9))
        assert a == b

    def test_dispatch(self):
        rng_a, rng_b = np.random.default_rng(5), np.random.default_rng(5)
        assert (place_probability_table(InfectionModel.BETA, ["A", "B"], 0.1, rng_a)
                == beta_probabilities(["A", "B"], 0.1, rng_b))

    def test_dispatch_rejects_count_based(self):
        with pytest.raises(InvalidParameterError):
            place_probability_table(
                InfectionModel.COUNT_BASED, ["A"], 0.1, np.random.default_rng(0))


# ── Place-dependent infection ────────────────────────────────────────

class TestVariableRate:
    def test_non_infection_product(self):
        table = {"A": 0.5, "B": 0.2}
        assert non_infection_probability(["A", "B", "A"], table) == pytest.approx(
            0.5 * 0.8 * 0.5)

    def test_rate_converges(self):
        table = {"A": 0.3, "B": 0.5}
        record = _uniform_record(10_000, ["A", "B"])
        infected = variable_rate_infections(record, table, np.random.default_rng(13))
        assert len(infected) / len(record) == pytest.approx(1 - 0.7 * 0.5, abs=0.02)

    def test_constant_table_matches_count_based_rate(self):
        record = _uniform_record(10_000, ["A", "B", "B"])
        table = {"A": 0.25, "B": 0.25}
        infected = variable_rate_infections(record, table, np.random.default_rng(14))
        expected = infection_probability_from_count(3, 0.25)
        assert len(infected) / len(record) == pytest.approx(expected, abs=0.02)

    def test_zero_probability_places_never_infect(self):
        record = _uniform_record(1_000, ["A"])
        infected = variable_rate_infections(record, {"A": 0.0}, np.random.default_rng(0))
        assert infected == frozenset()

    def test_missing_place_raises_before_draws(self):
        record = ExposureRecord({1: ["A"], 2: ["Z"]})
        rng = np.random.default_rng(21)
        with pytest.raises(InconsistentPlaceKeyError) as excinfo:
            variable_rate_infections(record, {"A": 0.5}, rng)
        assert excinfo.value.missing == ("Z",)
        # the generator was not advanced
        assert rng.random() == np.random.default_rng(21).random()

    def test_coverage_check_passes(self):
        record = ExposureRecord({1: ["A", "B"]})
        check_place_coverage(record, {"A": 0.1, "B": 0.2, "C": 0.3})

    def test_empty_record(self):
        rng = np.random.default_rng(0)
        assert variable_rate_infections(ExposureRecord({}), {}, rng) == frozenset()


# ── Place-table validation ───────────────────────────────────────────

class TestValidatePlaceTable:
    def test_accepts_probabilities(self):
        validate_place_table({"A": 0.0, "B": 1.0, "C": np.float64(0.3), "D": 1})

    def test_accepts_empty(self):
        validate_place_table({})

    @pytest.mark.parametrize("bad", [1.01, -0.5, float('nan'), "0.2", None, True])
    def test_rejects(self, bad):
        with pytest.raises(InvalidParameterError, match="'B'"):
            validate_place_table({"A": 0.2, "B": bad})
