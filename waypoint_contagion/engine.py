"""Exposure/infection engine.

One run, start to finish:

  1. validate configuration (fatal, before any work or random draw)
  2. contagious-window index from source waypoints
  3. exposure record from non-source waypoints
  4. exposure statistics
  5. place-probability table (place-dependent models only)
  6. infection draws

The count-based outcome is always drawn. For the place-dependent models it
is reported alongside the place-dependent outcome as
`constant_rate_infected`, so both assumptions can be compared on the same
exposures.

Randomness comes from three independent named streams (see rng.py), so
with a fixed seed the place table is bit-identical no matter which
infection draws are made.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    AbstractSet,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
)

from waypoint_contagion.config import EngineConfig, default_config, validate_config
from waypoint_contagion.exposure import ExposureRecord, count_exposures
from waypoint_contagion.infection import (
    check_place_coverage,
    count_based_infections,
    place_probability_table,
    validate_place_table,
    variable_rate_infections,
)
from waypoint_contagion.perf import PerfMonitor
from waypoint_contagion.rng import create_rng_hierarchy, spawn_seeds
from waypoint_contagion.statistics import (
    ExposureSummary,
    summarize_exposures,
    tally_exposures,
)
from waypoint_contagion.types import InfectionModel, InvalidParameterError, PlaceUniverse
from waypoint_contagion.waypoints import as_waypoints, place_ids
from waypoint_contagion.windows import build_window_index

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of one engine run."""
    model: InfectionModel = InfectionModel.COUNT_BASED
    sources: FrozenSet[int] = frozenset()
    exposed: FrozenSet[int] = frozenset()
    infected: FrozenSet[int] = frozenset()
    # Place-dependent models only: outcome under constant p on the same exposures
    constant_rate_infected: Optional[FrozenSet[int]] = None
    place_probabilities: Optional[Mapping[Hashable, float]] = None
    exposures: ExposureRecord = field(default_factory=lambda: ExposureRecord({}))
    exposure_tally: Dict[int, int] = field(default_factory=dict)
    exposure_summary: ExposureSummary = field(default_factory=ExposureSummary)
    n_source_waypoints: int = 0
    n_source_places: int = 0
    timings: dict = field(default_factory=dict)

    @property
    def vulnerable(self) -> FrozenSet[int]:
        """Non-sources that visited a source place, exposed or not."""
        return self.exposures.vulnerable


def run_simulation(
    waypoints: Iterable,
    sources: AbstractSet[int],
    config: Optional[EngineConfig] = None,
    place_probabilities: Optional[Mapping[Hashable, float]] = None,
    perf: Optional[PerfMonitor] = None,
) -> SimulationResult:
    """Run the exposure/infection engine once.

    Args:
        waypoints: Waypoint records (Waypoint or (entity, timestamp, place)).
        sources: Entities infected at the start; never exposed or infected.
        config: Engine configuration; defaults to `default_config()`.
        place_probabilities: Optional previously drawn place table to reuse
            (place-dependent models). Must cover every exposure place.
        perf: Optional timing monitor; one is created from
            `simulation.track_performance` otherwise.

    Returns:
        SimulationResult. Empty sources or waypoints give empty sets.

    Raises:
        InvalidParameterError: Bad configuration (before any work), or a
            reused table given to count_based or holding a value outside
            [0, 1] (before any draw).
        ValueError: Malformed waypoint records (before any draw).
        InconsistentPlaceKeyError: Reused table missing an exposure place
            (before any draw).
    """
    config = config if config is not None else default_config()
    validate_config(config)
    model = config.infection.infection_model
    p = config.contact.transfer_probability
    sources = frozenset(sources)

    if perf is None:
        perf = PerfMonitor(enabled=config.simulation.track_performance)
    perf.start()

    waypoints = as_waypoints(waypoints)

    with perf.track("window_index"):
        index = build_window_index(waypoints, sources, config.contact.time_width)

    with perf.track("exposure_scan"):
        record = count_exposures(
            waypoints, sources, index, workers=config.simulation.parallel_workers
        )

    with perf.track("statistics"):
        summary = summarize_exposures(record)
        tally = tally_exposures(record)

    if place_probabilities is not None:
        if not model.place_dependent:
            raise InvalidParameterError(
                f"model '{model.value}' does not use a place-probability table"
            )
        validate_place_table(place_probabilities)
        check_place_coverage(record, place_probabilities)

    rngs = create_rng_hierarchy(config.simulation.seed)

    table = None
    if model.place_dependent:
        if place_probabilities is not None:
            table = MappingProxyType(dict(place_probabilities))
        else:
            with perf.track("place_probabilities"):
                if config.infection.resolved_place_universe() is PlaceUniverse.ALL:
                    places = place_ids(waypoints)
                else:
                    places = index.keys()
                table = MappingProxyType(place_probability_table(
                    model, places, p, rngs['place_probabilities']
                ))

    with perf.track("infection_draws"):
        constant = count_based_infections(record, p, rngs['constant_rate'])
        if table is not None:
            infected = variable_rate_infections(record, table, rngs['variable_rate'])
        else:
            infected = constant

    perf.stop()
    logger.info(
        "%d sources led to %d infected targets (%s, %d exposed)",
        len(sources), len(infected), model.value, len(record),
    )

    return SimulationResult(
        model=model,
        sources=sources,
        exposed=record.exposed,
        infected=infected,
        constant_rate_infected=constant if table is not None else None,
        place_probabilities=table,
        exposures=record,
        exposure_tally=tally,
        exposure_summary=summary,
        n_source_waypoints=index.n_source_waypoints,
        n_source_places=len(index),
        timings=perf.summary(),
    )


def run_source_sets(
    waypoints: Iterable,
    source_sets: Iterable[AbstractSet[int]],
    config: Optional[EngineConfig] = None,
) -> List[SimulationResult]:
    """Run alternative source sets against the same waypoints.

    For place-dependent models the place table is drawn once over every
    place in the collection and reused. Infection draws are not shared:
    run i gets its own seed, spawned from `simulation.seed`, so outcomes
    of different source sets are independent yet the batch replays
    exactly for a fixed master seed.
    """
    config = config if config is not None else default_config()
    validate_config(config)
    model = config.infection.infection_model
    waypoints = as_waypoints(waypoints)
    source_sets = list(source_sets)
    run_seeds = spawn_seeds(config.simulation.seed, len(source_sets))

    table = None
    if model.place_dependent:
        rngs = create_rng_hierarchy(config.simulation.seed)
        table = place_probability_table(
            model, place_ids(waypoints),
            config.contact.transfer_probability, rngs['place_probabilities'],
        )

    return [
        run_simulation(
            waypoints, sources, _with_seed(config, seed), place_probabilities=table
        )
        for sources, seed in zip(source_sets, run_seeds)
    ]


def _with_seed(config: EngineConfig, seed: int) -> EngineConfig:
    """Copy of config with a different master seed."""
    return dataclasses.replace(
        config, simulation=dataclasses.replace(config.simulation, seed=seed)
    )
