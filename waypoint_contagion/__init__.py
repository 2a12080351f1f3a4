"""waypoint-contagion: exposure and infection estimates from waypoint logs.

Given waypoints (entity, timestamp, place) and a set of source entities:
  - Contagious windows: each source visit opens [t, t + width) at its place
  - Exposures: non-source visits inside source windows at the same place,
    counted with multiplicity
  - Infections under three contagion models: constant per-contact
    probability, place-dependent log-transform probabilities, and
    place-dependent Beta probabilities
  - Exposure statistics (summary and tally by count)
"""

__version__ = "0.1.0"
