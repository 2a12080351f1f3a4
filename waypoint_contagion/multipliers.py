"""Scale factors for the log-transform place-probability model.

A place's infection probability is 1 / (1 + bZ) with Z ~ Exponential(1),
equivalently 1 / (1 − b·ln U) with U ~ Uniform(0, 1). Its mean is

    m(b) = E[1 / (1 + bZ)] = x · eˣ · E₁(x),    x = 1/b

where E₁ is the exponential integral (an upper incomplete Gamma function,
Γ(0, x)). MULTIPLIERS[j−1] is the root b of m(b) = j/200 for j = 1..200;
a target mean p uses row ceil(200·p) − 1, i.e. p rounded up to the grid.
The last row (p = 1) is the degenerate b = 0.

`solve_multiplier` regenerates any row numerically; the tests check the
table against it.
"""

from __future__ import annotations

import math

import numpy as np
from scipy import optimize, special

TABLE_RESOLUTION = 200

MULTIPLIERS = np.array([
    1323.28, 579.701, 353.99, 248.013, 187.466, 148.714, 121.994, 102.572,
    87.8874, 76.4401, 67.2961, 59.8446, 53.6707, 48.4828, 44.0706, 40.2787,
    36.9899, 34.1144, 31.5821, 29.3377, 27.3369, 25.5439, 23.9294, 22.4693,
    21.1436, 19.9356, 18.8309, 17.8176, 16.8854, 16.0255, 15.2302, 14.493,
    13.8081, 13.1705, 12.5756, 12.0197, 11.4992, 11.0111, 10.5527, 10.1215,
    9.71524, 9.33207, 8.97017, 8.62795, 8.30396, 7.99688, 7.70551, 7.42878,
    7.16569, 6.91533, 6.67686, 6.44954, 6.23265, 6.02555, 5.82765, 5.6384,
    5.45728, 5.28384, 5.11762, 4.95824, 4.80531, 4.65849, 4.51744, 4.38187,
    4.25148, 4.12602, 4.00524, 3.88891, 3.7768, 3.66871, 3.56446, 3.46386,
    3.36673, 3.27294, 3.18231, 3.09471, 3.01001, 2.92808, 2.8488, 2.77205,
    2.69774, 2.62576, 2.55601, 2.4884, 2.42285, 2.35928, 2.2976, 2.23775,
    2.17965, 2.12323, 2.06844, 2.01521, 1.96348, 1.9132, 1.86432, 1.81679,
    1.77055, 1.72557, 1.6818, 1.63919, 1.59771, 1.55732, 1.51798, 1.47966,
    1.44232, 1.40594, 1.37047, 1.3359, 1.30219, 1.26931, 1.23725, 1.20596,
    1.17544, 1.14565, 1.11658, 1.0882, 1.06049, 1.03344, 1.00701, 0.981206,
    0.955994, 0.931362, 0.907292, 0.88377, 0.860779, 0.838305, 0.816333,
    0.79485, 0.773842, 0.753297, 0.733202, 0.713545, 0.694314, 0.675499,
    0.657087, 0.63907, 0.621436, 0.604176, 0.58728, 0.57074, 0.554545,
    0.538688, 0.52316, 0.507954, 0.49306, 0.478472, 0.464183, 0.450184,
    0.43647, 0.423033, 0.409866, 0.396965, 0.384322, 0.371931, 0.359787,
    0.347884, 0.336217, 0.32478, 0.313568, 0.302576, 0.2918, 0.281234,
    0.270874, 0.260715, 0.250754, 0.240986, 0.231407, 0.222012, 0.212799,
    0.203763, 0.1949, 0.186207, 0.177681, 0.169318, 0.161115, 0.153069,
    0.145176, 0.137434, 0.12984, 0.12239, 0.115082, 0.107913, 0.100881,
    0.0939831, 0.0872166, 0.0805792, 0.0740686, 0.0676823, 0.0614183,
    0.0552743, 0.0492482, 0.043338, 0.0375416, 0.0318572, 0.0262828,
    0.0208166, 0.0154569, 0.010202, 0.00505025, 0.0,
])
MULTIPLIERS.setflags(write=False)

# Above this x = 1/b, eˣ overflows; use the asymptotic series instead.
_ASYMPTOTIC_X = 500.0


def table_row(p: float) -> int:
    """Row of MULTIPLIERS used for target mean p in (0, 1]."""
    if not (0.0 < p <= 1.0):
        raise ValueError(f"target mean must be in (0, 1], got {p}")
    # 0.07 * 200 == 14.000000000000002; snap before taking the ceiling.
    grid = round(TABLE_RESOLUTION * p, 9)
    return max(math.ceil(grid), 1) - 1


def multiplier_for(p: float) -> float:
    """Tabulated scale factor b for target mean p in (0, 1]."""
    return float(MULTIPLIERS[table_row(p)])


def mean_inverse_shifted_exponential(b: float) -> float:
    """m(b) = E[1 / (1 + bZ)], Z ~ Exponential(1). Decreasing in b."""
    if b < 0:
        raise ValueError(f"scale factor must be >= 0, got {b}")
    if b == 0:
        return 1.0
    x = 1.0 / b
    if x > _ASYMPTOTIC_X:
        return 1.0 - 1.0 / x + 2.0 / x**2 - 6.0 / x**3 + 24.0 / x**4
    return float(x * np.exp(x) * special.exp1(x))


def solve_multiplier(p: float, b_min: float = 1e-4, b_max: float = 1e7) -> float:
    """Root b of m(b) = p, found with Brent's method.

    Raises:
        ValueError: If p is outside (0, 1] or the root is not bracketed
            by [b_min, b_max].
    """
    if not (0.0 < p <= 1.0):
        raise ValueError(f"target mean must be in (0, 1], got {p}")
    if p == 1.0:
        return 0.0
    lo, hi = mean_inverse_shifted_exponential(b_max), mean_inverse_shifted_exponential(b_min)
    if not (lo <= p <= hi):
        raise ValueError(
            f"target mean {p} not bracketed by b in [{b_min}, {b_max}] "
            f"(means [{lo:.3g}, {hi:.6g}])"
        )
    return float(optimize.brentq(
        lambda b: mean_inverse_shifted_exponential(b) - p, b_min, b_max,
        xtol=1e-12, rtol=1e-10,
    ))
