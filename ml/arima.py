"""
Automatic ARIMA Order Selection
================================
Stepwise search over ARIMA(p,d,q)(P,D,Q)[m] models with statsmodels,
minimizing the corrected AIC.

  1. D  — seasonal differencing when STL seasonal strength is high
  2. d  — repeated KPSS tests on the (seasonally differenced) series
  3. (p, q, P, Q, constant) — stepwise neighbourhood search from four
     starting models, moving only on a strictly lower AICc

Seasonal differencing is applied explicitly and undone on the forecast.
Seasonal AR/MA terms are only searched for short seasonal periods; a daily
series with annual seasonality keeps P = Q = 0.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

import config
from models.errors import ModelFitError

logger = logging.getLogger(__name__)

# Neighbour moves in the order they are tried
_MOVES = [(-1, 0), (1, 0), (0, -1), (0, 1), (-1, -1), (1, 1), (-1, 1), (1, -1)]


@dataclass
class ArimaFit:
    """Selected model plus what is needed to forecast on the original scale."""
    order: tuple[int, int, int]
    seasonal_order: tuple[int, int, int, int]
    include_constant: bool
    aicc: float
    result: object                       # statsmodels ARIMAResults
    history: np.ndarray                  # original (undifferenced) series
    candidates_tried: int = 0
    search_log: list = field(default_factory=list)

    @property
    def seasonal_differences(self) -> int:
        return self.seasonal_order[1]

    @property
    def seasonal_period(self) -> int:
        return self.seasonal_order[3]

    def forecast(self, horizon: int) -> dict:
        """
        Point forecast and 80% / 95% prediction intervals.

        Returns dict of arrays: point, lower_80, upper_80, lower_95, upper_95.
        """
        m = self.seasonal_period
        if self.seasonal_differences and horizon > m:
            raise ValueError(
                f"Horizon {horizon} exceeds the seasonal period {m} of a seasonally differenced model"
            )

        fcast = self.result.get_forecast(steps=horizon)
        point = np.asarray(fcast.predicted_mean, dtype=float)
        ci_80 = np.asarray(fcast.conf_int(alpha=0.20), dtype=float)
        ci_95 = np.asarray(fcast.conf_int(alpha=0.05), dtype=float)

        # Undo y_t - y_{t-m}: every step within one season adds a known observation
        if self.seasonal_differences:
            T = len(self.history)
            base = self.history[T - m:T - m + horizon]
        else:
            base = np.zeros(horizon)

        return {
            "point": point + base,
            "lower_80": ci_80[:, 0] + base,
            "upper_80": ci_80[:, 1] + base,
            "lower_95": ci_95[:, 0] + base,
            "upper_95": ci_95[:, 1] + base,
        }


# ══════════════════════════════════════════════════════════
#  Differencing Tests
# ══════════════════════════════════════════════════════════

def _is_constant(x: np.ndarray) -> bool:
    return len(x) == 0 or bool(np.all(x == x[0]))


def seasonal_strength(y: np.ndarray, period: int) -> float:
    """STL seasonal strength: max(0, 1 - Var(remainder) / Var(seasonal + remainder))."""
    from statsmodels.tsa.seasonal import STL

    decomposition = STL(y, period=period).fit()
    remainder = np.asarray(decomposition.resid)
    detrended = np.asarray(decomposition.seasonal) + remainder
    denominator = np.var(detrended)
    if denominator <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(remainder) / denominator))


def seasonal_differences(
    y: np.ndarray,
    period: int,
    horizon: int,
    threshold: float = None,
) -> int:
    """0 or 1 seasonal differences for the series."""
    threshold = threshold or config.ARIMA_SEARCH["seasonal_strength"]
    if period <= 1 or len(y) < 2 * period + 1 or horizon > period:
        return 0
    try:
        strength = seasonal_strength(y, period)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug(f"STL decomposition failed: {e}")
        return 0
    logger.debug(f"Seasonal strength (m={period}): {strength:.3f}")
    return int(strength > threshold)


def ndiffs(y: np.ndarray, alpha: float = None, max_d: int = None) -> int:
    """Number of first differences needed for KPSS level stationarity."""
    from statsmodels.tsa.stattools import kpss

    alpha = alpha or config.ARIMA_SEARCH["kpss_alpha"]
    max_d = max_d if max_d is not None else config.ARIMA_SEARCH["max_d"]

    d = 0
    x = np.asarray(y, dtype=float)
    while d < max_d and len(x) > 3 and not _is_constant(x):
        nlags = max(1, int(4 * (len(x) / 100) ** 0.25))
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            _, pvalue, _, _ = kpss(x, regression="c", nlags=nlags)
        if pvalue >= alpha:
            break
        x = np.diff(x)
        d += 1
    return d


# ══════════════════════════════════════════════════════════
#  Candidate Fitting
# ══════════════════════════════════════════════════════════

def _fit_candidate(z: np.ndarray, p: int, d: int, q: int, P: int, Q: int, m: int,
                   constant: bool) -> tuple[float, Optional[object]]:
    """Fit one candidate; failures score +inf."""
    from statsmodels.tsa.arima.model import ARIMA

    trend = None
    if constant:
        trend = "c" if d == 0 else "t"   # with d = 1 a linear trend term is a drift
    seasonal_order = (P, 0, Q, m) if (P or Q) else (0, 0, 0, 0)

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            result = ARIMA(z, order=(p, d, q), seasonal_order=seasonal_order, trend=trend).fit()
    except (ValueError, np.linalg.LinAlgError, IndexError) as e:
        logger.debug(f"ARIMA({p},{d},{q})({P},0,{Q}) constant={constant} failed: {e}")
        return float("inf"), None

    aicc = float(result.aicc)
    if not np.isfinite(aicc):
        return float("inf"), None
    return aicc, result


# ══════════════════════════════════════════════════════════
#  Stepwise Search
# ══════════════════════════════════════════════════════════

def auto_arima(
    y,
    seasonal_period: int = None,
    horizon: int = None,
    max_p: int = None,
    max_q: int = None,
    max_P: int = None,
    max_Q: int = None,
    max_order: int = None,
    max_d: int = None,
    max_steps: int = None,
) -> ArimaFit:
    """
    Select and fit an ARIMA model by stepwise AICc minimization.

    Raises ModelFitError for constant, too short or non-finite series and
    when no candidate model can be fitted.
    """
    search = config.ARIMA_SEARCH
    seasonal_period = seasonal_period if seasonal_period is not None else config.SEASONAL_PERIOD
    horizon = horizon or config.FORECAST_HORIZON
    max_p = max_p if max_p is not None else search["max_p"]
    max_q = max_q if max_q is not None else search["max_q"]
    max_P = max_P if max_P is not None else search["max_P"]
    max_Q = max_Q if max_Q is not None else search["max_Q"]
    max_order = max_order if max_order is not None else search["max_order"]
    max_steps = max_steps if max_steps is not None else search["max_steps"]

    y = np.asarray(y, dtype=float)
    if len(y) < search["min_observations"]:
        raise ModelFitError(f"Series has {len(y)} observations, need {search['min_observations']}")
    if not np.all(np.isfinite(y)):
        raise ModelFitError("Series contains missing or infinite values")
    if _is_constant(y):
        raise ModelFitError("Series is constant")

    m = max(int(seasonal_period), 1)

    # ── Differencing ──
    D = seasonal_differences(y, m, horizon)
    z = y[m:] - y[:-m] if D else y
    if _is_constant(z):
        raise ModelFitError("Series is constant after seasonal differencing")
    d = ndiffs(z, max_d=max_d)

    seasonal_terms = (
        m > 1
        and m <= search["max_seasonal_terms_period"]
        and len(z) >= 2 * m
    )
    if not seasonal_terms:
        max_P = max_Q = 0
    allow_constant = d + D <= 1

    cache: dict[tuple, tuple[float, Optional[object]]] = {}
    search_log = []

    def evaluate(p, q, P, Q, constant):
        key = (p, q, P, Q, constant)
        if key not in cache:
            cache[key] = _fit_candidate(z, p, d, q, P, Q, m, constant)
            search_log.append((key, cache[key][0]))
            logger.debug(f"  ARIMA({p},{d},{q})({P},{D},{Q})[{m}] c={constant}: AICc={cache[key][0]:.2f}")
        return cache[key][0]

    def admissible(p, q, P, Q):
        return (
            0 <= p <= max_p and 0 <= q <= max_q
            and 0 <= P <= max_P and 0 <= Q <= max_Q
            and p + q + P + Q <= max_order
        )

    # ── Starting models ──
    s1 = 1 if seasonal_terms else 0
    starts = [
        (min(2, max_p), min(2, max_q), s1 and min(1, max_P), s1 and min(1, max_Q), allow_constant),
        (0, 0, 0, 0, allow_constant),
        (min(1, max_p), 0, s1 and min(1, max_P), 0, allow_constant),
        (0, min(1, max_q), 0, s1 and min(1, max_Q), allow_constant),
    ]
    if allow_constant:
        starts.append((0, 0, 0, 0, False))

    best_key, best_aicc = None, float("inf")
    for key in starts:
        if not admissible(*key[:4]):
            continue
        aicc = evaluate(*key)
        if aicc < best_aicc:
            best_key, best_aicc = key, aicc

    # ── Neighbourhood moves ──
    while best_key is not None and len(cache) < max_steps:
        p, q, P, Q, constant = best_key
        neighbours = []
        if seasonal_terms:
            neighbours += [(p, q, P + dP, Q + dQ, constant) for dP, dQ in _MOVES]
        neighbours += [(p + dp, q + dq, P, Q, constant) for dp, dq in _MOVES]
        if allow_constant:
            neighbours.append((p, q, P, Q, not constant))

        improved = False
        for key in neighbours:
            if not admissible(*key[:4]) or key in cache:
                continue
            if len(cache) >= max_steps:
                break
            aicc = evaluate(*key)
            if aicc < best_aicc:
                best_key, best_aicc = key, aicc
                improved = True
                break
        if not improved:
            break

    if best_key is None or not np.isfinite(best_aicc):
        raise ModelFitError(f"No ARIMA candidate converged ({len(cache)} tried)")

    p, q, P, Q, constant = best_key
    fit = ArimaFit(
        order=(p, d, q),
        seasonal_order=(P, D, Q, m),
        include_constant=constant,
        aicc=best_aicc,
        result=cache[best_key][1],
        history=y,
        candidates_tried=len(cache),
        search_log=search_log,
    )
    logger.info(
        f"Selected ARIMA({p},{d},{q})({P},{D},{Q})[{m}]"
        f"{' with constant' if constant else ''} "
        f"AICc={best_aicc:.1f} after {len(cache)} fits"
    )
    return fit
