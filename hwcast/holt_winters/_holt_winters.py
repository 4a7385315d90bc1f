from numba import njit
import numpy as np
from vectorbt import _typing as tp
from vectorbt.indicators.factory import IndicatorFactory

from hwcast._utils import InvalidSeriesError, validate_period, validate_scoring_length, validate_series

# Multiplicative Holt-Winters, see
# http://www.itl.nist.gov/div898/handbook/pmc/section4/pmc435.htm
#
# st[i] = alpha * y[i] / it[i - L] + (1 - alpha) * (st[i - 1] + bt[i - 1])
# bt[i] = gamma * (st[i] - st[i - 1]) + (1 - gamma) * bt[i - 1]
# it[i] = beta * y[i] / st[i] + (1 - beta) * it[i - L]
# ft[i + m] = (st[i] + m * bt[i]) * it[i - L + m]
#
# st/bt/it live in ring buffers of size 2 * L indexed by i % (2 * L).


@njit(cache=True, nogil=True)
def initial_trend_nb(y: tp.Array1d, l: int) -> float:
    """Average first difference across one seasonal lag."""
    total = 0.0
    for i in range(l):
        total += y[l + i] - y[i]
    return total / float(l * l)


@njit(cache=True, nogil=True, error_model="numpy")
def initial_seasonal_indices_nb(y: tp.Array1d, l: int) -> tp.Array1d:
    """
    One multiplicative seasonal factor per phase.

    Every full cycle is averaged, each observation is divided by its cycle
    average and the normalized values are averaged per phase. A cycle whose
    average is zero yields inf/nan factors.
    """
    seasons = len(y) // l
    seasonal_average = np.zeros(seasons, dtype=np.float64)
    for i in range(seasons):
        for j in range(l):
            seasonal_average[i] += y[i * l + j]
        seasonal_average[i] /= float(l)

    indices = np.zeros(l, dtype=np.float64)
    for i in range(l):
        for j in range(seasons):
            indices[i] += y[j * l + i] / seasonal_average[j]
        indices[i] /= float(seasons)
    return indices


@njit(cache=True, nogil=True, error_model="numpy")
def hw_train_nb(y: tp.Array1d,
                alpha: float,
                beta: float,
                gamma: float,
                l: int,
                st: tp.Array1d,
                bt: tp.Array1d,
                it: tp.Array1d,
                fitted: tp.Array1d) -> None:
    """
    Run the recurrence over `y`, overwriting the ring buffers in place.

    `fitted[i]` receives the one-step-ahead prediction made from step i - 1,
    NaN where no prediction exists yet (i < max(L, 2)).
    """
    n = len(y)
    size = st.shape[0]
    st[:] = 0.0
    bt[:] = 0.0
    it[:] = 0.0
    fitted[:] = np.nan

    st[1] = y[0]
    bt[1] = initial_trend_nb(y, l)
    it[:l] = initial_seasonal_indices_nb(y, l)
    # with L == 1 step 1 is a seasonal step the loop never visits
    for i in range(l, 2):
        it[i % size] = it[(i - l) % size]

    for i in range(2, n):
        prev = (i - 1) % size
        cur = i % size

        if i >= l:
            fitted[i] = (st[prev] + bt[prev]) * it[(i - l) % size]

        # overall smoothing
        if i >= l:
            st[cur] = alpha * y[i] / it[(i - l) % size] + (1.0 - alpha) * (st[prev] + bt[prev])
        else:
            st[cur] = alpha * y[i] + (1.0 - alpha) * (st[prev] + bt[prev])

        # trend smoothing
        bt[cur] = gamma * (st[cur] - st[prev]) + (1.0 - gamma) * bt[prev]

        # seasonal smoothing
        if i >= l:
            it[cur] = beta * y[i] / st[cur] + (1.0 - beta) * it[(i - l) % size]


@njit(cache=True, nogil=True, error_model="numpy")
def hw_forecast_nb(st: tp.Array1d,
                   bt: tp.Array1d,
                   it: tp.Array1d,
                   n: int,
                   l: int,
                   m: int) -> tp.Array1d:
    """Project `m` steps from the state retained after training on `n` points."""
    size = st.shape[0]
    ft = np.empty(m, dtype=np.float64)
    for k in range(m):
        i = n + k - m
        ft[k] = (st[i % size] + float(m) * bt[i % size]) * it[(i - l + m) % size]
    return ft


@njit(cache=True, nogil=True, error_model="numpy")
def mse_nb(actual: tp.Array1d, predicted: tp.Array1d, l: int) -> float:
    """Mean squared error over indices L + 2 .. N - 1."""
    n = len(actual)
    total = 0.0
    for i in range(l + 2, n):
        diff = actual[i] - predicted[i]
        total += diff * diff
    return total / float(n - l - 2)


@njit(cache=True, nogil=True, error_model="numpy")
def hw_trial_mse_nb(y: tp.Array1d, l: int, alpha: float, beta: float, gamma: float) -> float:
    """Train on trial-local buffers and score the one-step-ahead predictions."""
    size = 2 * l
    st = np.zeros(size, dtype=np.float64)
    bt = np.zeros(size, dtype=np.float64)
    it = np.zeros(size, dtype=np.float64)
    fitted = np.empty(len(y), dtype=np.float64)
    hw_train_nb(y, alpha, beta, gamma, l, st, bt, it, fitted)
    return mse_nb(y, fitted, l)


@njit(cache=True, nogil=True, error_model="numpy")
def hw_grid_mse_nb(y: tp.Array1d, l: int, params: tp.Array2d) -> tp.Array1d:
    """Score every (alpha, beta, gamma) row of `params`."""
    out = np.empty(params.shape[0], dtype=np.float64)
    for k in range(params.shape[0]):
        out[k] = hw_trial_mse_nb(y, l, params[k, 0], params[k, 1], params[k, 2])
    return out


@njit(cache=True, error_model="numpy")
def holt_winters_fitted_1d_nb(a: tp.Array1d,
                              alpha: float,
                              beta: float,
                              gamma: float,
                              period: int) -> tp.Array1d:
    """
    One-step-ahead fitted values of the multiplicative model.

    Parameters
    ----------
    a : 1d array
        Input series, finite values only.
    alpha, beta, gamma : float in [0, 1]
        Level / seasonal / trend smoothing parameters.
    period : int
        Season length.

    Returns
    -------
    fitted : 1d array
        Same length as `a`, NaN until the first prediction is available.
    """
    if period < 1:
        raise ValueError("period must be >= 1")
    if len(a) < 2 * period:
        raise ValueError("Data length must be at least 2 * period")
    if not (0.0 <= alpha <= 1.0):
        raise ValueError("alpha must be in [0, 1]")
    if not (0.0 <= beta <= 1.0):
        raise ValueError("beta must be in [0, 1]")
    if not (0.0 <= gamma <= 1.0):
        raise ValueError("gamma must be in [0, 1]")

    size = 2 * period
    st = np.zeros(size, dtype=np.float64)
    bt = np.zeros(size, dtype=np.float64)
    it = np.zeros(size, dtype=np.float64)
    fitted = np.empty(len(a), dtype=np.float64)
    hw_train_nb(a.astype(np.float64), alpha, beta, gamma, period, st, bt, it, fitted)
    return fitted


@njit(cache=True)
def holt_winters_fitted_nb(a: tp.Array2d,
                           alpha: float,
                           beta: float,
                           gamma: float,
                           period: int) -> tp.Array2d:
    """2-dim version of `holt_winters_fitted_1d_nb`."""
    out = np.empty(a.shape, dtype=np.float64)
    for col in range(a.shape[1]):
        out[:, col] = holt_winters_fitted_1d_nb(a[:, col], alpha, beta, gamma, period)
    return out


@njit(cache=True)
def hw_apply_nb(close: tp.Array2d, alpha: float, beta: float, gamma: float, period: int) -> tp.Array2d:
    """Apply function for the Holt-Winters indicator."""
    return holt_winters_fitted_nb(close, alpha, beta, gamma, period)


HW = IndicatorFactory(
    class_name='HW',
    module_name=__name__,
    short_name='hw',
    input_names=['close'],
    param_names=['alpha', 'beta', 'gamma', 'period'],
    output_names=['hw']
).from_apply_func(
    hw_apply_nb
)


def initial_trend(series, period: int) -> float:
    """Seed trend estimated from the first two seasonal cycles."""
    period = validate_period(period)
    y = validate_series(series, period)
    return float(initial_trend_nb(y, period))


def initial_seasonal_indices(series, period: int) -> tp.Array1d:
    """Seed multiplicative seasonal factors, one per phase."""
    period = validate_period(period)
    y = validate_series(series, period)
    return initial_seasonal_indices_nb(y, period)


def mse(actual, predicted, period: int) -> float:
    """
    Mean squared error of `predicted` against `actual` from index period + 2 on.

    Entries before period + 2 are ignored and may be NaN.
    """
    period = validate_period(period)
    actual = np.asarray(actual, dtype=np.float64)
    predicted = np.asarray(predicted, dtype=np.float64)
    if actual.ndim != 1 or actual.shape != predicted.shape:
        raise InvalidSeriesError(f"actual and predicted must be 1-dimensional with equal length: "
                                 f"{actual.shape} != {predicted.shape}",
                                 field="predicted", value=predicted.shape)
    validate_scoring_length(len(actual), period)
    return float(mse_nb(actual, predicted, period))
