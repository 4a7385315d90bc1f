import logging
from typing import Optional

import numpy as np

from hwcast.holt_winters._holt_winters import hw_forecast_nb, hw_train_nb, mse_nb
from hwcast.holt_winters._optimization import DEFAULT_TOLERANCE, FitConfig, FitResult, fit_parameters
from hwcast._utils import (
    InvalidSeriesError,
    NotTrainedError,
    validate_horizon,
    validate_period,
    validate_scoring_length,
    validate_series,
    validate_smoothing_param,
)

logger = logging.getLogger(__name__)


class HoltWintersState:
    """
    环形缓冲区中的平滑状态

    容量为 2 * period，时间步 t 存放在 t % capacity。训练结束后只能读取
    最近 capacity 个时间步的 level/trend，更早的历史已被覆盖且无法恢复。
    """

    def __init__(self, period: int):
        self.period = period
        self.capacity = 2 * period
        self.level = np.zeros(self.capacity, dtype=np.float64)
        self.trend = np.zeros(self.capacity, dtype=np.float64)
        self.seasonal = np.zeros(self.capacity, dtype=np.float64)
        self.length = 0

    def _slot(self, t: int) -> int:
        # level/trend 从时间步 1 开始
        start = max(1, self.length - self.capacity)
        if not (start <= t < self.length):
            raise IndexError(f"Timestep {t} is outside the retained window [{start}, {self.length})")
        return t % self.capacity

    def level_at(self, t: int) -> float:
        return float(self.level[self._slot(t)])

    def trend_at(self, t: int) -> float:
        return float(self.trend[self._slot(t)])

    def seasonal_at(self, t: int) -> float:
        """季节因子只保留最近一个周期"""
        if not (max(0, self.length - self.period) <= t < self.length):
            raise IndexError(
                f"Timestep {t} is outside the retained seasonal window "
                f"[{max(0, self.length - self.period)}, {self.length})"
            )
        return float(self.seasonal[t % self.capacity])

    def __repr__(self):
        return f"HoltWintersState(period={self.period}, capacity={self.capacity}, length={self.length})"


class TripleExponentialSmoothing:
    """
    乘法季节的 Holt-Winters 三次指数平滑

    用法:
        model = TripleExponentialSmoothing(period=4)
        model.fit(train)                                   # 搜索最优参数
        model.train(series, model.alpha, model.beta, model.gamma)
        model.forecast(4)
    """

    def __init__(self, period: int):
        self._period = validate_period(period)
        self._state: Optional[HoltWintersState] = None
        self._fitted: Optional[np.ndarray] = None
        self.alpha: Optional[float] = None
        self.beta: Optional[float] = None
        self.gamma: Optional[float] = None
        self.mse: Optional[float] = None
        self.fit_result: Optional[FitResult] = None

    @property
    def period(self) -> int:
        return self._period

    @property
    def is_trained(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> HoltWintersState:
        self._check_trained()
        return self._state

    def _check_trained(self):
        if self._state is None:
            raise NotTrainedError("Model must be trained before forecasting; call train() first")

    def train(self, series, alpha: float, beta: float, gamma: float) -> None:
        """
        在整个序列上重新计算平滑状态，覆盖之前的训练结果

        Args:
            series: 训练序列，长度至少为 2 * period
            alpha: 水平平滑参数
            beta: 季节平滑参数
            gamma: 趋势平滑参数
        """
        y = validate_series(series, self._period)
        alpha = validate_smoothing_param(alpha, "alpha")
        beta = validate_smoothing_param(beta, "beta")
        gamma = validate_smoothing_param(gamma, "gamma")

        state = HoltWintersState(self._period)
        fitted = np.empty(len(y), dtype=np.float64)
        hw_train_nb(y, alpha, beta, gamma, self._period, state.level, state.trend, state.seasonal, fitted)
        state.length = len(y)

        self._state = state
        self._fitted = fitted
        logger.debug(f"Trained period={self._period} on {len(y)} points: "
                     f"alpha={alpha}, beta={beta}, gamma={gamma}")

    def forecast(self, horizon: int) -> np.ndarray:
        """
        预测训练序列之后的 horizon 个值

        第 k 个值由时间步 N - horizon + k 的状态向前推 horizon 步得到，
        horizon 必须在 [1, period] 之内。
        """
        self._check_trained()
        horizon = validate_horizon(horizon, self._period)
        state = self._state
        return hw_forecast_nb(state.level, state.trend, state.seasonal, state.length, self._period, horizon)

    def fitted_values(self) -> np.ndarray:
        """最近一次训练的一步预测值，无预测的位置为 NaN"""
        self._check_trained()
        return self._fitted.copy()

    def score(self, series) -> float:
        """最近一次训练的一步预测相对 series 的 MSE"""
        self._check_trained()
        y = validate_series(series, self._period)
        if len(y) != self._state.length:
            raise InvalidSeriesError(
                f"Series length {len(y)} does not match trained length {self._state.length}",
                field="series", value=len(y)
            )
        validate_scoring_length(len(y), self._period)
        return float(mse_nb(y, self._fitted, self._period))

    def fit(self, series, tolerance: float = DEFAULT_TOLERANCE, config: Optional[FitConfig] = None) -> FitResult:
        """
        搜索最优平滑参数并保存在模型上

        不会生成可用于预测的状态，之后需要用最优参数重新调用 train()。
        """
        result = fit_parameters(series, self._period, tolerance, config)
        self.alpha, self.beta, self.gamma, self.mse = result
        self.fit_result = result
        self._state = None
        self._fitted = None
        return result

    def __repr__(self):
        return (f"TripleExponentialSmoothing(period={self._period}, alpha={self.alpha}, "
                f"beta={self.beta}, gamma={self.gamma}, mse={self.mse})")
