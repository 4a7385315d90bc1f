import logging
import numbers
from typing import Optional

import numpy as np
import pandas as pd

from hwcast.holt_winters._model import TripleExponentialSmoothing
from hwcast.holt_winters._optimization import DEFAULT_TOLERANCE, FitConfig
from hwcast.holt_winters._plotting import render_forecast
from hwcast._utils import InvalidParameterError, setup_logging, validate_period

logger = logging.getLogger(__name__)


def process_hw_forecast(data, period: int, tolerance: float = DEFAULT_TOLERANCE,
                        fit_window: Optional[int] = None, output_path=None,
                        config: Optional[FitConfig] = None, log_level=None) -> dict:
    """
    完整的拟合-训练-预测流程

    1. 在前 fit_window 个点（默认全部训练数据）上搜索最优参数
    2. 用最优参数在除最后一个周期外的全部数据上训练
    3. 预测最后一个周期，并与留出的实际值比较
    4. 若给出 output_path，绘制对比图

    参数:
        data: 序列，list / numpy数组 / pandas Series
        period: 季节周期长度
        tolerance: 参数搜索容差
        fit_window: 参数搜索使用的点数
        output_path: 对比图输出路径
        config: 参数搜索配置
        log_level: 设置后初始化日志

    返回:
        dict，包含最优参数、拟合 MSE、留出 MSE、预测值和实际值
    """
    if log_level is not None:
        setup_logging(log_level)

    period = validate_period(period)
    values = data.to_numpy(dtype=np.float64) if isinstance(data, pd.Series) else np.asarray(data, dtype=np.float64)
    train_values = values[:-period]
    if fit_window is None:
        fit_window = len(train_values)
    elif (isinstance(fit_window, bool) or not isinstance(fit_window, numbers.Integral)
          or not (2 * period <= fit_window <= len(train_values))):
        raise InvalidParameterError(
            f"fit_window must be an integer in [{2 * period}, {len(train_values)}]: {fit_window!r}",
            field="fit_window", value=fit_window
        )
    actual = values[-period:]

    model = TripleExponentialSmoothing(period)
    model.fit(train_values[:fit_window], tolerance=tolerance, config=config)
    # 每个预测值从 i = N - m + k 向前推 m 步，正好覆盖留出的最后一个周期
    model.train(train_values, model.alpha, model.beta, model.gamma)
    prediction = model.forecast(period)
    holdout_mse = float(np.mean((actual - prediction) ** 2))

    if output_path is not None:
        render_forecast(actual, prediction, output_path,
                        title=f'Holt-Winters Forecast (period={period})')
        logger.info(f"Forecast plot saved to: {output_path}")

    logger.info(f"Forecast complete: alpha={model.alpha:.6f}, beta={model.beta:.6f}, "
                f"gamma={model.gamma:.6f}, fit mse={model.mse:.6f}, holdout mse={holdout_mse:.6f}")

    return {
        'period': period,
        'data_points': len(values),
        'alpha': model.alpha,
        'beta': model.beta,
        'gamma': model.gamma,
        'fit_mse': model.mse,
        'holdout_mse': holdout_mse,
        'forecast': prediction,
        'actual': actual,
        'rounds': len(model.fit_result.rounds),
    }
