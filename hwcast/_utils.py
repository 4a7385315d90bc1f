from typing import Any, Optional
import logging
import math
import numbers

import numpy as np


def setup_logging(level=logging.INFO):
    """设置日志"""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )
    return logging.getLogger("hwcast")


def validate_period(period: Any) -> int:
    """
    验证季节周期长度

    Args:
        period: 周期长度输入

    Returns:
        验证后的周期长度

    Raises:
        InvalidPeriodError: 周期不是正整数时抛出
    """
    if isinstance(period, bool) or not isinstance(period, numbers.Integral):
        raise InvalidPeriodError(f"Period must be an integer: {period!r}", field="period", value=period)
    if period < 1:
        raise InvalidPeriodError(f"Period must be >= 1: {period}", field="period", value=period)
    return int(period)


def validate_series(series: Any, period: int) -> np.ndarray:
    """
    验证训练序列，转换为 float64 一维数组

    Args:
        series: list、numpy数组或pandas Series
        period: 季节周期长度

    Returns:
        连续存储的 float64 数组

    Raises:
        InvalidSeriesError: 非一维或包含 NaN/inf
        InsufficientDataError: 序列为空
        InvalidPeriodError: 长度小于 2 * period
    """
    try:
        y = np.ascontiguousarray(np.asarray(series, dtype=np.float64))
    except (TypeError, ValueError) as e:
        raise InvalidSeriesError(f"Series must be numeric: {e}", field="series")
    if y.ndim != 1:
        raise InvalidSeriesError(f"Series must be 1-dimensional, got {y.ndim} dimensions", field="series")
    if y.size == 0:
        raise InsufficientDataError("Series cannot be empty", field="series")
    if not np.all(np.isfinite(y)):
        raise InvalidSeriesError("Series must not contain NaN or inf", field="series")
    if y.size < 2 * period:
        raise InvalidPeriodError(
            f"Series length {y.size} must be at least 2 * period ({2 * period})",
            field="period", value=period
        )
    return y


def validate_scoring_length(n: int, period: int) -> None:
    """MSE 从 L+2 开始累计，至少需要一个点"""
    if n <= period + 2:
        raise InsufficientDataError(
            f"Series length {n} must exceed period + 2 ({period + 2}) to compute an MSE",
            field="series", value=n
        )


def validate_smoothing_param(value: Any, name: str) -> float:
    """
    验证平滑参数在 [0, 1] 之内

    Raises:
        InvalidParameterError: 非有限数值或超出范围
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} must be a number: {value!r}", field=name, value=value)
    if not math.isfinite(value) or not (0.0 <= value <= 1.0):
        raise InvalidParameterError(f"{name} must be in [0, 1]: {value}", field=name, value=value)
    return value


def validate_tolerance(tolerance: Any) -> float:
    try:
        tolerance = float(tolerance)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"tolerance must be a number: {tolerance!r}", field="tolerance", value=tolerance)
    if not math.isfinite(tolerance) or tolerance <= 0:
        raise InvalidParameterError(f"tolerance must be positive: {tolerance}", field="tolerance", value=tolerance)
    return tolerance


def validate_horizon(horizon: Any, period: int) -> int:
    """
    验证预测步长，只允许 1 <= horizon <= period

    超过一个周期会读到已被覆盖的环形缓冲区位置
    """
    if isinstance(horizon, bool) or not isinstance(horizon, numbers.Integral):
        raise InvalidHorizonError(f"Horizon must be an integer: {horizon!r}", field="horizon", value=horizon)
    if not (1 <= horizon <= period):
        raise InvalidHorizonError(
            f"Horizon must be in [1, {period}]: {horizon}", field="horizon", value=horizon
        )
    return int(horizon)


class ValidationError(ValueError):
    """数据验证异常"""
    def __init__(self, message: str, field: Optional[str] = None, value=None):
        super().__init__(message)
        self.field = field
        self.value = value


class InvalidPeriodError(ValidationError):
    """周期非法，或序列不足两个周期"""


class InvalidParameterError(ValidationError):
    """平滑参数、容差或搜索配置非法"""


class InsufficientDataError(ValidationError):
    """数据量不足以计算 MSE"""


class InvalidSeriesError(ValidationError):
    """序列不是有限数值的一维数组"""


class InvalidHorizonError(ValidationError):
    """预测步长超出可用的缓冲区窗口"""


class NotTrainedError(RuntimeError):
    """模型尚未训练"""


class DataLoadError(Exception):
    """数据读取异常"""
    def __init__(self, message: str, path: str = None, column=None):
        super().__init__(message)
        self.path = path
        self.column = column
