"""
Holt-Winters 时间序列预测模块

提供乘法季节 Holt-Winters 三次指数平滑算法的实现和参数搜索功能

模块结构:
- _holt_winters: 核心递推、预测与评分 (numba)
- _model: TripleExponentialSmoothing 模型与环形缓冲区状态
- _optimization: 并行网格收缩参数搜索
- _plotting: 预测对比图
- _pipeline: 拟合-训练-预测完整流程

主要功能:
- HW: 一步预测值指标 (vectorbt)
- TripleExponentialSmoothing: 训练与预测
- 参数优化: 自动寻找最优alpha、beta、gamma参数
"""

from hwcast.holt_winters._holt_winters import (
    HW,
    initial_trend,
    initial_seasonal_indices,
    mse,
)

from hwcast.holt_winters._model import (
    HoltWintersState,
    TripleExponentialSmoothing,
)

from hwcast.holt_winters._optimization import (
    DEFAULT_TOLERANCE,
    BestResult,
    FitConfig,
    FitResult,
    SearchRound,
    build_grid,
    fit_parameters,
)

from hwcast.holt_winters._plotting import render_forecast

from hwcast.holt_winters._pipeline import process_hw_forecast

__all__ = [
    # 核心算法
    "HW",
    "HoltWintersState",
    "TripleExponentialSmoothing",
    "initial_trend",
    "initial_seasonal_indices",
    "mse",

    # 优化功能
    "DEFAULT_TOLERANCE",
    "BestResult",
    "FitConfig",
    "FitResult",
    "SearchRound",
    "build_grid",
    "fit_parameters",

    # 输出
    "render_forecast",
    "process_hw_forecast",
]
