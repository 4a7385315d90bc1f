"""
hwcast (Holt-Winters Forecasting) 模块

乘法季节 Holt-Winters 三次指数平滑预测，并行网格搜索自动选择平滑参数

模块结构:
- holt_winters: 递推、预测、评分与参数搜索
- series_data: CSV 序列读取
"""

# 版本信息
__version__ = "0.1.0"
__description__ = "Holt-Winters forecasting with parallel parameter search"
__license__ = "MIT"

# 导入Holt-Winters模块
from hwcast.holt_winters import *

# 导入数据读取
from hwcast.series_data import read_series

# 导入异常类型
from hwcast._utils import (
    ValidationError,
    InvalidPeriodError,
    InvalidParameterError,
    InsufficientDataError,
    InvalidSeriesError,
    InvalidHorizonError,
    NotTrainedError,
    DataLoadError,
    setup_logging,
)

# 定义公开API
__all__ = [
    # 版本信息
    "__version__",
    "__description__",
    "__license__",

    # 核心模块
    "holt_winters",
    "series_data",
    "read_series",
    "setup_logging",

    # 异常
    "ValidationError",
    "InvalidPeriodError",
    "InvalidParameterError",
    "InsufficientDataError",
    "InvalidSeriesError",
    "InvalidHorizonError",
    "NotTrainedError",
    "DataLoadError",
] + holt_winters.__all__
