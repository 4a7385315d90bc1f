"""
时间序列数据读取

从 CSV 文件中读取一列数值作为训练序列
"""

import logging
from typing import Union

import numpy as np
import pandas as pd

from hwcast._utils import DataLoadError

logger = logging.getLogger(__name__)


def read_series(path, column: Union[int, str] = 1, header: Union[int, None] = 0) -> np.ndarray:
    """
    读取 CSV 中的一列为 float64 数组

    Args:
        path: CSV 文件路径
        column: 列序号或列名，默认第二列（第一列通常为时间戳）
        header: 表头所在行，None 表示没有表头

    Returns:
        按文件顺序排列的 float64 数组

    Raises:
        DataLoadError: 文件无法读取、列不存在或包含非数值
    """
    try:
        df = pd.read_csv(path, header=header)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataLoadError(f"Failed to read {path}: {e}", path=str(path), column=column)

    try:
        values = df[column] if isinstance(column, str) else df.iloc[:, column]
    except (KeyError, IndexError):
        raise DataLoadError(f"Column {column!r} not found in {path}", path=str(path), column=column)

    try:
        series = pd.to_numeric(values, errors="raise").to_numpy(dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Column {column!r} in {path} is not numeric: {e}", path=str(path), column=column)

    if np.isnan(series).any():
        raise DataLoadError(f"Column {column!r} in {path} contains missing values", path=str(path), column=column)

    logger.info(f"Loaded {len(series)} observations from {path}")
    return series
