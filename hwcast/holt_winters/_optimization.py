"""
Holt-Winters 参数搜索

三维网格逐轮收缩搜索 (alpha, beta, gamma)：
每轮在当前搜索框内按步长枚举全部网格点，并行计算每个点的 MSE，
取最优点后以 最优点 ± 步长 重新确定搜索框，步长缩小 10 倍，
直到步长不大于容差。
"""

import logging
import numbers
import os
import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from hwcast.holt_winters._holt_winters import hw_grid_mse_nb
from hwcast._utils import (
    InvalidParameterError,
    validate_period,
    validate_scoring_length,
    validate_series,
    validate_tolerance,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-3
INITIAL_STEP = 0.1
SHRINK_FACTOR = 10
MAX_DEFAULT_WORKERS = 8

Box = Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float]]
UNIT_BOX: Box = ((0.0, 1.0), (0.0, 1.0), (0.0, 1.0))


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass
class FitConfig:
    """参数搜索配置"""
    initial_step: float = INITIAL_STEP
    executor: str = "thread"  # 'thread' 或 'process'
    max_workers: Optional[int] = None  # 默认 min(cpu_count, 8)
    chunksize: int = 256  # 每个任务计算的网格点数
    show_progress: bool = False

    def __post_init__(self):
        if self.executor not in ("thread", "process"):
            raise InvalidParameterError(
                f"executor must be 'thread' or 'process': {self.executor!r}",
                field="executor", value=self.executor
            )
        if not _is_number(self.initial_step) or not (0.0 < self.initial_step <= 1.0):
            raise InvalidParameterError(
                f"initial_step must be a number in (0, 1]: {self.initial_step!r}",
                field="initial_step", value=self.initial_step
            )
        if self.max_workers is not None and (not _is_integer(self.max_workers) or self.max_workers < 1):
            raise InvalidParameterError(
                f"max_workers must be an integer >= 1: {self.max_workers!r}",
                field="max_workers", value=self.max_workers
            )
        if not _is_integer(self.chunksize) or self.chunksize < 1:
            raise InvalidParameterError(
                f"chunksize must be an integer >= 1: {self.chunksize!r}",
                field="chunksize", value=self.chunksize
            )

    @property
    def workers(self) -> int:
        return self.max_workers or min(os.cpu_count() or 1, MAX_DEFAULT_WORKERS)


@dataclass
class SearchRound:
    """一轮搜索的结果"""
    index: int
    step: float
    box: Box
    alpha: float
    beta: float
    gamma: float
    mse: float
    trials: int


@dataclass
class FitResult:
    """最优参数及其 MSE，可按 (alpha, beta, gamma, mse) 解包"""
    alpha: float
    beta: float
    gamma: float
    mse: float
    period: int
    tolerance: float
    rounds: List[SearchRound] = field(default_factory=list)

    def __iter__(self):
        return iter((self.alpha, self.beta, self.gamma, self.mse))

    @property
    def params(self) -> Tuple[float, float, float]:
        return self.alpha, self.beta, self.gamma


class BestResult:
    """
    并发共享的当前最优结果

    `offer` 在锁内比较并更新。NaN 永远不会替换非 NaN 的结果；
    同一轮内 MSE 相等时取网格序号更小的点，跨轮相等时保留先前的结果，
    因此归约结果与任务完成顺序无关。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.alpha = None
        self.beta = None
        self.gamma = None
        self.mse = np.nan
        self.order = None

    @property
    def empty(self) -> bool:
        return self.order is None

    def _beats(self, mse: float, order: Tuple[int, int]) -> bool:
        if self.order is None:
            return True
        if np.isnan(mse) != np.isnan(self.mse):
            return not np.isnan(mse)
        if not np.isnan(mse) and mse != self.mse:
            return mse < self.mse
        return order[0] == self.order[0] and order < self.order

    def offer(self, params, mse: float, order: Tuple[int, int]) -> bool:
        """
        提交一次试验结果

        Args:
            params: (alpha, beta, gamma)
            mse: 试验 MSE
            order: (轮次, 网格序号)

        Returns:
            是否替换了当前最优
        """
        mse = float(mse)
        with self._lock:
            if not self._beats(mse, order):
                return False
            self.alpha, self.beta, self.gamma = (float(p) for p in params)
            self.mse = mse
            self.order = order
            return True


def _axis(lo: float, hi: float, step: float) -> np.ndarray:
    n = int(np.floor((hi - lo) / step + 1e-9))
    points = lo + step * np.arange(n + 1)
    if hi - points[-1] > step * 1e-6:
        points = np.append(points, hi)
    return np.unique(np.clip(np.round(points, 12), 0.0, 1.0))


def build_grid(box: Box, step: float) -> np.ndarray:
    """
    枚举搜索框内的全部网格点（包含上下边界）

    Returns:
        形状为 (K, 3) 的数组，alpha 为最外层，gamma 为最内层
    """
    axes = [_axis(lo, hi, step) for lo, hi in box]
    mesh = np.meshgrid(*axes, indexing="ij")
    return np.ascontiguousarray(np.stack(mesh, axis=-1).reshape(-1, 3), dtype=np.float64)


def recenter_box(params, step: float) -> Box:
    """以最优点 ± step 构造新的搜索框，截断到 [0, 1]"""
    return tuple((max(0.0, p - step), min(1.0, p + step)) for p in params)


def _score_chunk(y: np.ndarray, period: int, params: np.ndarray) -> np.ndarray:
    return hw_grid_mse_nb(y, period, params)


def _make_executor(config: FitConfig):
    if config.executor == "process":
        return ProcessPoolExecutor(max_workers=config.workers)
    return ThreadPoolExecutor(max_workers=config.workers)


def find_best(executor, y: np.ndarray, period: int, box: Box, step: float,
              best: BestResult, round_index: int, config: FitConfig) -> int:
    """
    计算一轮全部网格点并归约到 `best`

    所有任务完成后才返回；任一任务异常会直接抛出。

    Returns:
        本轮试验次数
    """
    grid = build_grid(box, step)
    futures = {
        executor.submit(_score_chunk, y, period, grid[start:start + config.chunksize]): start
        for start in range(0, len(grid), config.chunksize)
    }

    completed = as_completed(futures)
    if config.show_progress:
        completed = tqdm(completed, total=len(futures), desc=f"Round {round_index} (step {step:g})")

    for future in completed:
        start = futures[future]
        scores = future.result()
        for offset, score in enumerate(scores):
            best.offer(grid[start + offset], score, (round_index, start + offset))
    return len(grid)


def fit_parameters(series, period: int, tolerance: float = DEFAULT_TOLERANCE,
                   config: Optional[FitConfig] = None) -> FitResult:
    """
    搜索使 MSE 最小的 (alpha, beta, gamma)

    Args:
        series: 训练序列
        period: 季节周期长度
        tolerance: 步长收敛阈值
        config: 搜索配置

    Returns:
        FitResult，包含每一轮的最优结果
    """
    period = validate_period(period)
    y = validate_series(series, period)
    validate_scoring_length(len(y), period)
    tolerance = validate_tolerance(tolerance)
    config = config or FitConfig()

    logger.info(f"Fitting Holt-Winters parameters: n={len(y)}, period={period}, "
                f"tolerance={tolerance:g}, executor={config.executor}, workers={config.workers}")

    best = BestResult()
    rounds = []
    box = UNIT_BOX
    round_index = 0
    step = config.initial_step

    with _make_executor(config) as executor:
        while True:
            trials = find_best(executor, y, period, box, step, best, round_index, config)
            rounds.append(SearchRound(
                index=round_index, step=step, box=box,
                alpha=best.alpha, beta=best.beta, gamma=best.gamma,
                mse=best.mse, trials=trials
            ))
            logger.debug(f"Round {round_index}: step={step:g}, trials={trials}, "
                         f"best=({best.alpha:.6f}, {best.beta:.6f}, {best.gamma:.6f}), mse={best.mse:.6f}")

            if step <= tolerance * (1 + 1e-9):
                break
            box = recenter_box((best.alpha, best.beta, best.gamma), step)
            round_index += 1
            step = config.initial_step / SHRINK_FACTOR ** round_index

    if np.isnan(best.mse):
        logger.warning(f"Every trial produced NaN MSE for period={period}; returning a degenerate fit")

    logger.info(f"Best parameters: alpha={best.alpha:.6f}, beta={best.beta:.6f}, "
                f"gamma={best.gamma:.6f}, mse={best.mse:.6f} after {len(rounds)} rounds")

    return FitResult(
        alpha=best.alpha, beta=best.beta, gamma=best.gamma, mse=best.mse,
        period=period, tolerance=tolerance, rounds=rounds
    )
