import matplotlib.pyplot as plt
import numpy as np


def render_forecast(actual, forecast, path, title="Holt-Winters Forecast"):
    """
    绘制实际值与预测值的对比图并保存

    Args:
        actual: 实际值序列（与预测对齐）
        forecast: 预测值序列
        path: 输出图片路径，格式由扩展名决定
        title: 图标题

    Returns:
        输出路径
    """
    actual = np.asarray(actual, dtype=float)
    forecast = np.asarray(forecast, dtype=float)
    if actual.shape != forecast.shape:
        raise ValueError(f"actual and forecast must have the same shape: {actual.shape} != {forecast.shape}")

    index = np.arange(len(actual))
    plt.figure(figsize=(15, 10))
    plt.plot(index, actual, label='Actual', marker='o', linestyle='-', markersize=2)
    plt.plot(index, forecast, label='Forecast', marker='x', linestyle='--', markersize=2)
    plt.title(title)
    plt.xlabel('Index')
    plt.ylabel('Value')
    plt.legend()
    plt.grid(True)

    plt.savefig(path, dpi=150, bbox_inches='tight')
    # 关闭图形以释放内存
    plt.close()
    return path
