"""
工具故障注入模块

按给定概率让工具抛出 TransientToolError（错误文本中提示可以重试），
用于测试模型在遇到可恢复失败时是否会重试。

设计约束:
    - 默认关闭（probability=0），不影响正常调用
    - 随机源可注入：固定 seed 后故障序列可复现
"""

import logging
import random
from typing import Optional

from core.tool_errors import TransientToolError

logger = logging.getLogger(__name__)


class FaultInjector:
    """
    临时故障注入策略

    Args:
        probability: 每次调用失败的概率（0~1）
        seed: 随机种子，None 时使用系统随机源
        rng: 直接注入的随机源（优先于 seed）
    """

    def __init__(
        self,
        probability: float = 0.0,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"故障注入概率必须在 0~1 之间: {probability}")
        self.probability = probability
        self._rng = rng or random.Random(seed)

    @property
    def enabled(self) -> bool:
        return self.probability > 0

    def maybe_fail(self, service: str) -> None:
        """
        按概率抛出临时故障

        Args:
            service: 服务名称，用于生成错误提示

        Raises:
            TransientToolError: 命中故障时
        """
        if not self.enabled:
            return
        if self._rng.random() < self.probability:
            logger.info(f"注入临时故障: service={service}")
            raise TransientToolError(
                error="service temporarily unavailable",
                message=f"The {service} service is temporarily unavailable. Please retry later.",
            )


__all__ = [
    "FaultInjector",
]
