"""Pipeline 节点抽象基类"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from priceshield.pipeline.context import ExecutionContext


class PipelineNode(ABC):
    """
    管线节点抽象基类，所有节点必须继承此类

    节点无状态：注册表每次实例化一个新对象，运行期数据只通过
    inputs（前驱输出合并而来）、config（静态配置）与 ctx 传递。
    """

    # 节点类型，与注册表中的键一致
    type: str = ""

    @abstractmethod
    async def execute(
        self,
        inputs: Dict[str, Any],
        config: Dict[str, Any],
        ctx: "ExecutionContext",
    ) -> Dict[str, Any]:
        """
        执行节点逻辑

        Args:
            inputs: 合并后的前驱输出
            config: 节点静态配置
            ctx: 执行上下文

        Returns:
            节点输出，记录到 ctx.results[node_id]
        """
        pass

    def get_output_keys(self) -> List[str]:
        """返回该节点会输出的字段名列表"""
        return []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.type!r})"
