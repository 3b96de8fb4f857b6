"""节点注册表 - 节点类型到工厂的映射"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from priceshield.pipeline.errors import UnknownNodeTypeError
from priceshield.pipeline.node_base import PipelineNode

NodeFactory = Callable[[], PipelineNode]


class NodeRegistry:
    """
    节点注册表

    管理节点类型名称到工厂的映射，支持：
    - 注册节点类型（节点类本身即可作为工厂）
    - 根据类型名创建节点实例
    - 查询已注册的类型

    启动时填充一次，运行期间只读。
    """

    def __init__(self):
        self._factories: Dict[str, NodeFactory] = {}

    def register(self, type_name: str, factory: NodeFactory) -> "NodeRegistry":
        """
        注册节点类型，同名类型会被覆盖

        Args:
            type_name: 类型名称
            factory: 无参工厂，返回节点实例

        Returns:
            self（支持链式调用）
        """
        self._factories[type_name] = factory
        return self

    def create(self, type_name: str) -> PipelineNode:
        """
        根据类型名创建新的节点实例

        Raises:
            UnknownNodeTypeError: 类型未注册
        """
        factory = self._factories.get(type_name)
        if factory is None:
            raise UnknownNodeTypeError(type_name, self.types())
        return factory()

    def has(self, type_name: str) -> bool:
        """检查类型是否已注册"""
        return type_name in self._factories

    def types(self) -> List[str]:
        """获取已注册的所有类型名称（按注册顺序）"""
        return list(self._factories.keys())

    def __contains__(self, type_name: str) -> bool:
        return self.has(type_name)

    def __len__(self) -> int:
        return len(self._factories)

    def __repr__(self) -> str:
        return f"NodeRegistry(types={self.types()})"


# 全局默认注册表（单例）
_default_registry: Optional[NodeRegistry] = None


def get_default_registry() -> NodeRegistry:
    """
    获取默认注册表（单例）

    首次调用时会注册所有内置节点
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = NodeRegistry()
        # 延迟导入避免循环依赖
        from priceshield.pipeline.nodes import register_all_nodes

        register_all_nodes(_default_registry)

    return _default_registry
