"""数据模型定义模块。

定义管线定义格式（节点、边、字段映射）与 API 请求体、响应体。
基于 Pydantic v2 实现序列化、反序列化与自动校验。
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator


# ---------------------------------------------------------------------------
# 基础模型
# ---------------------------------------------------------------------------


class ApiModel(BaseModel):
    """所有模型的基类，统一配置序列化行为。

    - extra="forbid": 禁止包含未声明的字段，防止拼写错误被静默忽略
    - populate_by_name: 允许同时通过字段名和别名赋值
    - str_strip_whitespace: 自动去除字符串首尾空白
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class FrozenModel(ApiModel):
    """不可变模型，管线定义一经构造不再修改"""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


# HTTP(S) URL，保持原样不做规范化
HttpUrlStr = Annotated[str, StringConstraints(pattern=r"^https?://\S+$")]

ReportFormat = Literal["json", "markdown", "text"]


# ---------------------------------------------------------------------------
# 管线定义
# ---------------------------------------------------------------------------


class FieldMapping(FrozenModel):
    """边上的一条字段映射：前驱输出字段 source -> 后继输入字段 target"""

    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)


class PipelineNodeConfig(FrozenModel):
    """管线中的一个节点实例"""

    id: str = Field(..., min_length=1, description="节点 ID，管线内唯一")
    type: str = Field(..., min_length=1, description="节点类型（注册表键）")
    config: Dict[str, Any] = Field(default_factory=dict, description="静态配置")


class PipelineEdgeConfig(FrozenModel):
    """依赖边。mapping 为空表示复制前驱输出的全部字段"""

    from_node: str = Field(..., alias="from", min_length=1)
    to_node: str = Field(..., alias="to", min_length=1)
    mapping: Optional[List[FieldMapping]] = None

    @field_validator("mapping", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> Any:
        """兼容 {"source": "target"} 字典与 [source, target] 二元组写法，按声明顺序转换"""
        if isinstance(value, dict):
            return [{"source": k, "target": v} for k, v in value.items()]
        if isinstance(value, (list, tuple)):
            items = []
            for item in value:
                if isinstance(item, (list, tuple)):
                    if len(item) != 2:
                        raise ValueError(f"字段映射二元组长度必须为 2: {list(item)!r}")
                    item = {"source": item[0], "target": item[1]}
                items.append(item)
            return items
        return value


class PipelineDefinition(FrozenModel):
    """完整的管线定义（DAG）

    结构校验（ID 唯一、引用存在、无环）由 PipelineGraph 在执行前完成。
    """

    nodes: List[PipelineNodeConfig] = Field(default_factory=list)
    edges: List[PipelineEdgeConfig] = Field(default_factory=list)


class TraceEvent(ApiModel):
    """节点执行追踪记录"""

    node_id: str
    node_type: str
    status: str
    elapsed_ms: Optional[int] = None
    error: Optional[str] = None
    output_keys: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# 通用响应
# ---------------------------------------------------------------------------


class ErrorResponse(ApiModel):
    """统一错误响应格式，所有非 2xx 响应均使用此结构。"""

    message: str = Field(..., description="错误消息")
    code: str = Field(..., description="错误码")
    status: int = Field(..., ge=100, le=599, description="HTTP 状态码")
    request_id: str = Field(..., description="请求 ID")
    detail: Any | None = Field(default=None, description="错误详情")
    errors: Any | None = Field(default=None, description="字段级错误")


# ---------------------------------------------------------------------------
# 请求体
# ---------------------------------------------------------------------------


class AnalyzeRequest(ApiModel):
    """单页价格分析"""

    url: HttpUrlStr
    format: ReportFormat = "json"


class TrackRequest(ApiModel):
    """价格追踪"""

    url: HttpUrlStr
    product_name: str = Field(default="product", min_length=1)
    days: int = Field(default=30, ge=1)
    drop_threshold: float = Field(default=10, ge=0)
    spike_threshold: float = Field(default=15, ge=0)
    webhook_url: Optional[HttpUrlStr] = None


class CompareRequest(ApiModel):
    """跨站比价"""

    urls: List[HttpUrlStr] = Field(..., min_length=2)
    product_name: str = Field(default="product", min_length=1)


class RunPipelineRequest(ApiModel):
    """执行任意管线定义"""

    pipeline: PipelineDefinition


# ---------------------------------------------------------------------------
# 响应体
# ---------------------------------------------------------------------------


class PipelineRunResponse(ApiModel):
    """管线执行结果"""

    run_id: str
    outputs: Dict[str, Any]
    execution_order: List[str]
    duration_ms: int
    trace: List[TraceEvent] = Field(default_factory=list)


class NodeTypesResponse(ApiModel):
    types: List[str]


class AnalyzeResponse(ApiModel):
    run_id: str
    report: Dict[str, Any]
    formatted: str
    duration_ms: int


class TrackResponse(ApiModel):
    run_id: str
    snapshot_id: str
    trend: Optional[Dict[str, Any]] = None
    drop: Dict[str, Any]
    spike: Dict[str, Any]
    duration_ms: int


class CompareResponse(ApiModel):
    run_id: str
    comparison: Optional[Dict[str, Any]] = None
    sources: List[Dict[str, Any]]
    duration_ms: int
