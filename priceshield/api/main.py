from __future__ import annotations

import uuid
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from priceshield.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    CompareRequest,
    CompareResponse,
    ErrorResponse,
    NodeTypesResponse,
    PipelineDefinition,
    PipelineRunResponse,
    RunPipelineRequest,
    TrackRequest,
    TrackResponse,
)
from priceshield.config import APP_NAME, VERSION
from priceshield.core.utils.logger import setup_logger
from priceshield.pipeline import (
    CyclicGraphError,
    ExecutionContext,
    NodeExecutionError,
    PipelineError,
    PipelineExecutor,
    PipelineResult,
    PipelineValidationError,
    UnknownNodeTypeError,
    get_default_registry,
)
from priceshield.pipeline.context import serialize_value
from priceshield.pipeline.presets import (
    create_analyze_page_pipeline,
    create_compare_sites_pipeline,
    create_track_price_pipeline,
)
from priceshield.storage import StorageAdapter, get_storage

app = FastAPI(title=f"{APP_NAME} API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = setup_logger("api")

REQUEST_ID_HEADER = "x-request-id"

# 管线异常 -> (HTTP 状态码, 错误码)，按 MRO 顺序匹配
_PIPELINE_ERROR_STATUS = {
    PipelineValidationError: (400, "INVALID_PIPELINE"),
    UnknownNodeTypeError: (400, "UNKNOWN_NODE_TYPE"),
    NodeExecutionError: (502, "NODE_EXECUTION_FAILED"),
    PipelineError: (500, "PIPELINE_ERROR"),
}


def _request_id(request: Request) -> str:
    """读取请求头中的 ID，没有则生成一个；同一请求内保持不变"""
    if not getattr(request.state, "request_id", None):
        request.state.request_id = (
            request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex}"
        )
    return request.state.request_id


def _error_response(
    request: Request,
    status: int,
    message: str,
    code: str,
    **extra: Any,
) -> JSONResponse:
    """构造统一的 ErrorResponse，值为 None 的顶层字段不输出"""
    payload = ErrorResponse(
        message=message,
        code=code,
        status=status,
        request_id=_request_id(request),
        **extra,
    ).model_dump()
    content = {key: value for key, value in payload.items() if value is not None}
    return JSONResponse(status_code=status, content=content)


def _pipeline_error_detail(exc: PipelineError) -> Optional[Dict[str, Any]]:
    if isinstance(exc, UnknownNodeTypeError):
        return {"type": exc.type_name, "available": exc.available}
    if isinstance(exc, NodeExecutionError):
        return {"node_id": exc.node_id, "node_type": exc.node_type}
    if isinstance(exc, CyclicGraphError):
        return {"node_ids": exc.node_ids}
    return None


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = _request_id(request)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    return _error_response(
        request,
        exc.status_code,
        detail if isinstance(detail, str) else "请求失败",
        HTTPStatus(exc.status_code).name,
        detail=None if isinstance(detail, str) else detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        request,
        422,
        "请求参数校验失败",
        "VALIDATION_ERROR",
        errors=serialize_value(exc.errors()),
    )


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    status, code = next(
        _PIPELINE_ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in _PIPELINE_ERROR_STATUS
    )
    if isinstance(exc, NodeExecutionError):
        logger.warning(
            "节点执行失败 request_id=%s node_id=%s node_type=%s",
            _request_id(request),
            exc.node_id,
            exc.node_type,
        )
    return _error_response(
        request, status, str(exc), code, detail=_pipeline_error_detail(exc)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("未处理异常 request_id=%s", _request_id(request), exc_info=exc)
    return _error_response(request, 500, "服务器内部错误", "INTERNAL_SERVER_ERROR")


async def _run(
    pipeline: PipelineDefinition, storage: StorageAdapter
) -> tuple[ExecutionContext, PipelineResult]:
    ctx = ExecutionContext(storage=storage)
    result = await PipelineExecutor().execute(pipeline, ctx)
    return ctx, result


@app.get("/health")
def health_check():
    """健康检查端点"""
    return {"status": "ok", "version": VERSION}


@app.get("/node-types", response_model=NodeTypesResponse)
def list_node_types():
    return NodeTypesResponse(types=get_default_registry().types())


# ============ 预设管线 ============


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze_page(req: AnalyzeRequest, storage: StorageAdapter = Depends(get_storage)):
    """单页价格分析，返回报告与格式化文本"""
    ctx, result = await _run(create_analyze_page_pipeline(req.url, req.format), storage)
    report = result.outputs["report"]
    return AnalyzeResponse(
        run_id=ctx.run_id,
        report=serialize_value(report["report"]),
        formatted=report["formatted"],
        duration_ms=result.duration_ms,
    )


@app.post("/track", response_model=TrackResponse)
async def track_price(req: TrackRequest, storage: StorageAdapter = Depends(get_storage)):
    """抓取当前价格并保存快照，返回走势与降价 / 涨价检查结果"""
    pipeline = create_track_price_pipeline(
        req.url,
        req.product_name,
        days=req.days,
        drop_threshold=req.drop_threshold,
        spike_threshold=req.spike_threshold,
        webhook_url=req.webhook_url,
    )
    ctx, result = await _run(pipeline, storage)
    outputs = serialize_value(result.outputs)
    return TrackResponse(
        run_id=ctx.run_id,
        snapshot_id=outputs["save"]["snapshot_id"],
        trend=outputs["trend"]["trend"],
        drop=outputs["drop"],
        spike=outputs["spike"],
        duration_ms=result.duration_ms,
    )


@app.post("/compare", response_model=CompareResponse)
async def compare_sites(req: CompareRequest, storage: StorageAdapter = Depends(get_storage)):
    """跨站比价"""
    ctx, result = await _run(create_compare_sites_pipeline(req.urls, req.product_name), storage)
    output = serialize_value(result.outputs["compare"])
    return CompareResponse(
        run_id=ctx.run_id,
        comparison=output["comparison"],
        sources=output["sources"],
        duration_ms=result.duration_ms,
    )


# ============ 自定义管线 ============


@app.post("/pipelines/run", response_model=PipelineRunResponse)
async def run_pipeline(req: RunPipelineRequest, storage: StorageAdapter = Depends(get_storage)):
    """执行任意管线定义，返回全部节点输出与执行追踪"""
    ctx, result = await _run(req.pipeline, storage)
    payload = result.to_dict()
    return PipelineRunResponse(
        run_id=ctx.run_id,
        outputs=payload["outputs"],
        execution_order=payload["execution_order"],
        duration_ms=payload["duration_ms"],
        trace=ctx.trace,
    )


def run_server(host: str = "0.0.0.0", port: int = 8765, reload: bool = False) -> None:
    """启动 API 服务器

    Args:
        host: 监听地址
        port: 监听端口
        reload: 是否启用热重载（开发模式）
    """
    import uvicorn

    uvicorn.run("priceshield.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run_server()
