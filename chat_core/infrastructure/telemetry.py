"""遥测边界。

编排层只依赖 ``TelemetryService`` 协议：

- start_operation(name, type): 以上下文管理器表示一个具名操作，退出时记录耗时与成败。
- set_property: 给当前操作打标签。
- track_dependency / track_event / track_exception / track_trace: 各类观测记录。

默认实现 ``LoggingTelemetryService`` 把所有记录写成结构化 JSON 日志；
``GuardedTelemetry`` 保证遥测本身的故障不会中断业务逻辑。
"""

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ContextManager, Dict, Iterator, Optional, Protocol
from uuid import uuid4

from chat_core.domain.models import DependencySpan
from chat_core.infrastructure.logging.logger import logger


@dataclass
class OperationScope:
    """一次具名操作的上下文。"""

    name: str
    operation_type: str
    operation_id: str = field(default_factory=lambda: f"op-{uuid4().hex}")
    parent_id: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)
    success: bool = True

    def set_property(self, key: str, value: Any) -> None:
        self.properties[key] = str(value)


class TelemetryService(Protocol):
    def start_operation(self, name: str, operation_type: str = "Custom") -> ContextManager[OperationScope]:
        ...

    def set_property(self, key: str, value: Any) -> None:
        ...

    def track_dependency(self, span: DependencySpan) -> None:
        ...

    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        ...

    def track_exception(self, error: BaseException, properties: Optional[Dict[str, Any]] = None) -> None:
        ...

    def track_trace(
        self,
        message: str,
        level: int = logging.INFO,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


_current_operation: ContextVar[Optional[OperationScope]] = ContextVar("chat_core_operation", default=None)


class LoggingTelemetryService:
    """把遥测记录写入 chat_core 的 JSON 日志。"""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    @contextmanager
    def start_operation(self, name: str, operation_type: str = "Custom") -> Iterator[OperationScope]:
        parent = _current_operation.get()
        scope = OperationScope(
            name=name,
            operation_type=operation_type,
            parent_id=parent.operation_id if parent else None,
        )
        token = _current_operation.set(scope)
        started = time.perf_counter()
        self._emit(logging.INFO, "Operation started", operation_type=operation_type)
        try:
            yield scope
        except BaseException:
            scope.success = False
            raise
        finally:
            self._emit(
                logging.INFO if scope.success else logging.WARNING,
                "Operation completed",
                operation_type=operation_type,
                success=scope.success,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                properties=dict(scope.properties),
            )
            _current_operation.reset(token)

    def set_property(self, key: str, value: Any) -> None:
        scope = _current_operation.get()
        if scope is not None:
            scope.set_property(key, value)

    def track_dependency(self, span: DependencySpan) -> None:
        self._emit(
            logging.INFO if span.success else logging.WARNING,
            "Dependency call completed" if span.success else "Dependency call failed",
            dependency_type=span.type_name,
            dependency_name=span.name,
            target=span.target,
            start=span.start.isoformat(),
            duration_ms=span.duration_ms,
            success=span.success,
        )

    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.INFO, f"Event: {name}", event=name, properties=properties or {})

    def track_exception(self, error: BaseException, properties: Optional[Dict[str, Any]] = None) -> None:
        self._emit(
            logging.ERROR,
            f"Exception: {error}",
            error_type=type(error).__name__,
            error_code=getattr(error, "code", None),
            properties=properties or {},
        )

    def track_trace(
        self,
        message: str,
        level: int = logging.INFO,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(level, message, properties=properties or {})

    def _emit(self, level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {}
        scope = _current_operation.get()
        if scope is not None:
            payload["operation"] = scope.name
            payload["operation_id"] = scope.operation_id
            if scope.parent_id:
                payload["parent_operation_id"] = scope.parent_id
        payload.update(fields)
        self._log.log(level, message, extra={"extra": payload})


class GuardedTelemetry:
    """包装任意 TelemetryService：遥测调用失败只记一条告警日志，不向业务代码抛出。"""

    def __init__(self, inner: TelemetryService):
        self._inner = inner

    @property
    def inner(self) -> TelemetryService:
        return self._inner

    @contextmanager
    def start_operation(self, name: str, operation_type: str = "Custom") -> Iterator[OperationScope]:
        try:
            manager = self._inner.start_operation(name, operation_type)
            scope = manager.__enter__()
        except Exception as exc:
            self._report("start_operation", exc)
            yield OperationScope(name=name, operation_type=operation_type)
            return
        try:
            yield scope
        except BaseException as body_exc:
            try:
                manager.__exit__(type(body_exc), body_exc, body_exc.__traceback__)
            except Exception as exc:
                if exc is not body_exc:
                    self._report("start_operation", exc)
            raise
        else:
            try:
                manager.__exit__(None, None, None)
            except Exception as exc:
                self._report("start_operation", exc)

    def set_property(self, key: str, value: Any) -> None:
        self._call("set_property", key, value)

    def track_dependency(self, span: DependencySpan) -> None:
        self._call("track_dependency", span)

    def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self._call("track_event", name, properties)

    def track_exception(self, error: BaseException, properties: Optional[Dict[str, Any]] = None) -> None:
        self._call("track_exception", error, properties)

    def track_trace(
        self,
        message: str,
        level: int = logging.INFO,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._call("track_trace", message, level, properties)

    def _call(self, method: str, *args: Any) -> None:
        try:
            getattr(self._inner, method)(*args)
        except Exception as exc:
            self._report(method, exc)

    @staticmethod
    def _report(method: str, exc: Exception) -> None:
        logger.warning(
            "Telemetry call failed",
            extra={"extra": {"telemetry_method": method, "error": str(exc)}},
        )


def guarded(telemetry: Optional[TelemetryService]) -> GuardedTelemetry:
    """返回带保护的遥测对象；None 时使用默认日志实现。"""

    if isinstance(telemetry, GuardedTelemetry):
        return telemetry
    return GuardedTelemetry(telemetry or LoggingTelemetryService())


class DependencyCall:
    """dependency() 上下文中可由调用方修改的结果标记。"""

    def __init__(self, type_name: str, name: str, target: str):
        self.type_name = type_name
        self.name = name
        self.target = target
        self.success: Optional[bool] = None


@contextmanager
def dependency(telemetry: TelemetryService, type_name: str, name: str, target: str) -> Iterator[DependencyCall]:
    """测量一次外部依赖调用并记录 DependencySpan。

    上下文内抛出异常视为失败（异常继续向上传播）；
    调用方也可以显式设置 ``call.success``（例如根据 HTTP 状态码）。
    """

    call = DependencyCall(type_name, name, target)
    started_at = datetime.now(timezone.utc)
    started = time.perf_counter()
    try:
        yield call
    except BaseException:
        call.success = False
        raise
    finally:
        telemetry.track_dependency(
            DependencySpan(
                type_name=call.type_name,
                name=call.name,
                target=call.target,
                start=started_at,
                duration=timedelta(seconds=time.perf_counter() - started),
                success=True if call.success is None else call.success,
            )
        )
