"""
依赖注入装饰器（Dependency Injection）。

职责：
- 提供类似 FastAPI `Depends()` 的自动依赖注入机制
- 通过装饰器自动填充函数的可选参数
- 支持测试时手动传入内存仓储/固定时钟覆盖默认依赖

使用示例：
    # 1. 注册依赖工厂（在 sysplan/core/container.py 中）
    @register("plan_repo")
    def get_plan_repo():
        return PlanRepo(get_db_connection())

    # 2. 在 Flow 函数上使用装饰器
    @dependency
    def cancel_plan(
        *,
        plan_id: str,
        plan_repo: PlanRepo | None = None,  # 自动注入
        clock: Clock | None = None,  # 自动注入
    ) -> Plan:
        ...

    # 3. 测试时覆盖依赖
    cancel_plan(plan_id="SIP-...", plan_repo=InMemoryPlanRepo(), clock=FixedClock(now))

注意事项：
- 注册名必须与函数参数名完全一致（大小写敏感）
- 仅当参数值为 None 时才会自动注入
- 依赖注册在 sysplan/flows/__init__.py 自动触发（导入任何 flow 模块时生效）
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable, TypeVar

# 依赖注册表：参数名 -> 工厂函数
_REGISTRY: dict[str, Callable[[], Any]] = {}

T = TypeVar("T")


def register(name: str) -> Callable[[Callable[[], T]], Callable[[], T]]:
    """
    装饰器：将工厂函数注册到依赖注入容器。

    Args:
        name: 注册名称，必须与目标函数的参数名完全一致。

    Returns:
        装饰器函数。
    """

    def decorator(factory_func: Callable[[], T]) -> Callable[[], T]:
        _REGISTRY[name] = factory_func
        return factory_func

    return decorator


def dependency(func: Callable[..., T]) -> Callable[..., T]:
    """
    依赖注入装饰器：自动注入函数的可选参数。

    工作原理：
    1. 检查函数签名，找出所有参数
    2. 对于每个在注册表中存在、且调用时未传值（或传入 None）的参数，
       调用对应的工厂函数创建实例并注入
    3. 调用时传入的非 None 值保持不变

    Args:
        func: 需要自动注入依赖的函数。

    Returns:
        包装后的函数。
    """
    sig = inspect.signature(func)

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        bound_args = sig.bind_partial(*args, **kwargs)
        bound_args.apply_defaults()

        for param_name in sig.parameters:
            if param_name in _REGISTRY and bound_args.arguments.get(param_name) is None:
                kwargs[param_name] = _REGISTRY[param_name]()

        return func(*args, **kwargs)

    return wrapper


def get_registered_deps() -> dict[str, Callable[[], Any]]:
    """
    获取当前注册的所有依赖（用于调试）。

    Returns:
        依赖注册表的副本。
    """
    return _REGISTRY.copy()
