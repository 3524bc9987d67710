"""核心模块基类与通用上下文定义"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Union

logger = logging.getLogger(__name__)

# JSON 风格的结构化值: 叶子为 str/int/float/bool/None, 容器为 mapping/sequence
JSONValue = Union[str, int, float, bool, None, Mapping[str, Any], Sequence[Any]]


@dataclass(frozen=True)
class RewriteConfig:
    """本地/生产 上传目录基础 URL 配置 (一次会话内不可变)"""

    source_base: str
    target_base: str
    url_keys: tuple[str, ...] = ("url", "src")

    @classmethod
    def create(cls, source_base: str | None, target_base: str | None, url_keys: Sequence[str] | None = None) -> "RewriteConfig":
        # 与设置项的原始 URL 清洗保持一致: 只去掉首尾空白
        src = (source_base or "").strip()
        tgt = (target_base or "").strip()
        keys = tuple(str(k) for k in url_keys) if url_keys is not None else ("url", "src")
        return cls(source_base=src, target_base=tgt, url_keys=keys)

    @property
    def active(self) -> bool:
        """目标为空或与源相同时整体旁路"""
        return bool(self.source_base) and bool(self.target_base) and self.source_base != self.target_base


@dataclass
class RewriteContext:
    """单次调用的宿主信号。

    admin: 输出目标是否为后台管理界面
    rest_request: 是否处于 REST 请求中
    request_context: REST 请求的 context 参数 (view / edit / embed)
    route: REST 路由
    shared: 管线统计等运行期数据
    """

    admin: bool = False
    rest_request: bool = False
    request_context: str = "view"
    route: str = ""
    shared: Dict[str, Any] = field(default_factory=dict)


class BaseModule:
    """所有拦截模块需要继承的基类。

    约定:
      - run(context, value, config) 为唯一必须实现的接口, 返回变换后的值
      - 纯逻辑: 不修改传入对象, 无法处理的形状原样返回
      - hooks / order 为默认挂载点与排序, 管线配置可覆盖
    """

    name: str = "base"
    hooks: List[str] = []
    order: int = 10

    def __init__(self, rewriter=None):
        self.rewriter = rewriter

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):  # pragma: no cover - 由子类实现
        raise NotImplementedError

    def _resolve_rewriter(self, config: Dict[str, Any]):
        rewriter = config.get("rewriter") or self.rewriter
        if rewriter is None:
            raise ValueError(f"[{self.name}] 缺少 rewriter")
        return rewriter

    def _report(self, original: Any, new_value: Any) -> Any:
        changed = original is not new_value and original != new_value
        logger.debug(f"[{self.name}] {'CHANGED' if changed else 'ok'}")
        return new_value


def rebuild_sequence(node: Sequence[Any], items: Sequence[Any]) -> Sequence[Any]:
    """按原序列类型重建: namedtuple 按字段位置传参, 其余 tuple 子类退化为 tuple"""
    if isinstance(node, list):
        return list(items)
    if hasattr(node, "_fields"):
        return type(node)(*items)
    return tuple(items)
