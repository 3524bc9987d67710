"""produp 拦截管线

宿主在每个输出点 (hook) 把值交给管线, 管线按顺序执行绑定到该 hook 的步骤。
hook 按触发时机归入三个阶段: post_fetch (数据取出后) / pre_render (渲染属性前) /
pre_emit (最终输出前)。

配置文件示例 (produp.toml):

[rewrite]
local_base = "http://local.test/wp-content/uploads"
production_base = "https://prod.example.com/uploads"
url_keys = ["url", "src"]     # 可选, 结构化响应中按键名过滤

[pipeline]
enable = true                 # 总开关
sequence = []                 # 可选: 统一顺序控制列表

[hooks]                       # 可选: 自定义 hook 所属阶段
my_widget_html = "pre_emit"

[[step]]                      # 不写任何 step 时使用内置默认步骤
name = "final_content"
module = "final_content"      # 注册名 / 插件名 / python 模块路径
hooks = ["the_content", "the_excerpt"]
order = 9999                  # 数值排序 (越小越先)
depends = []                  # 强依赖 (同一 hook 内)
skip_on_error = true
config.routes = ["/wp/v2/patterns"]

未设置 production_base 时重写器处于旁路状态, 所有 hook 原样返回。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
import importlib
import logging
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from .core.base import BaseModule, RewriteConfig, RewriteContext
from .core.rewriter import UrlRewriter
from .core.registry import REGISTRY
from .core import plugins as _plugins

logger = logging.getLogger(__name__)

STAGES = ("post_fetch", "pre_render", "pre_emit")

HOOK_STAGES: Dict[str, str] = {
    "attachment_url": "post_fetch",
    "attachment_image_src": "post_fetch",
    "attachment_image_srcset": "post_fetch",
    "prepare_attachment_for_js": "post_fetch",
    "rest_prepare_attachment": "post_fetch",
    "rest_prepare_post": "post_fetch",
    "rest_prepare_page": "post_fetch",
    "rest_prepare_wp_block": "post_fetch",
    "rest_request_after_callbacks": "post_fetch",
    "attachment_image_attributes": "pre_render",
    "product_get_image": "pre_emit",
    "product_image_thumbnail_html": "pre_emit",
    "product_thumbnails": "pre_emit",
    "the_content": "pre_emit",
    "the_excerpt": "pre_emit",
    "short_description": "pre_emit",
}


@dataclass
class StepConfig:
    name: str                 # 逻辑名称
    enabled: bool             # 是否启用
    module: str               # 注册名 / 插件名 / python 模块路径
    hooks: List[str] = field(default_factory=list)   # 挂载的 hook
    clazz: Optional[str] = None  # 可选类名
    config: Dict[str, Any] = field(default_factory=dict)
    order: Optional[int] = None   # 数值排序 (越小越先)
    depends: List[str] = field(default_factory=list) # 强依赖
    skip_on_error: bool = True


@dataclass
class PipelineConfig:
    rewrite: RewriteConfig = field(default_factory=lambda: RewriteConfig.create("", ""))
    enable: bool = True
    sequence: List[str] = field(default_factory=list)  # 统一顺序控制列表
    steps: List[StepConfig] = field(default_factory=list)
    hook_stages: Dict[str, str] = field(default_factory=dict)
    plugin_disabled: List[str] = field(default_factory=list)

    def stage_of(self, hook: str) -> str:
        return self.hook_stages.get(hook) or HOOK_STAGES.get(hook, "pre_emit")


def default_steps() -> List[StepConfig]:
    """内置默认步骤: 每个注册模块一步, 使用模块自带的 hooks / order"""
    return [
        StepConfig(name=name, enabled=True, module=name, hooks=list(cls.hooks), order=cls.order)
        for name, cls in REGISTRY.items()
    ]


class PipelineLoader:
    @staticmethod
    def load(path: str | Path) -> PipelineConfig:
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"配置文件不存在: {p}")
        return PipelineLoader.loads(p.read_text(encoding="utf-8"))

    @staticmethod
    def loads(text: str) -> PipelineConfig:
        data = tomllib.loads(text)

        rewrite_raw = data.get("rewrite", {})
        rewrite = RewriteConfig.create(
            rewrite_raw.get("local_base"),
            rewrite_raw.get("production_base"),
            url_keys=rewrite_raw.get("url_keys"),
        )
        if not rewrite.target_base:
            logger.warning("未设置生产环境上传 URL (rewrite.production_base)，URL 重写已停用")

        pipeline_raw = data.get("pipeline", {})
        enable = pipeline_raw.get("enable", True)
        sequence = pipeline_raw.get("sequence", []) or []
        if not isinstance(sequence, list):  # 容错
            sequence = []

        hook_stages = dict(data.get("hooks", {}) or {})
        for hook, stage in hook_stages.items():
            if stage not in STAGES:
                raise ValueError(f"hook {hook} 的阶段无效: {stage} (可选 {', '.join(STAGES)})")

        plugins_raw = data.get("plugins", {}) or {}

        steps_raw = data.get("step", []) or data.get("steps", [])
        steps: List[StepConfig] = []
        for idx, s in enumerate(steps_raw):
            try:
                module = s["module"]
                cls = REGISTRY.get(module)
                hooks = s.get("hooks") or (list(cls.hooks) if cls else [])
                if isinstance(hooks, str):
                    hooks = [hooks]
                steps.append(
                    StepConfig(
                        name=s["name"],
                        enabled=s.get("enabled", True),
                        module=module,
                        hooks=hooks,
                        clazz=s.get("class"),
                        config=s.get("config", {}),
                        order=s.get("order", cls.order if cls else None),
                        depends=s.get("depends", []),
                        skip_on_error=s.get("skip_on_error", True),
                    )
                )
            except KeyError as e:  # 必要字段缺失
                raise ValueError(f"第 {idx+1} 个 step 配置缺失字段: {e}")

        return PipelineConfig(
            rewrite=rewrite,
            enable=enable,
            sequence=sequence,
            steps=steps or default_steps(),
            hook_stages=hook_stages,
            plugin_disabled=list(plugins_raw.get("disabled", []) or []),
        )


class PipelineExecutor:
    def __init__(self, config: PipelineConfig, rewriter: UrlRewriter | None = None):
        self.config = config
        self.rewriter = rewriter or UrlRewriter(config.rewrite)
        self._chains: Dict[str, List[StepConfig]] = {}
        self._instances: Dict[str, Any] = {}
        _plugins.initialize_plugins()

    @property
    def active(self) -> bool:
        return self.config.enable and self.rewriter.active

    def hooks(self) -> Dict[str, List[StepConfig]]:
        """hook -> 已排序步骤 (包括禁用的步骤)"""
        names: List[str] = []
        for s in self.config.steps:
            for h in s.hooks:
                if h not in names:
                    names.append(h)
        return {h: self._chain(h) for h in names}

    def apply(self, hook: str, value: Any, context: RewriteContext | None = None) -> Any:
        """把值交给 hook 上的所有步骤, 返回最终值"""
        context = context or RewriteContext()
        if not self.active:
            return value
        stats = context.shared.setdefault("__stats", {}).setdefault(
            hook, {"stage": self.config.stage_of(hook), "calls": 0, "changed": 0, "errors": 0}
        )
        for step in self._chain(hook):
            if not step.enabled or step.module in self.config.plugin_disabled:
                continue
            if _plugins.plugin_registry.is_disabled(step.module):
                continue
            result = self._call_step(step, context, value)
            stats["calls"] += 1
            if not result["ok"]:
                stats["errors"] += 1
                logger.error(f"[produp.pipeline] 步骤 {step.name} 失败 (hook={hook}): {result.get('error')}")
                if not step.skip_on_error:
                    raise RuntimeError(f"步骤 {step.name} 失败: {result.get('error')}")
                continue
            if result["changed"]:
                stats["changed"] += 1
            value = result["value"]
        return value

    def _chain(self, hook: str) -> List[StepConfig]:
        if hook not in self._chains:
            self._chains[hook] = self._resolve_order([s for s in self.config.steps if hook in s.hooks])
        return self._chains[hook]

    def _call_step(self, step: StepConfig, context: RewriteContext, value: Any) -> Dict[str, Any]:
        step_config = {**step.config, "rewriter": self.rewriter}
        registry = _plugins.plugin_registry
        if not step.clazz and registry.has_plugin(step.module):
            return registry.call_plugin(step.module, context, value, step_config)
        try:
            runner = self._instantiate(step)
            new_value = runner.run(context, value, step_config)
        except Exception as e:
            return {"ok": False, "changed": False, "value": value, "error": str(e)}
        return {"ok": True, "changed": new_value is not value and new_value != value, "value": new_value}

    def _instantiate(self, step: StepConfig):
        if step.name in self._instances:
            return self._instances[step.name]
        # 注册名已由插件注册表处理, 这里只解析 python 模块路径
        mod = importlib.import_module(step.module)
        runner = None
        if step.clazz:
            runner = getattr(mod, step.clazz)(self.rewriter)
        elif hasattr(mod, "Runner"):
            runner = getattr(mod, "Runner")(self.rewriter)
        else:
            # 尝试模块内唯一 BaseModule 子类
            for attr in dir(mod):
                obj = getattr(mod, attr)
                if isinstance(obj, type) and issubclass(obj, BaseModule) and obj is not BaseModule:
                    runner = obj(self.rewriter)
                    break
        if runner is None:
            raise AttributeError("无法实例化模块: 未找到合适的 Runner/BaseModule 子类")
        if not hasattr(runner, "run"):
            raise AttributeError("runner 缺少 run(context, value, config) 方法")
        self._instances[step.name] = runner
        return runner

    # 拓扑排序 + order/sequence 数值 + 原始顺序
    def _resolve_order(self, steps: List[StepConfig]) -> List[StepConfig]:
        name_map = {s.name: s for s in steps}
        edges: Dict[str, Set[str]] = {s.name: set() for s in steps}  # from -> to
        for s in steps:
            for dep in set(s.depends):
                if dep not in name_map:
                    logger.warning(f"[produp.pipeline] {s.name} depends 目标不存在: {dep}")
                    continue
                edges[dep].add(s.name)
        # 计算入度
        indeg = {k: 0 for k in edges}
        for frm, tos in edges.items():
            for t in tos:
                indeg[t] += 1
        # 统一顺序控制：若提供 sequence 列表，则其位置优先，其次 order，再次原始出现顺序
        seq_pos = {name: idx for idx, name in enumerate(self.config.sequence)}
        order_map = {
            s.name: (seq_pos.get(s.name, 10_000), s.order if s.order is not None else 10_000, i)
            for i, s in enumerate(steps)
        }
        ready = [name for name, d in indeg.items() if d == 0]
        ready.sort(key=lambda n: order_map[n])
        result: List[str] = []
        while ready:
            n = ready.pop(0)
            result.append(n)
            for m in edges[n]:
                indeg[m] -= 1
                if indeg[m] == 0:
                    ready.append(m)
            ready.sort(key=lambda x: order_map[x])
        if len(result) != len(steps):
            cycle = [n for n, d in indeg.items() if d > 0]
            raise RuntimeError(f"检测到依赖环: {cycle}")
        return [name_map[n] for n in result]


def load_executor(
    config_path: str | Path | None = None,
    local_base: str | None = None,
    production_base: str | None = None,
) -> PipelineExecutor:
    """读取配置 (可选) 并用命令行参数覆盖基础 URL"""
    cfg = PipelineLoader.load(config_path) if config_path else PipelineConfig(steps=default_steps())
    if local_base is not None or production_base is not None:
        cfg.rewrite = RewriteConfig.create(
            local_base if local_base is not None else cfg.rewrite.source_base,
            production_base if production_base is not None else cfg.rewrite.target_base,
            url_keys=cfg.rewrite.url_keys,
        )
    return PipelineExecutor(cfg)


__all__ = [
    "STAGES",
    "HOOK_STAGES",
    "PipelineConfig",
    "StepConfig",
    "PipelineLoader",
    "PipelineExecutor",
    "default_steps",
    "load_executor",
]
