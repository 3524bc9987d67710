"""插件系统 - 基于 pluggy 的成熟插件框架"""
from __future__ import annotations

import importlib.metadata
from typing import Dict, Any, Optional, List
from pluggy import PluginManager, HookimplMarker, HookspecMarker
import logging

# Hook 规范标记
hookspec = HookspecMarker("produp")
hookimpl = HookimplMarker("produp")

# 日志
logger = logging.getLogger(__name__)
_initialized = False


class ProdupSpec:
    """produp 插件规范"""

    @hookspec
    def run(self, context, value, config: Dict[str, Any]) -> Any:
        """插件执行入口

        Args:
            context: RewriteContext, 宿主提供的单次调用信号
            value: 待变换的值 (URL / 结构化响应 / HTML 片段)
            config: 步骤配置, 其中 "rewriter" 为当前会话的 UrlRewriter

        Returns:
            变换后的值; 不处理时原样返回
        """


class PluginRegistry:
    """插件注册表管理器"""

    def __init__(self):
        self._pm = PluginManager("produp")
        self._pm.add_hookspecs(ProdupSpec)
        self._builtin_registry = {}
        self._discovered_plugins = {}
        self._origins = {}  # name -> entry_point|builtin
        self._disabled = set()

    def register_builtin_module(self, name: str, module_class: Any):
        """登记内置模块, 在 discover_plugins 时包装注册"""
        if self._pm.has_plugin(name):
            return
        self._builtin_registry[name] = module_class
        logger.debug(f"登记内置模块: {name}")

    def discover_plugins(self):
        """自动发现插件"""
        # 1. entry_points 插件
        try:
            entry_points = importlib.metadata.entry_points(group="produp.plugins")
        except Exception as e:
            logger.debug(f"没有找到 entry_points 插件: {e}")
            entry_points = []
        for entry_point in entry_points:
            try:
                plugin = entry_point.load()
                if not self._pm.has_plugin(entry_point.name):
                    self._pm.register(plugin, name=entry_point.name)
                    self._discovered_plugins[entry_point.name] = plugin
                    self._origins[entry_point.name] = "entry_point"
                    logger.info(f"发现插件: {entry_point.name} ({entry_point.module})")
            except Exception as e:
                logger.warning(f"加载插件失败 {entry_point.name}: {e}")

        # 2. 内置模块包装为插件 (同名 entry_point 优先)
        for name, module_class in self._builtin_registry.items():
            if self._pm.has_plugin(name) or name in self._disabled:
                continue
            wrapper = ModuleWrapper(module_class)
            self._pm.register(wrapper, name=name)
            self._discovered_plugins[name] = wrapper
            self._origins[name] = "builtin"
            logger.debug(f"注册内置模块包装器: {name}")

    def get_plugin(self, name: str) -> Optional[Any]:
        """获取插件"""
        return self._pm.get_plugin(name)

    def list_plugins(self) -> List[str]:
        """列出所有可用插件"""
        names = set(self._discovered_plugins.keys()) | set(self._builtin_registry.keys())
        return sorted(names)

    def list_plugins_status(self) -> List[Dict[str, Any]]:
        """列出插件的状态与来源"""
        items = []
        for n in self.list_plugins():
            items.append({
                "name": n,
                "enabled": self.has_plugin(n) and not self.is_disabled(n),
                "origin": self._origins.get(n, "unknown"),
            })
        return items

    def call_plugin(self, name: str, context, value: Any, config: Dict[str, Any]) -> Dict[str, Any]:
        """调用插件

        Returns:
            结果字典:
            - ok: bool - 是否执行成功
            - changed: bool - 值是否发生变化
            - value: 变换后的值 (失败时为原值)
            - error: str - 错误信息（如果有）
        """
        plugin = self.get_plugin(name)
        if not plugin:
            raise ValueError(f"插件不存在: {name}")

        try:
            # 直接调用目标插件的 run（避免广播到所有插件）
            run_fn = getattr(plugin, "run", None)
            if not callable(run_fn):
                return {"ok": False, "changed": False, "value": value, "error": "插件未实现 run"}
            new_value = run_fn(context, value, config)
            return {"ok": True, "changed": new_value is not value and new_value != value, "value": new_value}
        except Exception as e:
            logger.error(f"插件执行失败 {name}: {e}")
            return {"ok": False, "changed": False, "value": value, "error": str(e)}

    def has_plugin(self, name: str) -> bool:
        """检查插件是否存在"""
        return self._pm.has_plugin(name)

    def is_disabled(self, name: str) -> bool:
        return name in self._disabled

    def disable(self, name: str) -> bool:
        """禁用插件: 从 pluggy 注销并记录禁用集"""
        if name not in self.list_plugins():
            return False
        if self._pm.has_plugin(name):
            self._pm.unregister(name=name)
        self._disabled.add(name)
        return True

    def enable(self, name: str) -> bool:
        """启用插件: 从保存源重新注册"""
        if self._pm.has_plugin(name):
            self._disabled.discard(name)
            return True
        plugin = self._discovered_plugins.get(name)
        if plugin is None and name in self._builtin_registry:
            plugin = ModuleWrapper(self._builtin_registry[name])
            self._discovered_plugins[name] = plugin
            self._origins[name] = "builtin"
        if plugin is None:
            return False
        self._pm.register(plugin, name=name)
        self._disabled.discard(name)
        return True

    def get_origin(self, name: str) -> str:
        return self._origins.get(name, "unknown")


class ModuleWrapper:
    """内置模块包装器 - 将 BaseModule 子类适配为插件接口"""

    def __init__(self, module_class: Any):
        self.module_class = module_class

    def __repr__(self) -> str:
        return f"<ModuleWrapper {self.module_class.__name__}>"

    @hookimpl
    def run(self, context, value, config: Dict[str, Any]) -> Any:
        instance = self.module_class(config.get("rewriter"))
        return instance.run(context, value, config)


# 全局插件注册表实例
plugin_registry = PluginRegistry()


def create(name: str) -> Any:
    """获取插件实例"""
    plugin = plugin_registry.get_plugin(name)
    if not plugin:
        raise KeyError(f"插件不存在: {name}")
    return plugin


def initialize_plugins():
    """初始化插件系统"""
    global _initialized
    if _initialized:
        return
    from .registry import REGISTRY as builtin_registry
    for name, module_class in builtin_registry.items():
        plugin_registry.register_builtin_module(name, module_class)

    # 发现插件
    plugin_registry.discover_plugins()

    _initialized = True
    logger.info(f"插件系统初始化完成，发现 {len(plugin_registry.list_plugins())} 个插件")


__all__ = ["plugin_registry", "create", "initialize_plugins", "ProdupSpec", "hookimpl", "ModuleWrapper"]
