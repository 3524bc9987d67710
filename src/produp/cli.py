"""Typer CLI: 对单个 URL / HTML 片段 / JSON 响应执行重写, 或查看 hook 与插件。

命令示例:
  produp url http://local.test/wp-content/uploads/a.jpg --local http://local.test/wp-content/uploads --production https://cdn.example.com/uploads
  produp html page.html -c produp.toml
  produp html page.html -c produp.toml --admin          # 后台界面: 原样输出
  produp json attachment.json -c produp.toml --hook rest_prepare_attachment --rest
  produp hooks -c produp.toml
"""
from __future__ import annotations
import json as _json
import sys
import typer
from pathlib import Path
from typing import Optional
from rich.table import Table
from rich.console import Console

from .core.base import RewriteContext
from .pipeline import PipelineLoader, load_executor
from .core import plugins as _plugins

app = typer.Typer(add_completion=False, help="produp: 本地上传 URL → 生产上传 URL 重写工具")
console = Console()
err_console = Console(stderr=True)

ConfigOpt = typer.Option(None, "-c", "--config", help="TOML 配置路径")
LocalOpt = typer.Option(None, "--local", help="本地上传基础 URL (覆盖配置)")
ProductionOpt = typer.Option(None, "--production", help="生产上传基础 URL (覆盖配置)")


def _apply_toml_plugin_toggles(config: Path | None):
    if not config:
        return
    try:
        cfg = PipelineLoader.load(str(config))
    except (FileNotFoundError, ValueError) as e:
        raise typer.BadParameter(str(e))
    pm = _plugins.plugin_registry
    for n in cfg.plugin_disabled:
        pm.disable(n)


def _read_input(file: Optional[Path]) -> str:
    if file is None or str(file) == "-":
        return sys.stdin.read()
    if not file.is_file():
        raise typer.BadParameter(f"文件不存在: {file}")
    return file.read_text(encoding="utf-8")


def _executor(config: Optional[Path], local: Optional[str], production: Optional[str]):
    try:
        ex = load_executor(config, local_base=local, production_base=production)
    except (FileNotFoundError, ValueError) as e:
        raise typer.BadParameter(str(e))
    if not ex.active:
        err_console.print("[yellow]重写未启用 (生产 URL 为空或与本地相同)，原样输出[/yellow]")
    return ex


@app.command()
def url(
    value: str = typer.Argument(..., help="待重写的 URL"),
    config: Path = ConfigOpt,
    local: Optional[str] = LocalOpt,
    production: Optional[str] = ProductionOpt,
):
    """单个 URL 前缀重写。"""
    ex = _executor(config, local, production)
    typer.echo(ex.apply("attachment_url", value))


@app.command()
def html(
    file: Optional[Path] = typer.Argument(None, help="HTML 文件 (省略或 - 读取 stdin)"),
    hook: str = typer.Option("the_content", "--hook", help="输出点 hook 名"),
    admin: bool = typer.Option(False, "--admin", help="后台界面输出 (不重写)"),
    config: Path = ConfigOpt,
    local: Optional[str] = LocalOpt,
    production: Optional[str] = ProductionOpt,
):
    """HTML 片段重写 (srcset / data-srcset + 全文兜底)。"""
    ex = _executor(config, local, production)
    text = _read_input(file)
    typer.echo(ex.apply(hook, text, RewriteContext(admin=admin)), nl=False)


@app.command("json")
def json_(
    file: Optional[Path] = typer.Argument(None, help="JSON 文件 (省略或 - 读取 stdin)"),
    hook: str = typer.Option("tree", "--hook", help="hook 名; tree 表示按键名整树重写"),
    context: str = typer.Option("view", "--context", help="REST 请求 context 参数"),
    route: str = typer.Option("", "--route", help="REST 路由"),
    rest: bool = typer.Option(True, "--rest/--no-rest", help="是否视为 REST 请求"),
    admin: bool = typer.Option(False, "--admin", help="后台界面"),
    config: Path = ConfigOpt,
    local: Optional[str] = LocalOpt,
    production: Optional[str] = ProductionOpt,
):
    """结构化响应重写。"""
    ex = _executor(config, local, production)
    try:
        data = _json.loads(_read_input(file))
    except ValueError as e:
        raise typer.BadParameter(f"JSON 解析失败: {e}")
    ctx = RewriteContext(admin=admin, rest_request=rest, request_context=context, route=route)
    if hook == "tree":
        result = ex.rewriter.rewrite_tree(data) if ex.active else data
    else:
        result = ex.apply(hook, data, ctx)
    typer.echo(_json.dumps(result, ensure_ascii=False, indent=2))


@app.command()
def hooks(
    config: Path = ConfigOpt,
):
    """列出 hook、所属阶段与绑定步骤 (按执行顺序)。"""
    ex = _executor(config, None, None)
    table = Table(title="Hooks")
    table.add_column("Hook", style="cyan")
    table.add_column("Stage")
    table.add_column("Steps")
    chains = ex.hooks()
    for hook_name in sorted(chains, key=lambda h: (ex.config.stage_of(h), h)):
        steps = ", ".join(
            f"{s.name}({s.order if s.order is not None else '-'})" + ("" if s.enabled else " ❌")
            for s in chains[hook_name]
        )
        table.add_row(hook_name, ex.config.stage_of(hook_name), steps)
    console.print(table)
    state = "✅" if ex.active else "❌ (生产 URL 为空或与本地相同)"
    console.print(f"重写状态: {state}")


@app.command()
def plugins(
    config: Path = typer.Option(None, "-c", "--config", help="TOML 配置路径(用于应用 [plugins] 开关)"),
):
    """列出已发现的插件及其来源 (builtin / entry_point)。"""
    table = Table(title="Discovered Plugins")
    table.add_column("Name", style="cyan")
    table.add_column("Enabled", justify="center")
    table.add_column("Source")
    table.add_column("Obj")
    _plugins.initialize_plugins()
    pm = _plugins.plugin_registry
    _apply_toml_plugin_toggles(config)
    for n in pm.list_plugins():
        obj = pm.get_plugin(n)
        enabled = "✅" if pm.has_plugin(n) and not pm.is_disabled(n) else "❌"
        table.add_row(n, enabled, pm.get_origin(n), str(obj))
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
