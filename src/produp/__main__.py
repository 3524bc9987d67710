"""produp 包入口：默认委托到 Typer CLI。

示例：
    python -m produp hooks
    python -m produp plugins
    python -m produp html page.html -c produp.toml
"""
from __future__ import annotations

from .cli import app


def main():
        app()


if __name__ == "__main__":  # pragma: no cover
        main()
