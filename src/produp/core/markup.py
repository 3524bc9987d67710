"""前台 HTML 输出模块 (pre_emit 阶段)

后台界面一律不处理, 只改面向访客的输出。
"""
from __future__ import annotations

from typing import Any, Dict

from .base import BaseModule, RewriteContext


class FrontendContentModule(BaseModule):
    name = "frontend_content"
    hooks = ["the_content"]
    order = 999

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if context.admin:
            return value
        rewriter = self._resolve_rewriter(config)
        return self._report(value, rewriter.replace_all(value))


class ProductImageHtmlModule(BaseModule):
    """商品主图 / 图库缩略图 / 图库整体 HTML"""

    name = "product_image_html"
    hooks = ["product_get_image", "product_image_thumbnail_html", "product_thumbnails"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if context.admin:
            return value
        rewriter = self._resolve_rewriter(config)
        return self._report(value, rewriter.rewrite_attribute_string(value))


class FinalContentModule(BaseModule):
    """正文 / 摘要 / 商品简述 的最终兜底"""

    name = "final_content"
    hooks = ["the_content", "the_excerpt", "short_description"]
    order = 9999

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if context.admin:
            return value
        rewriter = self._resolve_rewriter(config)
        return self._report(value, rewriter.rewrite_attribute_string(value))


__all__ = ["FrontendContentModule", "ProductImageHtmlModule", "FinalContentModule"]
