"""REST / 编辑器响应模块 (post_fetch 阶段)

职责: 后台媒体弹窗数据、REST 附件响应、编辑器原文、区块模式列表。
所有模块都不修改传入对象, 命中时返回新的字典/列表。
"""
from __future__ import annotations

from typing import Any, Dict, Mapping

from .base import BaseModule, RewriteContext

PATTERN_ROUTES = ("/wp/v2/block-patterns", "/wp/v2/patterns")


class MediaModalModule(BaseModule):
    """媒体弹窗数据: 只在后台界面整树按键名重写"""

    name = "media_modal"
    hooks = ["prepare_attachment_for_js"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if not context.admin or not value:
            return value
        rewriter = self._resolve_rewriter(config)
        return self._report(value, rewriter.rewrite_tree(value))


class RestAttachmentModule(BaseModule):
    name = "rest_attachment"
    hooks = ["rest_prepare_attachment"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if not context.rest_request or not isinstance(value, Mapping):
            return value
        rewriter = self._resolve_rewriter(config)
        data = dict(value)
        if "source_url" in data:
            data["source_url"] = rewriter.rewrite(data["source_url"])
        details = data.get("media_details")
        if isinstance(details, Mapping) and isinstance(details.get("sizes"), Mapping):
            sizes = {}
            for size, info in details["sizes"].items():
                if isinstance(info, Mapping) and "source_url" in info:
                    info = {**info, "source_url": rewriter.rewrite(info["source_url"])}
                sizes[size] = info
            data["media_details"] = {**details, "sizes": sizes}
        return self._report(value, data)


class EditorContentModule(BaseModule):
    """文章/页面/可复用区块: 编辑上下文下替换 content.raw 全文"""

    name = "editor_content"
    hooks = ["rest_prepare_post", "rest_prepare_page", "rest_prepare_wp_block"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if context.request_context != "edit" or not isinstance(value, Mapping):
            return value
        content = value.get("content")
        if not isinstance(content, Mapping) or "raw" not in content:
            return value
        rewriter = self._resolve_rewriter(config)
        data = dict(value)
        data["content"] = {**content, "raw": rewriter.replace_all(content["raw"])}
        return self._report(value, data)


class BlockPatternModule(BaseModule):
    """区块模式: 列表或单条记录, 替换每条的 content"""

    name = "block_patterns"
    hooks = ["rest_request_after_callbacks"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        routes = tuple(config.get("routes") or PATTERN_ROUTES)
        if not (context.route or "").startswith(routes):
            return value
        rewriter = self._resolve_rewriter(config)
        if isinstance(value, (list, tuple)) and value:
            # 模式列表
            out = [self._rewrite_record(rewriter, item) for item in value]
            return self._report(value, type(value)(out))
        if isinstance(value, Mapping) and "name" in value:
            # 单条模式
            return self._report(value, self._rewrite_record(rewriter, value))
        return value

    @staticmethod
    def _rewrite_record(rewriter, record: Any):
        if isinstance(record, Mapping) and "content" in record:
            return {**record, "content": rewriter.replace_all(record["content"])}
        return record


__all__ = [
    "PATTERN_ROUTES",
    "MediaModalModule",
    "RestAttachmentModule",
    "EditorContentModule",
    "BlockPatternModule",
]
