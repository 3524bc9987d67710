"""附件 URL 相关模块 (post_fetch / pre_render 阶段)

  attachment_url     附件 URL 字符串
  image_src          [url, width, height, ...] 元组, 仅改第 0 项
  image_srcset       {width: {"url": ..., "descriptor": ..., "value": ...}}
  image_attributes   <img> 属性字典, src 前缀替换, srcset 逐候选替换
"""
from __future__ import annotations

from typing import Any, Dict, Mapping

from .base import BaseModule, RewriteContext, rebuild_sequence


class AttachmentUrlModule(BaseModule):
    name = "attachment_url"
    hooks = ["attachment_url"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        rewriter = self._resolve_rewriter(config)
        return self._report(value, rewriter.rewrite(value))


class ImageSrcModule(BaseModule):
    name = "image_src"
    hooks = ["attachment_image_src"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if not value or not isinstance(value, (list, tuple)):
            return value
        rewriter = self._resolve_rewriter(config)
        new_value = [rewriter.rewrite(value[0]), *value[1:]]
        return self._report(value, rebuild_sequence(value, new_value))


class ImageSrcsetModule(BaseModule):
    name = "image_srcset"
    hooks = ["attachment_image_srcset"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if not value or not isinstance(value, Mapping):
            return value
        rewriter = self._resolve_rewriter(config)
        out = {}
        for width, source in value.items():
            if isinstance(source, Mapping) and "url" in source:
                source = {**source, "url": rewriter.rewrite(source["url"])}
            out[width] = source
        return self._report(value, out)


class ImageAttributesModule(BaseModule):
    name = "image_attributes"
    hooks = ["attachment_image_attributes"]

    def run(self, context: RewriteContext, value: Any, config: Dict[str, Any]):
        if not isinstance(value, Mapping):
            return value
        rewriter = self._resolve_rewriter(config)
        out = dict(value)
        if "srcset" in out:
            out["srcset"] = rewriter.rewrite_srcset(out["srcset"])
        if "src" in out:
            out["src"] = rewriter.rewrite(out["src"])
        return self._report(value, out)


__all__ = [
    "AttachmentUrlModule",
    "ImageSrcModule",
    "ImageSrcsetModule",
    "ImageAttributesModule",
]
