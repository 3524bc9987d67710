"""上传目录 URL 重写器

所有变换最终都落到同一个原语: 源基础 URL 前缀替换为目标基础 URL。

提供:
  rewrite(url)                      单个 URL, 仅前缀匹配
  replace_all(text)                 全文子串替换 (不锚定前缀)
  rewrite_srcset(value)             srcset 候选列表, 逐个候选走 rewrite
  rewrite_tree(value)               嵌套 mapping/sequence, 按键名过滤
  rewrite_attribute_string(html)    HTML 片段中的 srcset / data-srcset + 全文兜底
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from .base import JSONValue, RewriteConfig, rebuild_sequence

# srcset="..." / data-srcset='...' (引号需成对)
_SRCSET_ATTR_RE = re.compile(
    r"""(?<![\w-])(?P<name>(?:data-)?srcset)\s*=\s*(?P<quote>["'])(?P<value>.*?)(?P=quote)""",
    re.DOTALL,
)
# 候选列表中每个候选的 URL 部分: 行首或逗号之后的第一个非空白片段
_CANDIDATE_RE = re.compile(r"(^|,)(\s*)([^\s,]+)")


class UrlRewriter:
    """本地上传 URL → 生产上传 URL

    不持有除配置以外的任何状态, 可在多线程/多请求间共享。
    """

    def __init__(self, config: RewriteConfig):
        self.config = config

    @classmethod
    def from_bases(cls, source_base: str, target_base: str, **kwargs) -> "UrlRewriter":
        return cls(RewriteConfig.create(source_base, target_base, **kwargs))

    @property
    def source_base(self) -> str:
        return self.config.source_base

    @property
    def target_base(self) -> str:
        return self.config.target_base

    @property
    def active(self) -> bool:
        return self.config.active

    # ---------- 标量 ----------
    def rewrite(self, url: Any) -> Any:
        if not isinstance(url, str) or not url:
            return url
        if not self.active:
            return url
        if url.startswith(self.source_base):
            return self.target_base + url[len(self.source_base):]
        return url

    def replace_all(self, text: Any) -> Any:
        """全文替换, 位置不限 (编辑器原文 / 前台正文 使用)"""
        if not isinstance(text, str) or not text or not self.active:
            return text
        return text.replace(self.source_base, self.target_base)

    def rewrite_srcset(self, value: Any) -> Any:
        """逐个候选重写 URL, 保留宽度/密度描述符与原有空白"""
        if not isinstance(value, str) or not value or not self.active:
            return value
        if self.source_base not in value:
            return value
        return _CANDIDATE_RE.sub(lambda m: m.group(1) + m.group(2) + self.rewrite(m.group(3)), value)

    # ---------- 结构化树 ----------
    def is_url_key(self, key: Any) -> bool:
        return isinstance(key, str) and any(k in key for k in self.config.url_keys)

    def rewrite_tree(self, value: JSONValue) -> JSONValue:
        if not self.active:
            return value
        return self._visit(value, None)

    def _visit(self, node: JSONValue, key: Any) -> JSONValue:
        if isinstance(node, str):
            # 序列元素没有键名, 不参与重写
            if key is not None and self.is_url_key(key):
                return self.rewrite(node)
            return node
        if isinstance(node, Mapping):
            return {k: self._visit(v, k) for k, v in node.items()}
        if isinstance(node, (list, tuple)):
            return rebuild_sequence(node, [self._visit(item, None) for item in node])
        return node

    # ---------- HTML 属性串 ----------
    def rewrite_attribute_string(self, html: Any) -> Any:
        if not isinstance(html, str) or not html or not self.active:
            return html
        if self.source_base not in html:
            return html
        html = _SRCSET_ATTR_RE.sub(self._splice_srcset, html)
        # 兜底: 覆盖 src="..." 以及上面正则没匹配到的写法 (无引号等)
        return html.replace(self.source_base, self.target_base)

    def _splice_srcset(self, m: re.Match) -> str:
        name = m.group("name")
        value = m.group("value").replace(self.source_base, self.target_base)
        # 统一为双引号; 值内含双引号时保留原引号
        quote = m.group("quote") if '"' in value else '"'
        return f"{name}={quote}{value}{quote}"


__all__ = ["UrlRewriter"]
