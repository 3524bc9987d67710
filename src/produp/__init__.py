"""produp: 本地上传 URL → 生产上传 URL 重写库。

导出:
- UrlRewriter
- RewriteConfig
- RewriteContext
- PipelineExecutor / PipelineLoader / load_executor
"""

from produp.core.base import RewriteConfig, RewriteContext
from produp.core.rewriter import UrlRewriter
from produp.pipeline import PipelineExecutor, PipelineLoader, load_executor

__all__ = [
    "UrlRewriter",
    "RewriteConfig",
    "RewriteContext",
    "PipelineExecutor",
    "PipelineLoader",
    "load_executor",
]
