"""模块注册表"""
from __future__ import annotations

from typing import Dict, Type
from .base import BaseModule
from .attachment import AttachmentUrlModule, ImageSrcModule, ImageSrcsetModule, ImageAttributesModule
from .rest import MediaModalModule, RestAttachmentModule, EditorContentModule, BlockPatternModule
from .markup import FrontendContentModule, ProductImageHtmlModule, FinalContentModule


REGISTRY: Dict[str, Type[BaseModule]] = {
    cls.name: cls for cls in [
        AttachmentUrlModule,
        ImageSrcModule,
        ImageSrcsetModule,
        ImageAttributesModule,
        MediaModalModule,
        RestAttachmentModule,
        EditorContentModule,
        BlockPatternModule,
        FrontendContentModule,
        ProductImageHtmlModule,
        FinalContentModule,
    ]
}

def create(name: str, rewriter=None) -> BaseModule:
    if name not in REGISTRY:
        raise KeyError(f"未注册模块: {name}")
    return REGISTRY[name](rewriter)

__all__ = ["create", "REGISTRY"]
