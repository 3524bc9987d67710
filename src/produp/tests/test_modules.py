"""拦截模块测试 - 每个模块的形状处理与上下文守卫"""
from collections import namedtuple

import pytest

from produp.core.base import RewriteContext
from produp.core.registry import REGISTRY, create
from produp.core.rewriter import UrlRewriter

SRC = "http://local.test/wp-content/uploads"
TGT = "https://prod.example.com/uploads"


@pytest.fixture
def rw():
    return UrlRewriter.from_bases(SRC, TGT)


def run(name, rw, value, context=None, **config):
    mod = create(name, rw)
    return mod.run(context or RewriteContext(), value, config)


class TestRegistry:
    def test_all_modules_registered(self):
        assert set(REGISTRY) == {
            "attachment_url", "image_src", "image_srcset", "image_attributes",
            "media_modal", "rest_attachment", "editor_content", "block_patterns",
            "frontend_content", "product_image_html", "final_content",
        }

    def test_unknown_module(self):
        with pytest.raises(KeyError):
            create("nope")

    def test_missing_rewriter(self):
        mod = create("attachment_url")
        with pytest.raises(ValueError):
            mod.run(RewriteContext(), f"{SRC}/a.jpg", {})

    def test_rewriter_from_config(self, rw):
        mod = create("attachment_url")
        assert mod.run(RewriteContext(), f"{SRC}/a.jpg", {"rewriter": rw}) == f"{TGT}/a.jpg"


class TestAttachmentModules:
    def test_attachment_url(self, rw):
        assert run("attachment_url", rw, f"{SRC}/a.jpg") == f"{TGT}/a.jpg"

    def test_image_src_list(self, rw):
        image = [f"{SRC}/a.jpg", 300, 200, False]
        assert run("image_src", rw, image) == [f"{TGT}/a.jpg", 300, 200, False]
        assert image[0] == f"{SRC}/a.jpg"

    def test_image_src_tuple_and_empty(self, rw):
        assert run("image_src", rw, (f"{SRC}/a.jpg", 1, 1)) == (f"{TGT}/a.jpg", 1, 1)
        assert run("image_src", rw, False) is False
        assert run("image_src", rw, []) == []

    def test_image_src_namedtuple(self, rw):
        Image = namedtuple("Image", ["url", "width"])
        out = run("image_src", rw, Image(f"{SRC}/a.jpg", 300))
        assert out == Image(f"{TGT}/a.jpg", 300)
        assert isinstance(out, Image)

    def test_image_srcset(self, rw):
        sources = {
            300: {"url": f"{SRC}/a-300.jpg", "descriptor": "w", "value": 300},
            600: {"descriptor": "w", "value": 600},
        }
        out = run("image_srcset", rw, sources)
        assert out[300]["url"] == f"{TGT}/a-300.jpg"
        assert out[300]["value"] == 300
        assert out[600] == {"descriptor": "w", "value": 600}
        assert run("image_srcset", rw, None) is None

    def test_image_attributes(self, rw):
        attr = {
            "src": f"{SRC}/a.jpg",
            "srcset": f"{SRC}/a.jpg 1x, {SRC}/a@2x.jpg 2x",
            "alt": f"{SRC}/alt-text",
        }
        out = run("image_attributes", rw, attr)
        assert out["src"] == f"{TGT}/a.jpg"
        assert out["srcset"] == f"{TGT}/a.jpg 1x, {TGT}/a@2x.jpg 2x"
        assert out["alt"] == f"{SRC}/alt-text"


class TestRestModules:
    def test_media_modal_only_admin(self, rw):
        data = {"url": f"{SRC}/a.jpg", "sizes": {"full": {"url": f"{SRC}/a.jpg"}}}
        assert run("media_modal", rw, data, RewriteContext(admin=False)) is data
        out = run("media_modal", rw, data, RewriteContext(admin=True))
        assert out["sizes"]["full"]["url"] == f"{TGT}/a.jpg"

    def test_rest_attachment(self, rw):
        data = {
            "id": 1,
            "source_url": f"{SRC}/a.jpg",
            "media_details": {
                "width": 800,
                "sizes": {
                    "thumbnail": {"source_url": f"{SRC}/a-150.jpg", "width": 150},
                    "odd": "not-a-mapping",
                },
            },
        }
        assert run("rest_attachment", rw, data, RewriteContext(rest_request=False)) is data
        out = run("rest_attachment", rw, data, RewriteContext(rest_request=True))
        assert out["source_url"] == f"{TGT}/a.jpg"
        assert out["media_details"]["sizes"]["thumbnail"] == {"source_url": f"{TGT}/a-150.jpg", "width": 150}
        assert out["media_details"]["sizes"]["odd"] == "not-a-mapping"
        assert out["media_details"]["width"] == 800
        assert data["source_url"] == f"{SRC}/a.jpg"

    def test_editor_content_requires_edit(self, rw):
        raw = f'<!-- wp:image --><figure><img src="{SRC}/a.jpg"/></figure>'
        data = {"id": 3, "content": {"raw": raw, "rendered": "x"}}
        assert run("editor_content", rw, data, RewriteContext(request_context="view")) is data
        out = run("editor_content", rw, data, RewriteContext(request_context="edit"))
        assert out["content"]["raw"] == raw.replace(SRC, TGT)
        assert out["content"]["rendered"] == "x"

    def test_editor_content_without_raw(self, rw):
        data = {"content": {"rendered": f"{SRC}/a.jpg"}}
        assert run("editor_content", rw, data, RewriteContext(request_context="edit")) is data

    def test_block_patterns_list(self, rw):
        data = [
            {"name": "p/one", "content": f'<img src="{SRC}/a.jpg">'},
            {"name": "p/two"},
        ]
        ctx = RewriteContext(route="/wp/v2/block-patterns/patterns")
        out = run("block_patterns", rw, data, ctx)
        assert out[0]["content"] == f'<img src="{TGT}/a.jpg">'
        assert out[1] == {"name": "p/two"}

    def test_block_patterns_single(self, rw):
        data = {"name": "p/one", "content": f"{SRC}/a.jpg"}
        out = run("block_patterns", rw, data, RewriteContext(route="/wp/v2/patterns/p-one"))
        assert out["content"] == f"{TGT}/a.jpg"

    def test_block_patterns_guards(self, rw):
        data = {"content": f"{SRC}/a.jpg"}
        # 没有 name 字段, 不是单条模式
        assert run("block_patterns", rw, data, RewriteContext(route="/wp/v2/patterns")) is data
        single = {"name": "x", "content": f"{SRC}/a.jpg"}
        assert run("block_patterns", rw, single, RewriteContext(route="/wp/v2/posts")) is single

    def test_block_patterns_custom_routes(self, rw):
        data = {"name": "x", "content": f"{SRC}/a.jpg"}
        out = run("block_patterns", rw, data, RewriteContext(route="/my/patterns"), routes=["/my/patterns"])
        assert out["content"] == f"{TGT}/a.jpg"


class TestMarkupModules:
    HTML = f'<p>hi</p><img srcset="{SRC}/a.jpg 1x, {SRC}/b.jpg 2x" src="{SRC}/a.jpg">'

    @pytest.mark.parametrize("name", ["frontend_content", "product_image_html", "final_content"])
    def test_admin_untouched(self, rw, name):
        assert run(name, rw, self.HTML, RewriteContext(admin=True)) is self.HTML

    @pytest.mark.parametrize("name", ["frontend_content", "product_image_html", "final_content"])
    def test_frontend_rewritten(self, rw, name):
        out = run(name, rw, self.HTML, RewriteContext(admin=False))
        assert out == self.HTML.replace(SRC, TGT)
