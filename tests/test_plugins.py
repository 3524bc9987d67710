import pytest

from produp.core import plugins
from produp.core.base import RewriteContext
from produp.core.rewriter import UrlRewriter

SRC = "http://local.test/wp-content/uploads"
TGT = "https://prod.example.com/uploads"


@pytest.fixture
def registry():
    plugins.initialize_plugins()
    return plugins.plugin_registry


def test_builtin_plugins_discovered(registry):
    names = registry.list_plugins()
    assert "final_content" in names
    assert registry.get_origin("final_content") == "builtin"
    status = {i["name"]: i for i in registry.list_plugins_status()}
    assert status["attachment_url"]["enabled"]


def test_call_plugin(registry):
    cfg = {"rewriter": UrlRewriter.from_bases(SRC, TGT)}
    result = registry.call_plugin("attachment_url", RewriteContext(), f"{SRC}/a.jpg", cfg)
    assert result == {"ok": True, "changed": True, "value": f"{TGT}/a.jpg"}


def test_call_plugin_error_reported(registry):
    result = registry.call_plugin("attachment_url", RewriteContext(), f"{SRC}/a.jpg", {})
    assert result["ok"] is False
    assert result["value"] == f"{SRC}/a.jpg"
    assert "rewriter" in result["error"]


def test_unknown_plugin(registry):
    with pytest.raises(ValueError):
        registry.call_plugin("nope", RewriteContext(), "x", {})
    with pytest.raises(KeyError):
        plugins.create("nope")


def test_disable_enable(registry):
    assert registry.disable("image_src")
    try:
        assert not registry.has_plugin("image_src")
        assert registry.is_disabled("image_src")
    finally:
        assert registry.enable("image_src")
    assert registry.has_plugin("image_src")
    assert not registry.disable("nope")
