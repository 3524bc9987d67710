from produp.core.base import RewriteConfig
from produp.pipeline import PipelineConfig, StepConfig, PipelineExecutor, default_steps

REWRITE = RewriteConfig.create("http://l/u", "https://p/u")


def build_config(sequence=None):
    steps = [
        StepConfig(name="a", enabled=True, module="final_content", hooks=["the_content"], order=20),
        StepConfig(name="b", enabled=True, module="frontend_content", hooks=["the_content"], order=10),
        StepConfig(name="c", enabled=True, module="product_image_html", hooks=["the_content"], depends=["a"], order=5),
    ]
    return PipelineConfig(rewrite=REWRITE, sequence=sequence or [], steps=steps)


def test_order_and_depends():
    ex = PipelineExecutor(build_config())
    assert [s.name for s in ex._chain("the_content")] == ["b", "a", "c"]


def test_sequence_overrides_order():
    ex = PipelineExecutor(build_config(sequence=["a", "b"]))
    assert [s.name for s in ex._chain("the_content")] == ["a", "b", "c"]


def test_default_chain_for_the_content():
    ex = PipelineExecutor(PipelineConfig(rewrite=REWRITE, steps=default_steps()))
    assert [s.name for s in ex._chain("the_content")] == ["frontend_content", "final_content"]
    assert [s.name for s in ex._chain("the_excerpt")] == ["final_content"]
    assert ex._chain("unknown_hook") == []
