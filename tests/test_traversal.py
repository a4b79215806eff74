"""Tests for the forward topological traversal of a pipeline."""

from typing import Any

import pytest

import pipegraph as pg
from pipegraph._node import ArtifactId, Node


class Recorder(pg.PipelineVisitorBase):
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.values: list[tuple[pg.Artifact, Node | None]] = []

    def enter_composite_transform(self, node: Node) -> None:
        self.events.append(("enter", node.full_name))

    def leave_composite_transform(self, node: Node) -> None:
        self.events.append(("leave", node.full_name))

    def visit_transform(self, node: Node) -> None:
        self.events.append(("visit", node.full_name))

    def visit_value(self, value: pg.Artifact, producer: Node | None) -> None:
        self.events.append(("value", repr(value)))
        self.values.append((value, producer))


@pg.composite("CountWords")
def count_words(lines: Any) -> Any:
    return lines | "Split" >> pg.Map(str.split) | "Sum" >> pg.Combine(sum)


@pytest.fixture
def pipeline() -> pg.Pipeline:
    pipeline = pg.Pipeline()
    first = pipeline.apply(pg.Create(["a"], label="first"), name="ReadA")
    second = pipeline.apply(pg.Create(["b"], label="second"), name="ReadB")
    (first, second) | "Merge" >> pg.Flatten() | count_words
    return pipeline


def test_event_order(pipeline: pg.Pipeline) -> None:
    recorder = Recorder()

    pipeline.traverse_topologically(recorder)

    merged, split, summed = (repr(pipeline.artifact(ArtifactId(h))) for h in (2, 3, 4))
    assert recorder.events == [
        ("visit", "ReadA"),
        ("value", "Artifact#0 'first'"),
        ("visit", "ReadB"),
        ("value", "Artifact#1 'second'"),
        ("visit", "Merge"),
        ("value", merged),
        ("enter", "CountWords"),
        ("visit", "CountWords/Split"),
        ("value", split),
        ("visit", "CountWords/Sum"),
        ("value", summed),
        ("leave", "CountWords"),
    ]


def test_every_value_visited_once_with_primitive_producer(pipeline: pg.Pipeline) -> None:
    recorder = Recorder()

    pipeline.traverse_topologically(recorder)

    visited = [value for value, _ in recorder.values]
    assert len(visited) == len(set(visited))
    assert set(visited) == set(pipeline.values())
    for value, producer in recorder.values:
        assert producer is value.producer
        assert producer is not None
        assert not producer.is_composite


def test_producers_are_visited_before_consumers(pipeline: pg.Pipeline) -> None:
    recorder = Recorder()

    pipeline.traverse_topologically(recorder)

    visits = [name for kind, name in recorder.events if kind == "visit"]
    for node in pipeline.nodes():
        if node.is_composite:
            continue
        for handle in node.inputs or ():
            producer = pipeline.artifact(handle).producer
            assert visits.index(producer.full_name) < visits.index(node.full_name)


def test_external_input_is_visited_before_its_consumer() -> None:
    pipeline = pg.Pipeline()
    external = pipeline.create_artifact("external")
    external | "Use" >> pg.Map(str)
    recorder = Recorder()

    pipeline.traverse_topologically(recorder)

    assert recorder.events[:2] == [("value", "Artifact#0 'external'"), ("visit", "Use")]
    assert recorder.values[0] == (external, None)


def test_empty_pipeline() -> None:
    recorder = Recorder()

    pg.Pipeline().traverse_topologically(recorder)

    assert recorder.events == []


def test_second_traversal_fails(pipeline: pg.Pipeline) -> None:
    pipeline.traverse_topologically(pg.PipelineVisitorBase())

    with pytest.raises(pg.AlreadyTraversedError, match="already been traversed"):
        pipeline.traverse_topologically(pg.PipelineVisitorBase())

    assert pipeline.traversed


class LeaksArtifact(pg.TransformBase):
    """Primitive creating an artifact that it never returns."""

    def expand(self, input: Any) -> Any:  # noqa: A002
        input.pipeline.create_artifact("orphan")
        return input.pipeline.create_artifact("kept")


def test_orphaned_artifact_is_reported() -> None:
    pipeline = pg.Pipeline()
    pipeline.apply(LeaksArtifact())

    with pytest.raises(pg.IncompleteTraversalError, match="missing \\[Artifact#0 'orphan'\\]"):
        pipeline.traverse_topologically(pg.PipelineVisitorBase())


def test_unused_external_artifact_is_not_required() -> None:
    pipeline = pg.Pipeline()
    pipeline.create_artifact("unused")
    pipeline.apply(pg.Create([1]))
    recorder = Recorder()

    pipeline.traverse_topologically(recorder)

    assert [value.label for value, _ in recorder.values] == ["Create"]


def test_failed_pipeline_cannot_be_traversed() -> None:
    pipeline = pg.Pipeline()
    lines = pipeline.apply(pg.Create(["x"]), name="Read")

    class PassThrough(pg.TransformBase):
        def expand(self, input: Any) -> Any:  # noqa: A002
            return input

    with pytest.raises(pg.ProducerAttributionError):
        lines | "Identity" >> PassThrough()

    recorder = Recorder()
    with pytest.raises(pg.PipelineFailedError, match="applying 'Identity' failed") as exc_info:
        pipeline.traverse_topologically(recorder)

    assert isinstance(exc_info.value.failure, pg.ProducerAttributionError)
    assert exc_info.value.full_name == "Identity"
    assert recorder.events == []
    assert not pipeline.traversed


def test_traversal_during_construction_fails() -> None:
    pipeline = pg.Pipeline()

    class TraversesWhileApplied(pg.TransformBase):
        def expand(self, input: Any) -> Any:  # noqa: A002
            pipeline.traverse_topologically(pg.PipelineVisitorBase())
            return pipeline.create_artifact()

    with pytest.raises(pg.PipelineFrozenError, match="still being applied"):
        pipeline.apply(TraversesWhileApplied())

    assert not pipeline.traversed
