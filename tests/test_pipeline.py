"""Tests for applying transforms to a Pipeline."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest

import pipegraph as pg
import pipegraph._executor
from pipegraph._values import pipeline_of

# =============================================================================
# Transforms used in the tests
# =============================================================================


class Count(pg.TransformBase):
    """Composite: split lines into words and sum them."""

    def expand(self, input: Any) -> Any:  # noqa: A002
        return input | "ExtractWords" >> pg.Map(str.split) | "Sum" >> pg.Combine(sum)


@pg.composite("Pipeline")
def whole_pipeline(begin: pg.Begin) -> pg.Artifact:
    lines = begin | "Read" >> pg.Create(["a b", "c"])
    return lines | Count()


class ClaimsOwnOutput(pg.TransformBase):
    """Buggy composite returning an artifact none of its children produced."""

    def expand(self, input: Any) -> Any:  # noqa: A002
        input | pg.Map(str)
        return pipeline_of(input).create_artifact()


class PassThrough(pg.TransformBase):
    """Buggy primitive returning its input as its own output."""

    def expand(self, input: Any) -> Any:  # noqa: A002
        return input


class RejectsInput(pg.TransformBase):
    def validate(self, input: Any) -> None:  # noqa: A002
        msg = "bad input"
        raise ValueError(msg)

    def expand(self, input: Any) -> Any:  # noqa: A002, ARG002
        pytest.fail("expand must not run when validation fails")


class Nested(pg.TransformBase):
    """Applies itself recursively `depth` times, then one primitive."""

    def __init__(self, depth: int) -> None:
        super().__init__("Nested")
        self.depth = depth

    def expand(self, input: Any) -> Any:  # noqa: A002
        if self.depth == 0:
            return input | "Leaf" >> pg.Map(str)
        return input | Nested(self.depth - 1)


class RecordingExecutor:
    def __init__(self) -> None:
        self.applied: list[str] = []

    def apply(self, transform: pg.Transform, input: Any) -> Any:  # noqa: A002
        self.applied.append(transform.default_name())
        return transform.expand(input)


@pytest.fixture
def pipeline() -> pg.Pipeline:
    return pg.Pipeline()


# =============================================================================
# Naming
# =============================================================================


class TestNaming:
    def test_root_primitive(self, pipeline: pg.Pipeline) -> None:
        """A primitive root transform produces one attributed artifact."""
        output = pipeline.apply(pg.Create([1, 2]), name="Read")

        node = output.producer
        assert node.full_name == "Read"
        assert not node.is_composite
        assert node.outputs == [output.handle]
        assert node.inputs == ()

    def test_default_name_from_transform(self, pipeline: pg.Pipeline) -> None:
        output = pipeline.apply(pg.Create([1]))

        assert output.producer.full_name == "Create"

    def test_nested_names_use_enclosing_prefix(self, pipeline: pg.Pipeline) -> None:
        pipeline.apply(whole_pipeline)

        assert [node.full_name for node in pipeline.nodes()] == [
            "Pipeline",
            "Pipeline/Read",
            "Pipeline/Count",
            "Pipeline/Count/ExtractWords",
            "Pipeline/Count/Sum",
        ]

    def test_deep_recursion(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        output = lines | Nested(3)

        assert output.producer.full_name == "Nested/Nested/Nested/Nested/Leaf"

    def test_collision_is_suffixed_when_policy_off(self) -> None:
        """Colliding names under the OFF policy."""
        pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="off"))

        pipeline.apply(pg.Create([1], label="Read"))
        second = pipeline.apply(pg.Create([2], label="Read"))

        assert second.producer.full_name == "Read2"
        assert second.producer.requested_name == "Read"
        assert second.producer.stable_name is False

    def test_collision_warns_when_policy_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Colliding names under the WARNING policy."""
        pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="warn"))

        with caplog.at_level(logging.WARNING, logger="pipegraph"):
            pipeline.apply(pg.Create([1]), name="Read")
            second = pipeline.apply(pg.Create([2]), name="Read")

        assert second.producer.full_name == "Read2"
        assert "Transform Read2 does not have a stable unique name" in caplog.text

    def test_no_warning_without_collision(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="pipegraph"):
            pg.Pipeline().apply(pg.Create([1]), name="Read")

        assert caplog.records == []

    def test_collision_fails_when_policy_error(self) -> None:
        """Colliding names under the ERROR policy."""
        pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="fail"))
        pipeline.apply(pg.Create([1]), name="Read")

        with pytest.raises(pg.StableNameError, match="Transform Read2 does not have a stable unique name") as exc_info:
            pipeline.apply(pg.Create([2]), name="Read")

        assert exc_info.value.requested_name == "Read"
        assert pipeline.hierarchy.current is pipeline.hierarchy.root

    def test_policy_accessor(self) -> None:
        pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="error"))

        assert pipeline.stable_unique_names is pg.StableUniqueNames.ERROR

    def test_full_name_for_testing(self, pipeline: pg.Pipeline) -> None:
        read = pg.Create([1])
        pipeline.apply(read, name="Read")

        assert pipeline.full_name_for_testing(read) == "Read"

    def test_full_name_for_testing_unknown_or_reused(self, pipeline: pg.Pipeline) -> None:
        mapper = pg.Map(str)
        with pytest.raises(ValueError, match="Unknown transform"):
            pipeline.full_name_for_testing(mapper)

        lines = pipeline.apply(pg.Create([1]))
        lines | mapper
        lines | mapper
        with pytest.raises(ValueError, match="used multiple times"):
            pipeline.full_name_for_testing(mapper)


# =============================================================================
# Producer attribution
# =============================================================================


class TestProducerAttribution:
    def test_composite_output_traces_to_nested_primitive(self, pipeline: pg.Pipeline) -> None:
        """Count's output is produced by Count/Sum, not by Count."""
        output = pipeline.apply(whole_pipeline)

        assert output.producer.full_name == "Pipeline/Count/Sum"
        count = next(n for n in pipeline.nodes() if n.full_name == "Pipeline/Count")
        assert count.is_composite
        assert count.outputs == [output.handle]

    def test_composite_claiming_its_own_output_fails_immediately(self, pipeline: pg.Pipeline) -> None:
        """The error is raised by the buggy composite's own apply."""
        lines = pipeline.apply(pg.Create(["x"]))

        @pg.composite("Outer")
        def outer(value: pg.Artifact) -> pg.Artifact:
            return value | "Buggy" >> ClaimsOwnOutput()

        with pytest.raises(pg.ProducerAttributionError, match="composite transform 'Outer/Buggy'") as exc_info:
            lines | outer

        assert exc_info.value.full_name == "Outer/Buggy"
        assert isinstance(exc_info.value.transform, ClaimsOwnOutput)

    def test_primitive_returning_foreign_output_fails(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]), name="Read")

        with pytest.raises(pg.ProducerAttributionError, match="different transform: 'Read'") as exc_info:
            lines | "Identity" >> PassThrough()

        assert exc_info.value.full_name == "Identity"
        assert isinstance(exc_info.value.producing_transform, pg.Create)

    def test_every_output_is_attributed_to_a_primitive(self, pipeline: pg.Pipeline) -> None:
        first = pipeline.apply(pg.Create([1]))
        second = pipeline.apply(whole_pipeline)
        (first, second) | pg.Flatten()

        for value in pipeline.values():
            assert value.producer is not None
            assert not value.producer.is_composite

    def test_composites_never_author_their_outputs(self, pipeline: pg.Pipeline) -> None:
        pipeline.apply(whole_pipeline)

        for node in pipeline.nodes():
            if node.is_composite:
                assert all(pipeline.artifact(h).producer is not node for h in node.outputs)

    def test_external_input_is_visited_without_producer(self, pipeline: pg.Pipeline) -> None:
        external = pipeline.create_artifact("external")

        output = external | pg.Map(str)

        assert external.producer is None
        assert output.producer.inputs == (external.handle,)


# =============================================================================
# Errors and scope handling
# =============================================================================


class TestErrors:
    def test_validation_error_is_user_code_error(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        with pytest.raises(pg.UserCodeError, match="Error in transform 'Reject'") as exc_info:
            lines | "Reject" >> RejectsInput()

        cause = exc_info.value.cause
        assert isinstance(cause, ValueError)
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.full_name == "Reject"

    def test_user_code_traceback_starts_in_user_code(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        with pytest.raises(pg.UserCodeError) as exc_info:
            lines | RejectsInput()

        tb = exc_info.value.cause.__traceback__
        assert tb is not None
        assert Path(tb.tb_frame.f_code.co_filename).resolve() == Path(__file__).resolve()

    def test_nested_user_error_is_wrapped_once(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        @pg.composite("Outer")
        def outer(value: pg.Artifact) -> pg.Artifact:
            return value | "Inner" >> RejectsInput()

        with pytest.raises(pg.UserCodeError) as exc_info:
            lines | outer

        assert exc_info.value.full_name == "Outer/Inner"
        assert isinstance(exc_info.value.cause, ValueError)

    def test_builtin_validation(self, pipeline: pg.Pipeline) -> None:
        with pytest.raises(pg.UserCodeError, match="expects exactly one input artifact"):
            pipeline.apply(pg.Map(str))

    def test_scope_is_restored_after_error(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        with pytest.raises(pg.UserCodeError):
            lines | RejectsInput()

        assert pipeline.hierarchy.current is pipeline.hierarchy.root
        assert pipeline.hierarchy.depth == 0

    def test_foreign_input_is_rejected(self, pipeline: pg.Pipeline) -> None:
        other = pg.Pipeline()
        foreign = other.apply(pg.Create([1]))

        with pytest.raises(pg.ForeignArtifactError, match="belongs to"):
            pipeline.apply_transform(foreign, pg.Map(str))

    def test_apply_after_traversal_is_rejected(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create([1]))
        pipeline.traverse_topologically(pg.PipelineVisitorBase())

        with pytest.raises(pg.PipelineFrozenError, match="already been traversed"):
            lines | pg.Map(str)

    def test_invalid_output_shape(self, pipeline: pg.Pipeline) -> None:
        class ReturnsNumber(pg.TransformBase):
            def expand(self, input: Any) -> Any:  # noqa: A002, ARG002
                return 42

        with pytest.raises(TypeError, match="got int"):
            pipeline.apply(ReturnsNumber())

    def test_nested_empty_name_is_not_blamed_on_enclosing_transform(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        @pg.composite("Outer")
        def outer(value: pg.Artifact) -> pg.Artifact:
            return value | "" >> pg.Map(str)

        with pytest.raises(pg.InvalidTransformNameError, match="non-empty"):
            lines | outer

    def test_nested_invalid_output_is_not_wrapped(self, pipeline: pg.Pipeline) -> None:
        class ReturnsNumber(pg.TransformBase):
            def expand(self, input: Any) -> Any:  # noqa: A002, ARG002
                return 42

        @pg.composite("Outer")
        def outer(value: pg.Begin) -> Any:
            return value | ReturnsNumber()

        with pytest.raises(pg.UnsupportedValueError, match="got int"):
            pipeline.apply(outer)


# =============================================================================
# Failed pipelines
# =============================================================================


class TestFailedPipeline:
    def test_apply_after_attribution_error_is_rejected(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]), name="Read")
        with pytest.raises(pg.ProducerAttributionError):
            lines | "Identity" >> PassThrough()

        with pytest.raises(pg.PipelineFailedError, match="applying 'Identity' failed") as exc_info:
            lines | pg.Map(str)

        assert isinstance(exc_info.value, pg.StructuralInvariantError)
        assert isinstance(exc_info.value.failure, pg.ProducerAttributionError)
        assert [node.full_name for node in pipeline.nodes()] == ["Read", "Identity"]

    def test_innermost_failure_is_reported(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        @pg.composite("Outer")
        def outer(value: pg.Artifact) -> pg.Artifact:
            return value | "Inner" >> RejectsInput()

        with pytest.raises(pg.UserCodeError):
            lines | outer

        with pytest.raises(pg.PipelineFailedError) as exc_info:
            pipeline.apply(pg.Create([1]))

        assert exc_info.value.full_name == "Outer/Inner"
        assert isinstance(exc_info.value.failure, pg.UserCodeError)

    def test_retry_inside_composite_is_rejected(self, pipeline: pg.Pipeline) -> None:
        lines = pipeline.apply(pg.Create(["x"]))

        @pg.composite("Retrying")
        def retrying(value: pg.Artifact) -> pg.Artifact:
            try:
                return value | "First" >> RejectsInput()
            except pg.UserCodeError:
                return value | "Second" >> pg.Map(str)

        with pytest.raises(pg.PipelineFailedError, match="applying 'Retrying/First' failed"):
            lines | retrying

    def test_rejected_name_leaves_pipeline_usable(self) -> None:
        pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="error"))
        pipeline.apply(pg.Create([1]), name="Read")
        with pytest.raises(pg.StableNameError):
            pipeline.apply(pg.Create([2]), name="Read")

        output = pipeline.apply(pg.Create([2]), name="ReadAgain")

        assert output.producer.full_name == "ReadAgain"


# =============================================================================
# Executors and isolation
# =============================================================================


class TestExecutors:
    def test_custom_executor_sees_every_application(self) -> None:
        executor = RecordingExecutor()
        pipeline = pg.Pipeline(executor=executor)

        pipeline.apply(whole_pipeline)

        assert executor.applied == ["Pipeline", "Create", "Count", "Map(split)", "Combine(sum)"]

    def test_create_uses_executor_from_options(self) -> None:
        pipeline = pg.Pipeline.create(pg.PipelineOptions(executor="direct"))

        assert isinstance(pipeline.executor, pg.DirectExecutor)

    def test_unknown_executor(self) -> None:
        with pytest.raises(pg.ConfigError, match="No executor registered under 'nope'"):
            pg.Pipeline.create(pg.PipelineOptions(executor="nope"))

    def test_registered_executor(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(pipegraph._executor._REGISTRY, "recording", RecordingExecutor)  # noqa: SLF001

        pipeline = pg.Pipeline.create(pg.PipelineOptions(executor="recording"))

        assert isinstance(pipeline.executor, RecordingExecutor)

    def test_pipelines_built_concurrently_are_isolated(self) -> None:
        def build(_: int) -> list[str]:
            pipeline = pg.Pipeline(pg.PipelineOptions(stable_unique_names="error"))
            pipeline.apply(whole_pipeline)
            return [node.full_name for node in pipeline.nodes()]

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(build, range(16)))

        assert all(result == results[0] for result in results)

    def test_repr(self, pipeline: pg.Pipeline) -> None:
        assert repr(pipeline) == f"Pipeline#{id(pipeline)}"
