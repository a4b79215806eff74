"""Exception hierarchy for pipeline construction and traversal.

Every error raised by pipegraph derives from `PipelineError`. The structural
errors (`StructuralInvariantError` and its subclasses) indicate a defect in a
transform implementation or in an executor integration and are never retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._transform import Transform


class PipelineError(Exception):
    """Base class for all pipegraph errors."""


class ConfigError(PipelineError):
    """Unrecognised or malformed configuration value."""


class UserCodeError(PipelineError):
    """An exception raised by a transform's own code while it was applied.

    The original exception is available both as `cause` and as `__cause__`.
    Its traceback starts at the first frame outside of pipegraph.
    """

    def __init__(self, full_name: str, cause: BaseException) -> None:
        self.full_name = full_name
        self.cause = cause
        super().__init__(f"Error in transform '{full_name}': {type(cause).__name__}: {cause}")


class StableNameError(PipelineError):
    """A requested transform name was not unique and the naming policy is ERROR."""

    def __init__(self, full_name: str, requested_name: str) -> None:
        self.full_name = full_name
        self.requested_name = requested_name
        super().__init__(
            f"Transform {full_name} does not have a stable unique name. "
            "This will prevent reloading of pipelines.",
        )


class StructuralInvariantError(PipelineError):
    """The pipeline graph violates one of its structural invariants."""


class ProducerAttributionError(StructuralInvariantError):
    """An artifact is attributed to the wrong producing node."""

    def __init__(
        self,
        message: str,
        *,
        full_name: str,
        transform: Transform | None = None,
        producing_transform: Transform | None = None,
    ) -> None:
        self.full_name = full_name
        self.transform = transform
        self.producing_transform = producing_transform
        super().__init__(message)


class ScopeStackError(StructuralInvariantError):
    """Push and pop of the current scope did not nest."""


class IncompleteTraversalError(StructuralInvariantError):
    """A traversal finished without visiting every artifact of the pipeline."""


class AlreadyTraversedError(StructuralInvariantError):
    """The pipeline has already been traversed once."""


class PipelineFrozenError(StructuralInvariantError):
    """A transform was applied after traversal started."""


class ForeignArtifactError(StructuralInvariantError):
    """An artifact owned by another pipeline was used as input."""


class InvalidTransformNameError(PipelineError, ValueError):
    """A transform was applied under an empty name."""


class UnsupportedValueError(PipelineError, TypeError):
    """An input or output is not an Artifact, Begin, None or a collection of them."""


class PipelineFailedError(StructuralInvariantError):
    """The pipeline is used again after one of its applications failed.

    A failed application leaves an incomplete node in the tree, so the
    pipeline can neither grow nor be traversed any more.
    """

    def __init__(self, message: str, *, full_name: str, failure: BaseException) -> None:
        self.full_name = full_name
        self.failure = failure
        super().__init__(message)
