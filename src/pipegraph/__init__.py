"""Dataflow pipeline graph construction and integrity checking."""

__all__ = [
    "AllocatedName",
    "AlreadyTraversedError",
    "Artifact",
    "Begin",
    "Combine",
    "ConfigError",
    "Create",
    "DataflowGraph",
    "DirectExecutor",
    "Executor",
    "Flatten",
    "ForeignArtifactError",
    "FunctionTransform",
    "IncompleteTraversalError",
    "InvalidTransformNameError",
    "Map",
    "NameAllocator",
    "NamedTransform",
    "Node",
    "Pipeline",
    "PipelineError",
    "PipelineFailedError",
    "PipelineFrozenError",
    "PipelineOptions",
    "PipelineVisitor",
    "PipelineVisitorBase",
    "ProducerAttributionError",
    "ScopeStackError",
    "StableNameError",
    "StableUniqueNames",
    "StructuralInvariantError",
    "Transform",
    "TransformBase",
    "TransformHierarchy",
    "UnsupportedValueError",
    "UserCodeError",
    "build_name",
    "composite",
    "expand_values",
    "get_executor",
    "register_executor",
]

from ._errors import (
    AlreadyTraversedError,
    ConfigError,
    ForeignArtifactError,
    IncompleteTraversalError,
    InvalidTransformNameError,
    PipelineError,
    PipelineFailedError,
    PipelineFrozenError,
    ProducerAttributionError,
    ScopeStackError,
    StableNameError,
    StructuralInvariantError,
    UnsupportedValueError,
    UserCodeError,
)
from ._executor import DirectExecutor, Executor, get_executor, register_executor
from ._graph import DataflowGraph
from ._hierarchy import TransformHierarchy
from ._names import AllocatedName, NameAllocator, build_name
from ._node import Node
from ._options import PipelineOptions, StableUniqueNames
from ._pipeline import Pipeline
from ._transform import (
    Combine,
    Create,
    Flatten,
    FunctionTransform,
    Map,
    NamedTransform,
    Transform,
    TransformBase,
    composite,
)
from ._values import Artifact, Begin, expand_values
from ._visitor import PipelineVisitor, PipelineVisitorBase
