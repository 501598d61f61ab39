"""Public package entrypoint for the toolchain image builder."""

from .collaborators import Collaborator, CollaboratorResult, ScriptCollaborator
from .config import VersionMatrix, load_matrix, resolve_parameters
from .errors import (
    AcquisitionError,
    BuildError,
    IntegrityError,
    PackageInstallError,
    PipelineError,
    PolicyError,
    ToolchainImageError,
    ValidationError,
)
from .image import ToolchainImage
from .models import (
    BuildParameters,
    CommandResult,
    CommandSpec,
    ImageRoot,
    PipelineResult,
    Recipe,
    RuntimeContract,
    StepResult,
)
from .orchestration import OrchestrationConfig, run_entrypoint
from .pipeline import Pipeline
from .policy import Policy

__all__ = [
    "AcquisitionError",
    "BuildError",
    "BuildParameters",
    "Collaborator",
    "CollaboratorResult",
    "CommandResult",
    "CommandSpec",
    "ImageRoot",
    "IntegrityError",
    "OrchestrationConfig",
    "PackageInstallError",
    "Pipeline",
    "PipelineError",
    "PipelineResult",
    "PolicyError",
    "Recipe",
    "RuntimeContract",
    "ScriptCollaborator",
    "StepResult",
    "ToolchainImage",
    "ToolchainImageError",
    "ValidationError",
    "VersionMatrix",
    "load_matrix",
    "resolve_parameters",
    "run_entrypoint",
]
