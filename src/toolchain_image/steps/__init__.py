"""Named image construction steps, in the order the pipeline runs them."""

from .base import Step, StepContext, require_success
from .cmake import AcquireCmakeSourceStep, BuildCmakeStep
from .packages import InstallPackagesStep
from .runtime import DeclareRuntimeStep
from .rust import InstallRustToolchainStep
from .scripts import InjectScriptsStep
from .user import ProvisionUserStep


def default_steps() -> tuple[Step, ...]:
    return (
        InstallPackagesStep(),
        InjectScriptsStep(),
        AcquireCmakeSourceStep(),
        BuildCmakeStep(),
        ProvisionUserStep(),
        InstallRustToolchainStep(),
        DeclareRuntimeStep(),
    )


__all__ = [
    "AcquireCmakeSourceStep",
    "BuildCmakeStep",
    "DeclareRuntimeStep",
    "InjectScriptsStep",
    "InstallPackagesStep",
    "InstallRustToolchainStep",
    "ProvisionUserStep",
    "Step",
    "StepContext",
    "default_steps",
    "require_success",
]
