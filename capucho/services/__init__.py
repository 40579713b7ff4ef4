"""Deploy services: version sync, build steps, artifacts and the pipeline."""

from .artifacts import ArtifactKind, find_artifact
from .deploy import DeployJob, DeployPipeline, DeployReport
from .deploy_errors import DeployFailure, Stage
from .steps import BuildStepRunner, StepFailure
from .version import VersionInfo, VersionSyncer, VersionSyncError

__all__ = [
    "ArtifactKind",
    "BuildStepRunner",
    "DeployFailure",
    "DeployJob",
    "DeployPipeline",
    "DeployReport",
    "Stage",
    "StepFailure",
    "VersionInfo",
    "VersionSyncError",
    "VersionSyncer",
    "find_artifact",
]
