"""
Provisioning module: the pipeline and the provider hand-off interface.
"""

from .base import ArtifactBundle, ProvisioningProvider, ProvisioningResult, RecordingProvider
from .pipeline import PerimeterPipeline, PipelineResult

__all__ = [
    "PerimeterPipeline",
    "PipelineResult",
    "ArtifactBundle",
    "ProvisioningProvider",
    "ProvisioningResult",
    "RecordingProvider",
]
