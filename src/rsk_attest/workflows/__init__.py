"""Higher-level workflows composed from AttestationService calls."""

from rsk_attest.workflows.hackathon import (
    HackathonAttestationWorkflow,
    HackathonProject,
    ProjectStatus,
    project_from_pull_request,
)

__all__ = [
    "HackathonAttestationWorkflow",
    "HackathonProject",
    "ProjectStatus",
    "project_from_pull_request",
]
