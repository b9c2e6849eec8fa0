"""Hackathon attestation workflow.

Two schemas model a hackathon: a non-revocable project submission, and a
revocable approval that references the submission it approves. The
workflow only sequences AttestationService calls; every failure from the
service propagates to the caller.

Usage:
    workflow = HackathonAttestationWorkflow(service)
    schemas = await workflow.create_schemas()
    submission_uid = await workflow.attest_project_submission(project)
    approval_uid = await workflow.attest_project_approval(project, submission_uid)
    status = await workflow.verify_project_status(project.submitter)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from rsk_attest.encoding import SchemaEncoder
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.service import AttestationService

log = logging.getLogger(__name__)

SUBMISSION_SCHEMA = (
    "string projectName,string submitterAddress,string repositoryUrl,"
    "string description,uint256 submissionTime"
)
APPROVAL_SCHEMA = (
    "string projectId,bool approved,string reviewerAddress,"
    "string comments,uint256 reviewTime"
)
STATUS_SCAN_LIMIT = 100


@dataclass(frozen=True)
class HackathonProject:
    id: str
    name: str
    submitter: str
    repository_url: str
    description: str
    approved: bool
    reviewed_by: str


@dataclass(frozen=True)
class WorkflowSchemas:
    submission_schema: str
    approval_schema: str


@dataclass(frozen=True)
class ProjectStatus:
    has_submission: bool
    is_approved: bool
    submission_uid: Optional[str] = None
    approval_uid: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "hasSubmission": self.has_submission,
            "isApproved": self.is_approved,
        }
        if self.submission_uid is not None:
            result["submissionUID"] = self.submission_uid
        if self.approval_uid is not None:
            result["approvalUID"] = self.approval_uid
        return result


@dataclass(frozen=True)
class WebhookOutcome:
    submission_uid: str
    approval_uid: str


class HackathonAttestationWorkflow:
    """Sequences schema creation, submission and approval attestations."""

    def __init__(
        self,
        service: AttestationService,
        submission_schema: str = "",
        approval_schema: str = "",
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self._service = service
        self._submission_schema = submission_schema
        self._approval_schema = approval_schema
        self._now_func = now_func
        self._submission_encoder = SchemaEncoder(SUBMISSION_SCHEMA)
        self._approval_encoder = SchemaEncoder(APPROVAL_SCHEMA)

    @property
    def schemas(self) -> WorkflowSchemas:
        return WorkflowSchemas(self._submission_schema, self._approval_schema)

    def update_schemas(self, submission_schema: str, approval_schema: str) -> None:
        self._submission_schema = submission_schema
        self._approval_schema = approval_schema

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    async def create_project_submission_schema(self) -> str:
        log.info(
            "Creating hackathon project submission schema",
            extra=event(LogCategory.WORKFLOW),
        )
        receipt = await self._service.create_schema(SUBMISSION_SCHEMA, revocable=False)
        log.info(
            "Project submission schema created",
            extra=event(LogCategory.WORKFLOW, receipt.to_dict()),
        )
        return receipt.uid

    async def create_approval_schema(self) -> str:
        log.info("Creating hackathon approval schema", extra=event(LogCategory.WORKFLOW))
        receipt = await self._service.create_schema(APPROVAL_SCHEMA, revocable=True)
        log.info(
            "Approval schema created",
            extra=event(LogCategory.WORKFLOW, receipt.to_dict()),
        )
        return receipt.uid

    async def create_schemas(self) -> WorkflowSchemas:
        """Register both schemas and start using them."""
        submission = await self.create_project_submission_schema()
        approval = await self.create_approval_schema()
        self.update_schemas(submission, approval)
        return self.schemas

    # ------------------------------------------------------------------
    # Attestations
    # ------------------------------------------------------------------

    async def attest_project_submission(self, project: HackathonProject) -> str:
        log.info(
            "Attesting project submission",
            extra=event(LogCategory.WORKFLOW, {
                "projectId": project.id, "submitter": project.submitter,
            }),
        )
        payload = self._submission_encoder.encode_data({
            "projectName": project.name,
            "submitterAddress": project.submitter,
            "repositoryUrl": project.repository_url,
            "description": project.description,
            "submissionTime": int(self._now_func()),
        })
        receipt = await self._service.issue_attestation(
            self._submission_schema, project.submitter, payload, revocable=False,
        )
        log.info(
            "Project submission attested",
            extra=event(LogCategory.WORKFLOW, receipt.to_dict()),
        )
        return receipt.uid

    async def attest_project_approval(
        self,
        project: HackathonProject,
        submission_uid: str,
    ) -> str:
        """Attest the review outcome, referencing the submission."""
        log.info(
            "Attesting project approval",
            extra=event(LogCategory.WORKFLOW, {
                "projectId": project.id,
                "approved": project.approved,
                "reviewer": project.reviewed_by,
            }),
        )
        comments = (
            "Project approved for hackathon" if project.approved
            else "Project needs revision"
        )
        payload = self._approval_encoder.encode_data({
            "projectId": project.id,
            "approved": project.approved,
            "reviewerAddress": project.reviewed_by,
            "comments": comments,
            "reviewTime": int(self._now_func()),
        })
        receipt = await self._service.issue_attestation(
            self._approval_schema,
            project.submitter,
            payload,
            revocable=True,
            ref_uid=submission_uid,
        )
        log.info(
            "Project approval attested",
            extra=event(LogCategory.WORKFLOW, {
                **receipt.to_dict(), "approved": project.approved,
            }),
        )
        return receipt.uid

    async def verify_project_status(self, submitter: str) -> ProjectStatus:
        """Status from the index; a fresh approval may not be visible yet."""
        log.info(
            "Verifying project status",
            extra=event(LogCategory.WORKFLOW, {"submitter": submitter}),
        )
        records = await self._service.list_attestations(
            recipient=submitter, limit=STATUS_SCAN_LIMIT,
        )
        submission = next(
            (r for r in records if r.schema_uid == self._submission_schema), None,
        )
        approval = next(
            (r for r in records if r.schema_uid == self._approval_schema), None,
        )
        return ProjectStatus(
            has_submission=submission is not None,
            is_approved=approval is not None and not approval.is_revoked,
            submission_uid=submission.uid if submission else None,
            approval_uid=approval.uid if approval else None,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def handle_pull_request_event(
        self,
        payload: dict[str, Any],
        submitter: str,
    ) -> Optional[WebhookOutcome]:
        """Attest submission and approval for a merged pull request.

        ``submitter`` is the ledger address standing in for the PR author.
        Payloads other than a merged pull request are ignored.
        """
        log.info(
            "GitHub webhook received",
            extra=event(LogCategory.WORKFLOW, {
                "action": payload.get("action"),
                "repository": (payload.get("repository") or {}).get("name"),
            }),
        )
        project = project_from_pull_request(payload, submitter)
        if project is None:
            return None

        log.info("PR merged - triggering attestation workflow", extra=event(LogCategory.WORKFLOW))
        submission_uid = await self.attest_project_submission(project)
        approval_uid = await self.attest_project_approval(project, submission_uid)
        log.info(
            "Automated attestation completed",
            extra=event(LogCategory.WORKFLOW, {
                "submissionUID": submission_uid, "approvalUID": approval_uid,
            }),
        )
        return WebhookOutcome(submission_uid=submission_uid, approval_uid=approval_uid)


def project_from_pull_request(
    payload: dict[str, Any],
    submitter: str,
) -> Optional[HackathonProject]:
    """Map a merged pull-request payload to a project; None otherwise."""
    pull_request = payload.get("pull_request") or {}
    if payload.get("action") != "closed" or not pull_request.get("merged"):
        return None
    repository = payload.get("repository") or {}
    merged_by = pull_request.get("merged_by") or {}
    return HackathonProject(
        id=f"pr-{pull_request.get('id')}",
        name=repository.get("name", ""),
        submitter=submitter,
        repository_url=repository.get("html_url", ""),
        description=pull_request.get("title", ""),
        approved=True,
        reviewed_by=merged_by.get("login") or "automated",
    )
