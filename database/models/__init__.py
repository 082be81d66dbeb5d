from database.models.users import User
from database.models.organizations import (
    Company,
    MembershipRole,
    Organization,
    OrganizationMembership,
)
from database.models.recruiters import Recruiter, RecruiterStatus
from database.models.jobs import Job, JobAssignment, JobStatus
from database.models.candidates import (
    Candidate,
    CandidateOutreach,
    CandidateSourcer,
    OutreachEvent,
    SourcerType,
)
from database.models.applications import (
    Application,
    ApplicationAuditLog,
    ApplicationStage,
    AuditAction,
)
from database.models.placements import (
    CollaboratorRole,
    Placement,
    PlacementCollaborator,
    PlacementState,
)

__all__ = [
    "User",
    "Organization",
    "OrganizationMembership",
    "MembershipRole",
    "Company",
    "Recruiter",
    "RecruiterStatus",
    "Job",
    "JobAssignment",
    "JobStatus",
    "Candidate",
    "CandidateSourcer",
    "CandidateOutreach",
    "SourcerType",
    "OutreachEvent",
    "Application",
    "ApplicationAuditLog",
    "ApplicationStage",
    "AuditAction",
    "Placement",
    "PlacementCollaborator",
    "PlacementState",
    "CollaboratorRole",
]
