"""
membership.models — Data models of the membership domain.

Re-exports for convenience:
    from membership.models import AccessProfile, GateDecision, CrewMember
"""

from membership.models.enums import (  # noqa: F401
    AccountStatus,
    CrewRoleCode,
    Feature,
    IssuanceFailureReason,
    LockReason,
    PaymentStatus,
    ProfileLevel,
    Role,
    SubmissionKind,
)
from membership.models.access import (  # noqa: F401
    AccessProfile,
    AccountDecision,
    DecisionKind,
    GateDecision,
    GatePages,
    Session,
)
from membership.models.institution import (  # noqa: F401
    EntitlementState,
    EntitlementView,
    FeatureLock,
    InstitutionActivation,
    InstitutionRead,
    PromotionRequest,
    PromotionResult,
)
from membership.models.crew import (  # noqa: F401
    AddCrewResult,
    CrewCreate,
    CrewMember,
    CrewRoleChange,
    IssuanceOutcome,
)
from membership.models.submission import (  # noqa: F401
    SubmissionCreate,
    SubmissionVerify,
    VerifiedSubmission,
)
