"""Enumerated values shared by the ORM models, schemas and services.

Values are stored in the database as their lowercase string form.
"""

from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    IN_DISCUSSION = "in_discussion"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Statuses in which board members may cast votes
VOTE_ACCEPTING_STATUSES = frozenset(
    {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.IN_DISCUSSION}
)

# Statuses that carry a board decision
DECIDED_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})

TERMINAL_STATUSES = DECIDED_STATUSES | {ApplicationStatus.WITHDRAWN}


class WorkflowEvent(str, Enum):
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    REQUEST_INFO = "request_info"
    RESUME_REVIEW = "resume_review"
    APPROVE = "approve"
    REJECT = "reject"
    WITHDRAW = "withdraw"


class VoteDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    NEEDS_MORE_INFO = "needs_more_info"
    # Does not count toward quorum
    ABSTAIN = "abstain"


class FundingType(str, Enum):
    GYM_MEMBERSHIP = "gym_membership"
    PERSONAL_TRAINING = "personal_training"
    NUTRITIONIST_CONSULTATION = "nutritionist_consultation"
    FITNESS_APPAREL = "fitness_apparel"
    FITNESS_EQUIPMENT = "fitness_equipment"
    NUTRITION_SUPPLEMENTS = "nutrition_supplements"
    GROUP_CLASSES = "group_classes"
    ONLINE_PROGRAMS = "online_programs"
    OTHER = "other"


class UserRole(str, Enum):
    MEMBER = "member"
    CLIENT = "client"
    SPONSOR = "sponsor"
    BOARD_MEMBER = "board_member"
    ADMIN = "admin"


class NotificationType(str, Enum):
    # Applicant notifications
    APPLICATION_SUBMITTED = "application_submitted"
    REVIEW_STARTED = "review_started"
    INFORMATION_REQUESTED = "information_requested"
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    SPONSOR_ASSIGNED = "sponsor_assigned"
    # Board notifications
    NEW_APPLICATION = "new_application"
    QUORUM_REACHED = "quorum_reached"
    COMMENT_ADDED = "comment_added"
    REVIEW_OVERDUE = "review_overdue"
