"""Actor capabilities and relationship checks for application-scoped
operations.

The caller resolves an actor's capabilities once (from the ``users`` table
or an upstream identity provider) and hands them to the workflow.  The
workflow trusts those capabilities but re-checks relationship facts such as
ownership against the stored application itself.
"""

from dataclasses import dataclass

from boardreview.models.db.application import ClientApplication
from boardreview.models.enums import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    is_board_member: bool = False
    can_finalize_decisions: bool = False

    @classmethod
    def from_role(
        cls, user_id: str, role: str | None, is_active: bool = True
    ) -> "Actor":
        """Build an actor from a stored user role.  Inactive accounts keep
        their identity but lose every capability."""
        if not is_active:
            return cls(user_id=user_id)
        return cls(
            user_id=user_id,
            is_board_member=role == UserRole.BOARD_MEMBER.value,
            can_finalize_decisions=role == UserRole.ADMIN.value,
        )

    @property
    def is_reviewer(self) -> bool:
        """Board members and decision makers both see the full review record."""
        return self.is_board_member or self.can_finalize_decisions


def is_owner(application: ClientApplication, actor: Actor) -> bool:
    return application.applicant_id == actor.user_id


def can_comment(application: ClientApplication, actor: Actor) -> bool:
    return actor.is_reviewer or is_owner(application, actor)
