"""
Domain exceptions raised by the access and workflow core.

Every rule violation has its own type so the calling layer can render a
specific message. Store errors are never wrapped here; they propagate as-is.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base class for all domain rule violations."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFound(DomainError):
    """Entity id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class Forbidden(DomainError):
    """Caller resolved, but no capability covers this record."""

    code = "FORBIDDEN"


class NoAccess(DomainError):
    """
    Caller holds no capability for a listing.

    Listings never raise this; they return an empty page instead. It exists
    so callers composing their own queries can signal the same condition.
    """

    code = "NO_ACCESS"


class AlreadyOwned(DomainError):
    """Another actor holds an active protection window on the candidate."""

    code = "ALREADY_OWNED"

    def __init__(self, candidate_id: int, owner_actor_id: int, expires_at: Optional[Any] = None):
        super().__init__(
            f"Candidate {candidate_id} is already owned by another sourcer",
            candidate_id=candidate_id,
            owner_actor_id=owner_actor_id,
            expires_at=expires_at,
        )
        self.candidate_id = candidate_id
        self.owner_actor_id = owner_actor_id
        self.expires_at = expires_at


class SplitOverflow(DomainError):
    """Adding a collaborator would push the placement above 100%."""

    code = "SPLIT_OVERFLOW"

    def __init__(self, placement_id: int, current_total: float, requested: float):
        super().__init__(
            f"Split total would exceed 100% for placement {placement_id} "
            f"(current {current_total}%, requested {requested}%)",
            placement_id=placement_id,
            current_total=current_total,
            requested=requested,
        )
        self.placement_id = placement_id
        self.current_total = current_total
        self.requested = requested


class InvalidTransition(DomainError):
    """State change not allowed from the current state."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, entity: str = "application"):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested
