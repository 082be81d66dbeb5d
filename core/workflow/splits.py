"""Recommended fee splits between collaborating recruiters."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from core.utils.formatting import round_money
from database.models.placements import CollaboratorRole

DEFAULT_WEIGHTS: Dict[CollaboratorRole, float] = {
    CollaboratorRole.SOURCER: 40,
    CollaboratorRole.SUBMITTER: 30,
    CollaboratorRole.CLOSER: 20,
    CollaboratorRole.SUPPORT: 10,
}


@dataclass(frozen=True)
class SplitRole:
    role: CollaboratorRole
    weight: Optional[float] = None

    @property
    def effective_weight(self) -> float:
        if self.weight is None:
            return DEFAULT_WEIGHTS[self.role]
        return self.weight


@dataclass(frozen=True)
class SplitRecommendation:
    role: CollaboratorRole
    split_percentage: float
    split_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "split_percentage": self.split_percentage,
            "split_amount": self.split_amount,
        }


def _as_split_role(entry: Union[SplitRole, CollaboratorRole, str, Mapping[str, Any]]) -> SplitRole:
    if isinstance(entry, SplitRole):
        return entry
    if isinstance(entry, Mapping):
        return SplitRole(role=CollaboratorRole(entry["role"]), weight=entry.get("weight"))
    return SplitRole(role=CollaboratorRole(entry))


def calculate_splits(
    total_share: float,
    roles: Sequence[Union[SplitRole, CollaboratorRole, str, Mapping[str, Any]]],
) -> List[SplitRecommendation]:
    """
    Recommend how to split a recruiter share between roles.

    Advisory only; collaborator rows are written separately and do not have
    to match.

    Args:
        total_share: Amount being split
        roles: Roles taking part, each with an optional weight overriding
            ``DEFAULT_WEIGHTS``

    Returns:
        One recommendation per role, in input order

    Raises:
        ValueError: On unknown roles, negative weights, or weights summing to zero
    """
    entries = [_as_split_role(entry) for entry in roles]
    if not entries:
        return []

    weights = [entry.effective_weight for entry in entries]
    if any(weight < 0 for weight in weights):
        raise ValueError("Split weights must not be negative")
    total_weight = sum(weights)
    if total_weight <= 0:
        raise ValueError("Split weights must sum to more than zero")

    return [
        SplitRecommendation(
            role=entry.role,
            split_percentage=round_money(weight / total_weight * 100),
            split_amount=round_money(total_share * weight / total_weight),
        )
        for entry, weight in zip(entries, weights)
    ]


def total_percentage(percentages: Sequence[float]) -> float:
    """Sum split percentages, rounded the same way they are stored."""
    return round_money(sum(percentages))
