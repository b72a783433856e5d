"""
Contract type resolution.

Business rules (role, share) -> contract types:
- writer   with publishing > 0 -> songwriter_publishing
- artist   with publishing > 0 -> songwriter_publishing
- musician with master > 0     -> digital_master_only
- producer with master > 0     -> producer_agreement
- artist   with master > 0     -> digital_master_only
- label                        -> nothing (internal, not contract-bearing)
- anything else                -> nothing

The result is a set: a collaborator never needs the same contract twice.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Optional, Union
from uuid import UUID

from app.models.collaborator_share import CollaboratorRole, CollaboratorShare
from app.models.contract import ContractType

Share = Union[Decimal, float, int, None]

CONTRACT_TYPE_LABELS: Dict[ContractType, str] = {
    ContractType.SONGWRITER_PUBLISHING: "Publishing Assignment",
    ContractType.DIGITAL_MASTER_ONLY: "Master Revenue Share Agreement",
    ContractType.PRODUCER_AGREEMENT: "Producer Agreement",
    ContractType.LABEL_RECORD: "Label Record",
}

# (role, facet) -> contract type; facet is "publishing" or "master"
_RULES = {
    (CollaboratorRole.WRITER, "publishing"): ContractType.SONGWRITER_PUBLISHING,
    (CollaboratorRole.ARTIST, "publishing"): ContractType.SONGWRITER_PUBLISHING,
    (CollaboratorRole.MUSICIAN, "master"): ContractType.DIGITAL_MASTER_ONLY,
    (CollaboratorRole.PRODUCER, "master"): ContractType.PRODUCER_AGREEMENT,
    (CollaboratorRole.ARTIST, "master"): ContractType.DIGITAL_MASTER_ONLY,
}


def _positive(share: Share) -> bool:
    return share is not None and Decimal(str(share)) > 0


def _as_role(role) -> Optional[CollaboratorRole]:
    try:
        return CollaboratorRole(role)
    except ValueError:
        return None


def resolve(
    role: Union[CollaboratorRole, str],
    publishing_ownership: Share,
    master_ownership: Share,
) -> FrozenSet[ContractType]:
    """
    Determine which contract types a collaborator needs for one role on a work.

    Args:
        role: Role in the song (unknown roles resolve to nothing)
        publishing_ownership: Writer's share fraction, None counts as 0
        master_ownership: Master fraction, None counts as 0

    Returns:
        Frozen set of required contract types (possibly empty)
    """
    role = _as_role(role)
    if role is None:
        return frozenset()

    types = set()
    if _positive(publishing_ownership):
        contract_type = _RULES.get((role, "publishing"))
        if contract_type is not None:
            types.add(contract_type)
    if _positive(master_ownership):
        contract_type = _RULES.get((role, "master"))
        if contract_type is not None:
            types.add(contract_type)
    return frozenset(types)


def resolve_share(share: CollaboratorShare) -> FrozenSet[ContractType]:
    """Resolve contract types for a stored collaborator share."""
    return resolve(share.role_in_song, share.publishing_ownership, share.master_ownership)


def required_contracts(
    shares: Iterable[CollaboratorShare],
) -> Dict[UUID, FrozenSet[ContractType]]:
    """Map every collaborator share of a work to its required contract types."""
    return {share.id: resolve_share(share) for share in shares}


def contract_type_label(contract_type: Union[ContractType, str]) -> str:
    """Human readable title for a contract type."""
    try:
        return CONTRACT_TYPE_LABELS[ContractType(contract_type)]
    except ValueError:
        return str(contract_type)
