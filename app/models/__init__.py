from app.models.work import Work, SplitFacet
from app.models.collaborator import Collaborator
from app.models.collaborator_share import (
    CollaboratorShare,
    CollaboratorRole,
    PUBLISHING_ELIGIBLE_ROLES,
    MASTER_ELIGIBLE_ROLES,
)
from app.models.publishing_entity import PublishingEntity
from app.models.publishing_entity_share import PublishingEntityShare
from app.models.split_history import SplitHistory, SplitType
from app.models.contract import Contract, ContractType, SignatureStatus

__all__ = [
    # Ledger models
    "Work",
    "SplitFacet",
    "Collaborator",
    "CollaboratorShare",
    "CollaboratorRole",
    "PUBLISHING_ELIGIBLE_ROLES",
    "MASTER_ELIGIBLE_ROLES",
    "PublishingEntity",
    "PublishingEntityShare",
    "SplitHistory",
    "SplitType",
    # Contract models
    "Contract",
    "ContractType",
    "SignatureStatus",
]
