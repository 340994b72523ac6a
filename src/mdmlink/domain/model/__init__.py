"""Public domain model surface."""

from __future__ import annotations

from mdmlink.domain.model.constants import (
    IDENTITY_MATCH_CONFIGURATION,
    MDM_GENERATED_TAG,
    MDM_RESOURCE_TAG,
    MDM_ROT_INDICATOR_TAG,
    MDM_TYPE_TAG,
    MdmPermission,
    permission_implies,
)
from mdmlink.domain.model.entity import Entity, new_id, utcnow
from mdmlink.domain.model.enums import (
    LinkClassification,
    MatchClassification,
    MatchMethod,
    MergeStatus,
    RecordClass,
    RecordKind,
    RecordStatus,
    RelationshipKind,
)
from mdmlink.domain.model.errors import (
    InvalidMergeError,
    MdmError,
    PolicyViolationError,
    StateConflictError,
)
from mdmlink.domain.model.identifiers import Identifier, IdentifierDomain
from mdmlink.domain.model.principal import SYSTEM_PRINCIPAL, Principal
from mdmlink.domain.model.provenance import Provenance
from mdmlink.domain.model.record import Record
from mdmlink.domain.model.relationship import (
    Relationship,
    build_relationship,
    candidate_link,
    ignore_candidate_link,
    master_link,
    original_master_link,
    record_of_truth_link,
    replaces_link,
)

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    "utcnow",
    # records
    "Record",
    "Identifier",
    "IdentifierDomain",
    "Provenance",
    "Principal",
    "SYSTEM_PRINCIPAL",
    # relationships
    "Relationship",
    "build_relationship",
    "master_link",
    "candidate_link",
    "ignore_candidate_link",
    "original_master_link",
    "record_of_truth_link",
    "replaces_link",
    # enums
    "LinkClassification",
    "MatchClassification",
    "MatchMethod",
    "MergeStatus",
    "RecordClass",
    "RecordKind",
    "RecordStatus",
    "RelationshipKind",
    # constants
    "IDENTITY_MATCH_CONFIGURATION",
    "MDM_GENERATED_TAG",
    "MDM_RESOURCE_TAG",
    "MDM_ROT_INDICATOR_TAG",
    "MDM_TYPE_TAG",
    "MdmPermission",
    "permission_implies",
    # errors
    "MdmError",
    "PolicyViolationError",
    "InvalidMergeError",
    "StateConflictError",
]
