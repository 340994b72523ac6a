"""Domain port definitions for adapters."""

from __future__ import annotations

from .matching import MatchConfiguration, MatcherBinding, MatchingProvider, MatchResult
from .persistence import (
    IdentifierDomainRepository,
    RecordCriteria,
    RecordRepository,
    RelationshipRepository,
    Repository,
)
from .policy import PermissionChecker
from .unit_of_work import (
    MdmRepositories,
    MdmUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "IdentifierDomainRepository",
    "MatchConfiguration",
    "MatchResult",
    "MatcherBinding",
    "MatchingProvider",
    "MdmRepositories",
    "MdmUnitOfWork",
    "PermissionChecker",
    "RecordCriteria",
    "RecordRepository",
    "RelationshipRepository",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
]
