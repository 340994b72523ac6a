"""Record-linkage core.

Layered flow for one governed write:
1) interceptors decide how the write is absorbed (redirect, record of truth, linkage)
2) the engine matches and rewrites the relationship graph into a transaction
3) the transaction is committed as one unit
4) consistency triggers repair what the commit left inconsistent
"""

from __future__ import annotations

from .contracts import (
    PROCEED,
    Cancel,
    InterceptorOutcome,
    MasterMatch,
    MergeResult,
    Proceed,
    RecordDifference,
    ValidationIssue,
)
from .engine import LinkageEngine, LinkageEngineFactory, MasterHook, MatcherRegistration
from .events import MergeEventArgs, MergeEvents
from .gateway import RecordGateway
from .identity import UNIQUE_DOMAINS, IdentityMatcher, UniqueDomainCache
from .job import JobState, MatchJob, reconcile_all
from .merge import MergeOrchestrator
from .persist import commit_transaction
from .query import QueryRewriter
from .synthesis import MasterView, SynthesisBuilder
from .transaction import TransactionBuilder
from .triggers import ConsistencyTriggers, ReconcileReport
from .view import LinkageView

__all__ = [
    "PROCEED",
    "UNIQUE_DOMAINS",
    "Cancel",
    "ConsistencyTriggers",
    "IdentityMatcher",
    "InterceptorOutcome",
    "JobState",
    "LinkageEngine",
    "LinkageEngineFactory",
    "LinkageView",
    "MasterHook",
    "MasterMatch",
    "MasterView",
    "MatchJob",
    "MatcherRegistration",
    "MergeEventArgs",
    "MergeEvents",
    "MergeOrchestrator",
    "MergeResult",
    "Proceed",
    "QueryRewriter",
    "ReconcileReport",
    "RecordDifference",
    "RecordGateway",
    "SynthesisBuilder",
    "TransactionBuilder",
    "UniqueDomainCache",
    "ValidationIssue",
    "commit_transaction",
    "reconcile_all",
]
