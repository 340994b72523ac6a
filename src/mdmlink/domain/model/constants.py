"""Well-known tag names, configuration names and permission identifiers."""

from __future__ import annotations

from typing import Final

MDM_TYPE_TAG: Final[str] = "$mdm.type"
MDM_RESOURCE_TAG: Final[str] = "$mdm.resource"
MDM_GENERATED_TAG: Final[str] = "$generated"
MDM_ROT_INDICATOR_TAG: Final[str] = "$mdm.rot"
MDM_PROCESSED_TAG: Final[str] = "$mdm.processed"
MATCH_SCORE_TAG: Final[str] = "$match.score"

# tags that only make sense on engine-owned records
MASTER_ONLY_TAGS: Final[frozenset[str]] = frozenset(
    {MDM_TYPE_TAG, MDM_RESOURCE_TAG, MDM_GENERATED_TAG, MDM_ROT_INDICATOR_TAG}
)

IDENTITY_MATCH_CONFIGURATION: Final[str] = "$identity"
AUTO_LINK_SETTING: Final[str] = "$mdm.auto-link"

INVALID_MERGE_ISSUE: Final[str] = "mdm-no-local-or-permission"
ORPHAN_ISSUE: Final[str] = "MDM-ORPHAN"


class MdmPermission:
    """Permission (policy) identifiers demanded by the linkage engine."""

    UNRESTRICTED_MDM: Final[str] = "1.3.6.1.4.1.33349.3.1.5.9.2.6"
    WRITE_MDM_MASTER: Final[str] = UNRESTRICTED_MDM + ".1"
    READ_MDM_LOCALS: Final[str] = UNRESTRICTED_MDM + ".2"
    MERGE_MDM_MASTER: Final[str] = UNRESTRICTED_MDM + ".3"
    ESTABLISH_RECORD_OF_TRUTH: Final[str] = UNRESTRICTED_MDM + ".4"
    EDIT_RECORD_OF_TRUTH: Final[str] = ESTABLISH_RECORD_OF_TRUTH + ".1"


def permission_implies(granted: str, demanded: str) -> bool:
    """Return whether ``granted`` covers ``demanded`` (same OID or an ancestor)."""

    return demanded == granted or demanded.startswith(granted + ".")
