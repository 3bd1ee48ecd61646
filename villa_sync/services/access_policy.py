# villa_sync/services/access_policy.py
# Which tables a role syncs, and which rows of each it may see.

from typing import List, Optional

from villa_sync.utils.filters import build_where

ADMIN = "admin"
MANAGER = "manager"
OWNER = "owner"

DENY_ALL = '"id" IS NULL'

BASE_TABLES: List[str] = ["Villa", "Photo"]

ROLE_TABLES = {
    ADMIN: [
        "Villa", "Owner", "ContractualDetails", "BankDetails", "OTACredentials",
        "Staff", "Photo", "Document", "FacilityChecklist",
        "OnboardingProgress", "OnboardingSession", "OnboardingStepProgress",
        "SkippedItem", "OnboardingBackup", "StepFieldProgress",
    ],
    MANAGER: [
        "Villa", "Owner", "ContractualDetails", "Staff", "Photo", "Document",
        "FacilityChecklist", "OnboardingProgress", "OnboardingSession",
        "OnboardingStepProgress", "SkippedItem", "OnboardingBackup", "StepFieldProgress",
    ],
    OWNER: [
        "Villa", "Owner", "ContractualDetails", "BankDetails", "Staff",
        "Photo", "Document", "OnboardingSession", "OnboardingProgress",
        "OnboardingStepProgress", "StepFieldProgress",
    ],
}

# Villa-scoped tables managers see in full
VILLA_SCOPED_TABLES = frozenset({
    "Owner", "Staff", "Photo", "Document", "FacilityChecklist",
    "OnboardingProgress", "OnboardingSession", "OnboardingStepProgress",
    "SkippedItem", "OnboardingBackup", "StepFieldProgress",
})

# Financial tables only admins and the owning villa see
RESTRICTED_TABLES = frozenset({"BankDetails", "OTACredentials", "ContractualDetails"})


def relevant_tables(role: str) -> List[str]:
    return list(ROLE_TABLES.get(role, BASE_TABLES))


def where_for(table: str, role: str, villa_id: Optional[str] = None) -> Optional[str]:
    """Row predicate for ``table`` under ``role``; None means unrestricted.

    Unknown tables are denied.
    """
    if role == ADMIN:
        return None

    if table == "Villa":
        if role == MANAGER:
            return None
        if role == OWNER and villa_id:
            return build_where({"id": villa_id})
        return DENY_ALL

    if table in VILLA_SCOPED_TABLES:
        if role == MANAGER:
            return None
        if villa_id:
            return build_where({"villaId": villa_id})
        return '"villaId" IS NULL'

    if table in RESTRICTED_TABLES:
        if role == OWNER and villa_id:
            return build_where({"villaId": villa_id})
        return '"villaId" IS NULL'

    # AdminAction and anything unlisted
    return DENY_ALL
