import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Top-level navigation sections
MAIN_SECTIONS = ["dashboard", "targets", "map", "network", "admins"]
DEFAULT_MAIN_SECTIONS = ["dashboard", "targets", "map", "network"]

# Tabs inside a single profile
PROFILE_SECTIONS = ["overview", "capabilities", "attributes", "timeline", "map", "network", "files"]

CAPABILITY_KEYS = [
    "createSubjects",
    "editSubjects",
    "deleteSubjects",
    "manageIntel",
    "manageLocations",
    "manageRelationships",
    "manageFiles",
    "manageShares",
]

# Storage keys of the serialized policy blob
MAIN_TABS_KEY = "mainTabs"
SUBJECT_TABS_KEY = "subjectTabs"
PERMISSIONS_KEY = "permissions"


def _default_capabilities() -> Dict[str, bool]:
    return {key: True for key in CAPABILITY_KEYS}


@dataclass
class SectionPolicy:
    """Normalized allowed-sections policy of a non-master operator."""

    main_tabs: List[str] = field(default_factory=lambda: list(DEFAULT_MAIN_SECTIONS))
    subject_tabs: List[str] = field(default_factory=lambda: list(PROFILE_SECTIONS))
    permissions: Dict[str, bool] = field(default_factory=_default_capabilities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            MAIN_TABS_KEY: list(self.main_tabs),
            SUBJECT_TABS_KEY: list(self.subject_tabs),
            PERMISSIONS_KEY: dict(self.permissions),
        }


def default_policy() -> SectionPolicy:
    return SectionPolicy()


def _normalize_tabs(value: Any, known: List[str], default: List[str]) -> List[str]:
    # Any structural problem drops the whole section back to its default
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return list(default)
    seen = []
    for item in value:
        if item in known and item not in seen:
            seen.append(item)
    return seen


def _normalize_capabilities(value: Any) -> Dict[str, bool]:
    if not isinstance(value, dict) or not all(isinstance(v, bool) for v in value.values()):
        return _default_capabilities()
    merged = _default_capabilities()
    for key in CAPABILITY_KEYS:
        if key in value:
            merged[key] = value[key]
    return merged


def normalize_allowed_sections(raw: Any) -> SectionPolicy:
    """
    Turn a stored (possibly malformed) policy into a complete SectionPolicy.

    Accepts the raw JSON text, an already-decoded dict, or None. Unparseable
    input yields the full default policy. Each of the three sections is
    validated on its own and replaced wholesale by its default when malformed,
    so a policy is never half default and half corrupt. Unknown tab ids are
    dropped and unknown capability keys ignored.

    Args:
        raw: Stored policy (JSON string, dict or None)

    Returns:
        Normalized policy
    """
    if raw is None or raw == "":
        return default_policy()

    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, TypeError):
            logger.warning("Stored section policy is not valid JSON; using default policy")
            return default_policy()

    if not isinstance(data, dict):
        return default_policy()

    return SectionPolicy(
        main_tabs=_normalize_tabs(data.get(MAIN_TABS_KEY), MAIN_SECTIONS, DEFAULT_MAIN_SECTIONS),
        subject_tabs=_normalize_tabs(data.get(SUBJECT_TABS_KEY), PROFILE_SECTIONS, PROFILE_SECTIONS),
        permissions=_normalize_capabilities(data.get(PERMISSIONS_KEY)),
    )


def serialize_allowed_sections(raw: Any) -> str:
    """Normalize a policy and return the JSON text stored on the operator row."""
    return json.dumps(normalize_allowed_sections(raw).to_dict())


def get_operator_policy(operator) -> SectionPolicy:
    return normalize_allowed_sections(getattr(operator, "allowed_sections", None))


def can_access_section(operator, section_id: str) -> bool:
    """Whether the operator may open a top-level section."""
    if operator is None:
        return False
    if operator.is_master:
        return True
    return section_id in get_operator_policy(operator).main_tabs


def can_access_subsection(operator, section_id: str) -> bool:
    """Whether the operator may open a tab inside a profile."""
    if operator is None:
        return False
    if operator.is_master:
        return True
    return section_id in get_operator_policy(operator).subject_tabs


def can_perform(operator, capability_key: str) -> bool:
    """Whether the operator holds a capability (e.g. "deleteSubjects")."""
    if operator is None:
        return False
    if operator.is_master:
        return True
    return get_operator_policy(operator).permissions.get(capability_key, False) is True


def describe_policy(operator) -> Optional[Dict[str, Any]]:
    """Policy as returned to clients; masters get every section and capability."""
    if operator is None:
        return None
    if operator.is_master:
        return SectionPolicy(
            main_tabs=list(MAIN_SECTIONS),
            subject_tabs=list(PROFILE_SECTIONS),
            permissions=_default_capabilities(),
        ).to_dict()
    return get_operator_policy(operator).to_dict()
