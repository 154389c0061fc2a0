"""
Policy Resolver

Turns a project plus an optional explicit reference into exactly one
snapshot. Resolution order for water policies:

1. explicit policy version id (any status, so drafts can be previewed)
2. the project's ``phe_policy_version`` standard selection, if it still
   points at a non-archived version
3. the single system default

Electrical guidelines resolve from an explicit label, then the project's
``electrical_guideline`` selection. There is no global default guideline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from domain.policy.snapshot import GuidelineSnapshot, PolicySnapshot
from models.enums import PolicyStatus
from services.error_types import (
    AmbiguousDefaultPolicy,
    GuidelineNotSelected,
    NoDefaultPolicy,
    PolicyNotFound,
)
from services.policy_store import (
    ELECTRICAL_GUIDELINE_STANDARD,
    PHE_POLICY_STANDARD,
    PolicyReader,
    PolicyVersionInfo,
)

logger = logging.getLogger(__name__)


class ResolutionPath(str, Enum):
    explicit = 'explicit'
    project_selection = 'project_selection'
    default = 'default'


@dataclass(frozen=True)
class PolicyRef:
    """Water policy reference; ``None`` lets the resolver pick."""
    policy_version_id: Optional[int] = None


@dataclass(frozen=True)
class GuidelineRef:
    """Electrical guideline reference; ``None`` uses the project's selection."""
    guideline: Optional[str] = None


@dataclass(frozen=True)
class ResolvedVersion:
    version: PolicyVersionInfo
    path: ResolutionPath


class PolicyResolver:
    """Explicit, ordered policy resolution over a PolicyReader."""

    def __init__(self, reader: PolicyReader):
        self.reader = reader

    def resolve_version(self, project_id: str, explicit_policy_id: Optional[int] = None) -> ResolvedVersion:
        """
        Decide which policy version applies without loading its rates.

        Raises:
            PolicyNotFound: the explicit id does not exist
            NoDefaultPolicy: no selection and no default
            AmbiguousDefaultPolicy: more than one version is marked default
        """
        if explicit_policy_id is not None:
            version = self.reader.get_policy_version(explicit_policy_id)
            if version is None:
                raise PolicyNotFound(explicit_policy_id)
            if version.status == PolicyStatus.draft:
                logger.info(f"Previewing draft policy {version.policy_number} rev {version.revision_number}")
            return ResolvedVersion(version, ResolutionPath.explicit)

        selection = self.reader.get_project_selection(project_id, PHE_POLICY_STANDARD)
        if selection is not None and selection.standard_ref_id is not None:
            version = self.reader.get_policy_version(selection.standard_ref_id)
            if version is not None and version.status != PolicyStatus.archived:
                return ResolvedVersion(version, ResolutionPath.project_selection)
            logger.warning(
                f"Project {project_id} selects policy version {selection.standard_ref_id}, "
                f"which is missing or archived; falling back to the default"
            )

        defaults = self.reader.list_default_policy_versions()
        if not defaults:
            raise NoDefaultPolicy(project_id)
        if len(defaults) > 1:
            raise AmbiguousDefaultPolicy([v.id for v in defaults])
        return ResolvedVersion(defaults[0], ResolutionPath.default)

    def resolve(self, project_id: str, explicit_policy_id: Optional[int] = None) -> PolicySnapshot:
        """Resolve and load the snapshot; the only point rates are read from the store."""
        resolved = self.resolve_version(project_id, explicit_policy_id)
        logger.info(
            f"Project {project_id}: policy {resolved.version.policy_number} "
            f"rev {resolved.version.revision_number} via {resolved.path.value}"
        )
        return self.reader.load_policy_snapshot(resolved.version.id)

    def resolve_guideline_label(self, project_id: str, guideline: Optional[str] = None) -> str:
        if guideline:
            return guideline
        selection = self.reader.get_project_selection(project_id, ELECTRICAL_GUIDELINE_STANDARD)
        if selection is not None and selection.standard_value:
            return selection.standard_value
        raise GuidelineNotSelected(project_id)

    def resolve_guideline(self, project_id: str, guideline: Optional[str] = None) -> GuidelineSnapshot:
        label = self.resolve_guideline_label(project_id, guideline)
        logger.info(f"Project {project_id}: electrical guideline {label}")
        return self.reader.load_guideline_snapshot(label)
