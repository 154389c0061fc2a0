"""
Error Types for the Demand & Sizing Engine

Every failure the engine can surface is a subclass of DemandEngineError and
carries a ``details`` dict with the policy identity and lookup key involved,
so the caller can act on it. Nothing here is retried internally.
"""

import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class DemandEngineError(Exception):
    """Base exception for all demand calculation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# --- Policy resolution -----------------------------------------------------

class PolicyResolutionError(DemandEngineError):
    """
    No usable policy version or guideline could be resolved.

    These are configuration problems, not user errors.
    """
    pass


class PolicyNotFound(PolicyResolutionError):
    """An explicitly requested policy version does not exist."""

    def __init__(self, policy_version_id: int):
        super().__init__(
            f"Policy version {policy_version_id} not found",
            {'policy_version_id': policy_version_id},
        )
        self.policy_version_id = policy_version_id


class NoDefaultPolicy(PolicyResolutionError):
    """No policy version is marked as the system default."""

    def __init__(self, project_id: Optional[str] = None):
        super().__init__(
            "No default policy version is configured",
            {'project_id': project_id},
        )


class AmbiguousDefaultPolicy(PolicyResolutionError):
    """More than one policy version claims to be the default."""

    def __init__(self, policy_version_ids: list):
        super().__init__(
            f"{len(policy_version_ids)} policy versions are marked default",
            {'policy_version_ids': list(policy_version_ids)},
        )
        self.policy_version_ids = list(policy_version_ids)


class GuidelineNotFound(PolicyResolutionError):
    """The requested electrical guideline has no active factor entries."""

    def __init__(self, guideline: str):
        super().__init__(f"Guideline '{guideline}' not found", {'guideline': guideline})
        self.guideline = guideline


class GuidelineNotSelected(PolicyResolutionError):
    """Neither the caller nor the project selected an electrical guideline."""

    def __init__(self, project_id: Optional[str] = None):
        super().__init__(
            "No electrical guideline given and none selected for the project",
            {'project_id': project_id},
        )


# --- Policy data -----------------------------------------------------------

class PolicyDataError(DemandEngineError):
    """Stored rate or factor data cannot be used as-is."""
    pass


class RateNotFound(PolicyDataError):
    """
    Lookup miss with no applicable alias fallback.

    Aborts the whole calculation; a partial report is never produced.
    """

    def __init__(self, kind: str, project_type: str, sub_type: str, category: str,
                 source: Optional[str] = None):
        details = {
            'kind': kind,
            'project_type': project_type,
            'sub_type': sub_type,
            'category': category,
        }
        if source is not None:
            details['source'] = source
        super().__init__(
            f"No {kind} rate for {project_type}/{sub_type}/{category}",
            details,
        )
        self.kind = kind
        self.project_type = project_type
        self.sub_type = sub_type
        self.category = category


class CorruptRate(PolicyDataError):
    """A stored value is negative, non-numeric, non-finite or out of range."""

    def __init__(self, message: str, key: Dict[str, Any], value: Any):
        super().__init__(message, {**key, 'value': repr(value)})
        self.value = value


class FactorConfigurationError(PolicyDataError):
    """An electrical factor entry has both or neither of W/m² and W/unit."""
    pass


# --- Lifecycle -------------------------------------------------------------

class PolicyLifecycleError(DemandEngineError):
    """
    An illegal policy version status transition.

    Examples:
    - Activating an archived version
    - Archiving a version twice
    """
    pass


# --- Sizing ----------------------------------------------------------------

class SizingError(DemandEngineError):
    """Equipment could not be sized from the demand figure."""
    pass


class NoSuitableRating(SizingError):
    """No transformer rating in the table is large enough for the demand."""

    def __init__(self, required_kva: float, largest_kva: Optional[float],
                 project_type: Optional[str] = None, region: Optional[str] = None):
        super().__init__(
            f"No transformer rating >= {required_kva} kVA "
            f"(largest available: {largest_kva})",
            {
                'required_kva': required_kva,
                'largest_kva': largest_kva,
                'project_type': project_type,
                'region': region,
            },
        )
        self.required_kva = required_kva
        self.largest_kva = largest_kva


# --- Input -----------------------------------------------------------------

class ValidationError(DemandEngineError):
    """
    Caller input errors.

    Examples:
    - Negative area or count
    - Flush tank selected where the policy has no tank rate
    """
    pass


class InvalidInventory(ValidationError):
    """Structurally malformed inventory."""
    pass


class UnsupportedOption(ValidationError):
    """A calculation option is not valid for the project's sub-type."""
    pass


# --- Persistence boundary --------------------------------------------------

class DraftPolicyResult(DemandEngineError):
    """A report derived from a draft policy was offered for persistence."""
    pass


def log_error_with_context(error: DemandEngineError, context: Dict[str, Any]):
    """
    Log error with additional context information.

    Args:
        error: Error to log
        context: Additional context (project_id, policy identity, etc.)
    """
    log_data = {
        'error_type': type(error).__name__,
        'error_message': error.message,
        'details': error.details,
        'context': context
    }

    if isinstance(error, ValidationError):
        logger.warning(f"Rejected input: {error.message}", extra=log_data)
    else:
        logger.error(f"Calculation aborted: {error.message}", extra=log_data)
