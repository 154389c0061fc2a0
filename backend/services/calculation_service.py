"""
Demand Calculation Service

The two entry points collaborators call. Each call resolves exactly one
policy version or guideline, loads its snapshot once and runs the matching
engine over it. No storage writes, HTTP or authentication happen here.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from domain.calculations.electrical_load import ElectricalLoadEngine
from domain.calculations.water_demand import WaterDemandEngine
from models.enums import PolicySource
from models.schemas import (
    DemandReport,
    ElectricalDemandReport,
    ElectricalOptions,
    Inventory,
    PolicyIdentity,
    WaterDemandReport,
    WaterOptions,
)
from services.error_types import (
    DemandEngineError,
    DraftPolicyResult,
    GuidelineNotSelected,
    InvalidInventory,
    log_error_with_context,
)
from services.policy_resolver import GuidelineRef, PolicyRef, PolicyResolver
from services.policy_store import PolicyReader
from utils.logging_utils import log_operation

logger = logging.getLogger(__name__)


def coerce_inventory(inventory: Union[Inventory, Mapping[str, Any]]) -> Inventory:
    """Validate raw inventory data, reporting problems as InvalidInventory."""
    if isinstance(inventory, Inventory):
        return inventory
    try:
        return Inventory.model_validate(inventory)
    except PydanticValidationError as e:
        errors = [
            {'loc': '.'.join(str(part) for part in err['loc']), 'msg': err['msg']}
            for err in e.errors()
        ]
        raise InvalidInventory(f"Inventory failed validation ({len(errors)} errors)", {'errors': errors}) from e


def ensure_persistable(report: DemandReport) -> DemandReport:
    """
    Gate used by the persistence layer before saving a calculation.

    Raises:
        DraftPolicyResult: the report was computed from a draft policy
    """
    if not report.is_persistable:
        raise DraftPolicyResult(
            "Calculations based on a draft policy cannot be saved",
            {
                'project_id': report.project_id,
                'policy_version_id': report.policy.policy_version_id,
                'policy': report.policy.label,
            },
        )
    return report


class DemandCalculationService:
    """Electrical and water demand calculations for one project at a time."""

    def __init__(self, reader: PolicyReader):
        self.reader = reader
        self.resolver = PolicyResolver(reader)

    def calculate_electrical_load(self, inventory: Union[Inventory, Mapping[str, Any]],
                                  ref: Union[PolicyRef, GuidelineRef, None] = None,
                                  options: Optional[ElectricalOptions] = None) -> ElectricalDemandReport:
        """
        Electrical connected load, max demand and transformer selection.

        Args:
            inventory: Project inventory (model or raw mapping)
            ref: Guideline label, or a policy version whose pinned guideline is used;
                defaults to the project's guideline selection
            options: Power factor and region

        Returns:
            ElectricalDemandReport tagged with the guideline (and policy version) used
        """
        inventory = coerce_inventory(inventory)
        options = options or ElectricalOptions()
        ref = ref or GuidelineRef()
        context = {'project_id': inventory.project_id, 'ref': repr(ref)}

        try:
            identity = None
            if isinstance(ref, PolicyRef):
                version = self.resolver.resolve_version(inventory.project_id, ref.policy_version_id).version
                if not version.electrical_guideline:
                    raise GuidelineNotSelected(inventory.project_id)
                snapshot = self.reader.load_guideline_snapshot(version.electrical_guideline)
                identity = PolicyIdentity(
                    source=PolicySource.policy_version,
                    label=f"{version.policy_number} rev {version.revision_number}",
                    policy_version_id=version.id,
                    policy_number=version.policy_number,
                    revision_number=version.revision_number,
                    status=version.status,
                    guideline=version.electrical_guideline,
                )
            else:
                snapshot = self.resolver.resolve_guideline(inventory.project_id, ref.guideline)

            context['guideline'] = snapshot.guideline
            with log_operation("electrical_load", context, logger):
                return ElectricalLoadEngine(snapshot, identity).calculate(inventory, options)
        except DemandEngineError as e:
            log_error_with_context(e, context)
            raise

    def calculate_water_demand(self, inventory: Union[Inventory, Mapping[str, Any]],
                               ref: Optional[PolicyRef] = None,
                               options: Optional[WaterOptions] = None) -> WaterDemandReport:
        """
        Potable water demand and storage sizing.

        Args:
            inventory: Project inventory (model or raw mapping)
            ref: Explicit policy version, or None for selection/default resolution
            options: Flush system type and tank depth

        Returns:
            WaterDemandReport tagged with the policy version and its status
        """
        inventory = coerce_inventory(inventory)
        options = options or WaterOptions()
        ref = ref or PolicyRef()
        context = {'project_id': inventory.project_id, 'ref': repr(ref)}

        try:
            snapshot = self.resolver.resolve(inventory.project_id, ref.policy_version_id)
            context['policy'] = snapshot.label
            context['policy_status'] = snapshot.status.value
            with log_operation("water_demand", context, logger):
                return WaterDemandEngine(snapshot).calculate(inventory, options)
        except DemandEngineError as e:
            log_error_with_context(e, context)
            raise
