from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional

from core.config import DEFAULT_POWER_FACTOR, DEFAULT_TANK_DEPTH_M
from models.enums import (
    AmenityKind,
    AreaUnit,
    FlushSystemType,
    PolicySource,
    PolicyStatus,
    ProjectType,
)


# ---------------------------------------------------------------------------
# Inventory (input, read-only)
# ---------------------------------------------------------------------------

class FactorRef(BaseModel):
    """Points an inventory line at an electrical load factor of the guideline."""
    model_config = ConfigDict(frozen=True)

    category: str = Field(..., description="Factor category, e.g. RESIDENTIAL, LIGHTING, LIFTS")
    sub_category: str = Field("default", description="Factor sub-category, e.g. FLAT, LOBBY")
    description: str = Field(..., description="Factor description, e.g. 'Passenger Lift'")


class UnitGroup(BaseModel):
    """One unit type of a building: ``count`` units of ``area`` each."""
    model_config = ConfigDict(frozen=True)

    unit_type: str = Field(..., description="Unit type, e.g. 2BHK, Shop, Screen")
    area: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Area of one unit")
    count: int = Field(..., ge=0, description="Units, seats or heads depending on project type")
    factor: Optional[FactorRef] = Field(None, description="Electrical factor override")


class AreaLoad(BaseModel):
    """Area-based common load such as lobbies, terraces or parking, repeated ``count`` times."""
    model_config = ConfigDict(frozen=True)

    factor: FactorRef
    area: float = Field(..., ge=0, allow_inf_nan=False)
    count: int = Field(1, ge=0)
    description: Optional[str] = None


class EquipmentItem(BaseModel):
    """Equipment-based load such as lifts or pumps."""
    model_config = ConfigDict(frozen=True)

    factor: FactorRef
    count: int = Field(..., ge=0)
    area: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    description: Optional[str] = None


class Building(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    unit_groups: List[UnitGroup] = Field(default_factory=list)
    common_areas: List[AreaLoad] = Field(default_factory=list)
    equipment: List[EquipmentItem] = Field(default_factory=list)
    pool_area: float = Field(0.0, ge=0, allow_inf_nan=False, description="Pool surface area")
    landscape_area: float = Field(0.0, ge=0, allow_inf_nan=False)
    cooling_tower_tr: float = Field(0.0, ge=0, allow_inf_nan=False, description="Cooling tower capacity in TR")


class Inventory(BaseModel):
    """Project → Building[] → UnitGroup[] tree supplied whole per calculation."""
    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1)
    project_type: ProjectType
    sub_type: str = Field(..., min_length=1, description="Market segment, e.g. luxury, excelus")
    category: Optional[str] = Field(None, description="Project category label, e.g. GOLD 2")
    area_unit: AreaUnit = AreaUnit.sqm
    buildings: List[Building] = Field(default_factory=list)
    equipment: List[EquipmentItem] = Field(default_factory=list, description="Project-level equipment")

    @model_validator(mode='after')
    def check_building_names(self):
        names = [b.name for b in self.buildings]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate building names: {', '.join(duplicates)}")
        return self


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

class ElectricalOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    power_factor: float = Field(default_factory=lambda: DEFAULT_POWER_FACTOR, gt=0, le=1)
    region: Optional[str] = Field(None, description="State used to filter the transformer table")


class WaterOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    flush_system_type: FlushSystemType = FlushSystemType.valve
    tank_depth_m: float = Field(default_factory=lambda: DEFAULT_TANK_DEPTH_M, gt=0, allow_inf_nan=False)


# ---------------------------------------------------------------------------
# Reports (output, immutable)
# ---------------------------------------------------------------------------

class PolicyIdentity(BaseModel):
    """The single rate set a report was computed from."""
    model_config = ConfigDict(frozen=True)

    source: PolicySource
    label: str
    policy_version_id: Optional[int] = None
    policy_number: Optional[str] = None
    revision_number: Optional[int] = None
    status: Optional[PolicyStatus] = None
    guideline: Optional[str] = None


class DemandReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    project_type: ProjectType
    sub_type: str
    category: Optional[str] = None
    policy: PolicyIdentity
    warnings: List[str] = Field(default_factory=list)

    @property
    def source_status(self) -> Optional[PolicyStatus]:
        return self.policy.status

    @property
    def is_persistable(self) -> bool:
        """Draft-derived results may be previewed but never saved."""
        return self.policy.status != PolicyStatus.draft


class ElectricalLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    factor: FactorRef
    count: int
    area_sqm: Optional[float] = None
    watt_per_sqm: Optional[float] = None
    watt_per_unit: Optional[float] = None
    mdf: float
    edf: float
    fdf: float
    unit_load_w: int
    connected_load_w: int
    max_demand_w: int
    essential_demand_w: int
    fire_demand_w: int
    notes: Optional[str] = Field(None, description="Guideline notes on the factor")


class ElectricalSubtotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    lines: List[ElectricalLineItem]
    connected_load_w: int
    max_demand_w: int
    essential_demand_w: int
    fire_demand_w: int


class TransformerSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    required_kva: int
    rating_kva: float
    candidates_kva: List[float]


class ElectricalTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    connected_load_w: int
    max_demand_w: int
    essential_demand_w: int
    fire_demand_w: int
    power_factor: float
    max_demand_kva: int


class ElectricalDemandReport(DemandReport):
    buildings: List[ElectricalSubtotal]
    project_equipment: ElectricalSubtotal
    totals: ElectricalTotals
    transformer: TransformerSelection


class WaterLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit_type: str
    count: int
    area_sqm: float
    occupants: int
    visitors: int
    drinking_rate: float
    flushing_rate: float
    drinking_l: int
    flushing_l: int
    total_l: int


class AmenityLine(BaseModel):
    """Limited-human-touch or mechanical demand computed from a parameter × size."""
    model_config = ConfigDict(frozen=True)

    building: str
    kind: AmenityKind
    quantity: float
    rate: float
    demand_l: int


class WaterSubtotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    lines: List[WaterLineItem]
    occupants: int
    visitors: int
    drinking_l: int
    flushing_l: int
    limited_human_touch_l: int
    mechanical_l: int
    total_l: int
    oht_capacity_l: int = Field(..., description="Overhead tank, domestic and flushing days")
    ugr_capacity_l: int = Field(..., description="Underground reservoir, domestic and flushing days")


class WaterTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    occupants: int
    visitors: int
    drinking_l: int
    flushing_l: int
    limited_human_touch_l: int
    mechanical_l: int
    total_l: int
    per_capita_l: int


class StorageSizing(BaseModel):
    model_config = ConfigDict(frozen=True)

    daily_demand_l: int
    buffer_percentage: float
    capacity_l: int
    volume_m3: float
    depth_m: float
    footprint_sqm: float
    side_m: float
    ugr_capacity_l: int = Field(..., description="Underground reservoirs of all buildings")


class TreatmentRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    stream: str
    method: str
    capacity_l: int
    usage: str


class WaterDemandReport(DemandReport):
    flush_system_type: FlushSystemType
    buildings: List[WaterSubtotal]
    amenities: List[AmenityLine]
    totals: WaterTotals
    storage: StorageSizing
    treatment: List[TreatmentRecommendation]
