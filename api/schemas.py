from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ThresholdsModel(BaseModel):
    run_rate_tolerance: float = 0.85
    decline_lower: float = -0.9
    decline_upper: float = -0.3
    outlier_extreme_z: float = 3.0
    outlier_z: float = 2.0
    outlier_min_share: float = 0.02
    emerging_rate: float = 200.0
    outlier_limit: int = 8
    min_volume_share: float = 0.02
    min_volume_mt: float = 10.0
    min_performance_gap: float = 10.0


class PeriodModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    year: int
    month: Optional[str] = None
    type: str = "Actual"
    months: List[str] = Field(default_factory=list)
    is_custom_range: bool = Field(default=False, alias="isCustomRange")
    custom_range_id: Optional[str] = Field(default=None, alias="id")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    custom_color: Optional[str] = Field(default=None, alias="customColor")


class ReportConfigModel(BaseModel):
    division: str = ""
    periods: List[PeriodModel] = Field(default_factory=list)
    base_period_index: int = 0
    top_n: int = 10
    months_elapsed: Optional[int] = None
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)


class MetaDivisionsResponse(BaseModel):
    divisions: List[str]


class MetaPeriodsResponse(BaseModel):
    division: str
    columns: List[Dict[str, object]]
