"""Pydantic request/response schemas for the BOQ API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from boq_estimator.services.requirement_engine import Dimensions, WorkPackageConfiguration


class DimensionsIn(BaseModel):
    count: int = Field(1, description="Number of identical units")
    height: Optional[float] = Field(None, description="Height in ft")
    width: Optional[float] = Field(None, description="Width in ft")
    glass_height: Optional[float] = None
    glass_width: Optional[float] = None


class ConfigurationIn(BaseModel):
    work_package: str = "doors"
    type: str = Field(..., description="e.g. flush, wpc, glass, wooden, stile / interior / vitrified")
    sub_option: Optional[str] = None
    glazing_type: Optional[str] = None
    has_frame: bool = False
    panel_type: Optional[str] = None
    dimensions: DimensionsIn = Field(default_factory=DimensionsIn)

    def to_configuration(self) -> WorkPackageConfiguration:
        return WorkPackageConfiguration(
            type=self.type,
            work_package=self.work_package,
            sub_option=self.sub_option,
            glazing_type=self.glazing_type,
            has_frame=self.has_frame,
            panel_type=self.panel_type,
            dimensions=Dimensions(**self.dimensions.model_dump()),
        )


class PreviewRequest(BaseModel):
    configuration: ConfigurationIn
    brand_choices: Dict[str, str] = Field(default_factory=dict, description="type label → brand")


class ProjectCreate(BaseModel):
    name: str
    client: str = ""
    budget: Optional[float] = None
    location: str = ""


class ProjectOut(BaseModel):
    id: str
    name: str
    client: str
    budget: Optional[float]
    location: str


class VersionCreate(BaseModel):
    project_id: str
    copy_from_version_id: Optional[str] = None


class VersionStatusUpdate(BaseModel):
    status: str   # only "submitted" is accepted


class VersionOut(BaseModel):
    id: str
    project_id: str
    version_number: int
    status: str
    created_at: datetime
    updated_at: datetime


class ItemCreate(BaseModel):
    version_id: str
    work_package: str
    table_data: Dict[str, Any] = Field(default_factory=dict)


class ItemOut(BaseModel):
    id: str
    project_id: str
    version_id: str
    work_package: str
    table_data: Dict[str, Any]


class EditsIn(BaseModel):
    rows: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    groups: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class CatalogVariantOut(BaseModel):
    material_id: str
    product_name: str
    material_name: str
    brand: str
    shop_id: str
    shop_name: str
    rate: float
    unit: str
    code: str = ""
    category: str = ""
    sub_category: str = ""


class SummaryOut(BaseModel):
    groups: List[Dict[str, Any]]
    rows: List[Dict[str, Any]]
    totals: Dict[str, Any]
