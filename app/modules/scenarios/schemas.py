"""
Pydantic schemas for the scenario resolver endpoints.
"""
from typing import List
from pydantic import BaseModel, Field


class ScenarioSelection(BaseModel):
    """Selección de actividades económicas y sectores enviada por el cliente."""
    business_activities: List[str] = Field(..., alias="businessActivities", description="Actividades económicas seleccionadas")
    sectors: List[str] = Field(..., description="Sectores seleccionados")

    class Config:
        populate_by_name = True


class ScenarioPairSelection(BaseModel):
    """Una sola combinación actividad/sector."""
    business_activity: str = Field(..., alias="businessActivity")
    sector: str

    class Config:
        populate_by_name = True


class ScenarioLookupResponse(BaseModel):
    success: bool = True
    data: List[str] = Field(default_factory=list, description="Códigos de escenario ordenados y sin duplicados")
    degraded: bool = Field(False, description="True si la respuesta no viene de la base de datos")


class ScenarioValidateResponse(BaseModel):
    success: bool = True
    is_valid: bool = Field(..., alias="isValid")
    message: str
    degraded: bool = False

    class Config:
        populate_by_name = True


class LabelList(BaseModel):
    """Schema para las enumeraciones cerradas (actividades o sectores)."""
    success: bool = True
    data: List[str]
    total: int


class ScenarioMappingOut(BaseModel):
    business_activity: str = Field(..., alias="businessActivity")
    sector: str
    scenarios: List[str]
    is_active: bool = Field(True, alias="isActive")

    class Config:
        populate_by_name = True


class ScenarioMappingList(BaseModel):
    success: bool = True
    data: List[ScenarioMappingOut]
    total: int


class ScenarioPair(BaseModel):
    business_activity: str = Field(..., alias="businessActivity")
    sector: str

    class Config:
        populate_by_name = True


class ScenarioConsistencyResponse(BaseModel):
    """Reporte de reconciliación entre el catálogo estático y la tabla persistida."""
    success: bool = True
    consistent: bool
    missing: List[ScenarioPair] = Field(default_factory=list, description="En el catálogo pero no en la base de datos")
    extra: List[ScenarioPair] = Field(default_factory=list, description="En la base de datos pero no en el catálogo")
    mismatched: List[ScenarioPair] = Field(default_factory=list, description="Presentes en ambos con códigos distintos")
