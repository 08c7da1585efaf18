"""
Model for the persisted FBR scenario mapping table.
"""
from typing import List
from sqlalchemy import Column, String, Integer, Boolean, Text, UniqueConstraint
from app.database.database import Base
from app.common.mixins import TimestampMixin


class ScenarioMapping(TimestampMixin, Base):
    """
    Combinación Actividad Económica x Sector con sus escenarios FBR.
    Datos estáticos generados desde el catálogo (seed_data.py).
    """
    __tablename__ = "scenario_mappings"
    __table_args__ = (
        UniqueConstraint("business_activity", "sector", name="uq_scenario_activity_sector"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_activity = Column(String(100), nullable=False, index=True)
    sector = Column(String(100), nullable=False, index=True)
    applicable_scenarios = Column(Text, nullable=False)  # Códigos separados por coma: "SN001,SN002"
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def scenario_codes(self) -> List[str]:
        return split_scenario_codes(self.applicable_scenarios)

    def __str__(self):
        return f"{self.business_activity} / {self.sector}"


def split_scenario_codes(value) -> List[str]:
    """Separar la lista de códigos almacenada, ignorando espacios y vacíos."""
    if not value:
        return []
    return [code.strip() for code in value.split(",") if code.strip()]


def join_scenario_codes(codes) -> str:
    return ",".join(codes)
