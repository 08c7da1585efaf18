"""
Consultas sobre la tabla persistida de escenarios.

Cada valor recibido del cliente se envía como parámetro ligado
(IN expandido de SQLAlchemy); nunca se concatena en el texto SQL.
"""
from typing import Dict, Iterable, List, Tuple
from sqlalchemy.orm import Session

from .models import ScenarioMapping, split_scenario_codes


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


class ScenarioMappingCRUD:
    """Read operations for FBR scenario mappings."""

    @staticmethod
    def lookup_scenarios(db: Session, business_activities: Iterable[str], sectors: Iterable[str]) -> List[str]:
        """
        Unión de escenarios activos para las actividades y sectores dados.

        Equivalente en base de datos de `catalog.resolve_scenarios`.
        """
        activities = _unique(business_activities)
        sector_values = _unique(sectors)
        if not activities or not sector_values:
            return []

        rows = (
            db.query(ScenarioMapping.applicable_scenarios)
            .filter(
                ScenarioMapping.business_activity.in_(activities),
                ScenarioMapping.sector.in_(sector_values),
                ScenarioMapping.is_active.is_(True),
            )
            .distinct()
            .all()
        )

        scenarios = set()
        for (applicable,) in rows:
            scenarios.update(split_scenario_codes(applicable))
        return sorted(scenarios)

    @staticmethod
    def get_all(db: Session, include_inactive: bool = False) -> List[ScenarioMapping]:
        """Obtener las combinaciones ordenadas por actividad y sector."""
        query = db.query(ScenarioMapping)
        if not include_inactive:
            query = query.filter(ScenarioMapping.is_active.is_(True))
        return query.order_by(ScenarioMapping.business_activity, ScenarioMapping.sector).all()

    @staticmethod
    def get_active_mappings(db: Session) -> Dict[Tuple[str, str], List[str]]:
        """Filas activas como {(actividad, sector): códigos} para reconciliar."""
        return {
            (row.business_activity, row.sector): row.scenario_codes
            for row in ScenarioMappingCRUD.get_all(db)
        }

    @staticmethod
    def count(db: Session) -> int:
        return db.query(ScenarioMapping).count()
