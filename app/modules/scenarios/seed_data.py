"""
Script para poblar la tabla scenario_mappings desde el catálogo estático.

El catálogo (catalog.py) es la única fuente de verdad; este script solo
lo copia a la base de datos para que las consultas SQL den el mismo
resultado que el resolver en memoria.
"""
import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from app.database.database import Base, SessionLocal, engine
from app.modules.scenarios.catalog import iter_mappings
from app.modules.scenarios.models import ScenarioMapping, join_scenario_codes

logger = logging.getLogger(__name__)


def build_mapping_rows() -> List[Dict[str, str]]:
    """Filas a insertar, una por combinación con escenarios."""
    return [
        {
            "business_activity": activity,
            "sector": sector,
            "applicable_scenarios": join_scenario_codes(codes),
        }
        for activity, sector, codes in iter_mappings()
    ]


def populate_scenario_mappings(db: Session, replace: bool = False) -> int:
    """
    Poblar la base de datos con las combinaciones del catálogo.

    Args:
        db: Sesión de base de datos
        replace: Si es True, sobrescribe códigos, reactiva filas existentes
            y desactiva las que no están en el catálogo

    Returns:
        Número de filas creadas o actualizadas
    """
    existing = {
        (row.business_activity, row.sector): row
        for row in db.query(ScenarioMapping).all()
    }

    if existing and not replace:
        logger.info(f"Ya existen {len(existing)} combinaciones de escenarios en la base de datos")
        return 0

    changed = 0
    seen = set()
    for row_data in build_mapping_rows():
        key = (row_data["business_activity"], row_data["sector"])
        seen.add(key)
        row = existing.get(key)
        if row is None:
            db.add(ScenarioMapping(**row_data, is_active=True))
            changed += 1
        elif row.applicable_scenarios != row_data["applicable_scenarios"] or not row.is_active:
            row.applicable_scenarios = row_data["applicable_scenarios"]
            row.is_active = True
            changed += 1

    # Combinaciones que ya no existen en el catálogo se desactivan, no se borran
    for key, row in existing.items():
        if key not in seen and row.is_active:
            row.is_active = False
            changed += 1

    db.commit()
    logger.info(f"{changed} combinaciones de escenarios creadas o actualizadas")
    return changed


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        populate_scenario_mappings(db, replace=True)
    finally:
        db.close()
