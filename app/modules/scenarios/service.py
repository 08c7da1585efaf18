import logging
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.scenarios import catalog
from app.modules.scenarios.crud import ScenarioMappingCRUD
from app.modules.scenarios.exceptions import (
    ScenarioLookupError, ScenarioStoreUnavailable
)
from app.modules.scenarios.schemas import (
    ScenarioLookupResponse, ScenarioValidateResponse, ScenarioMappingOut,
    ScenarioMappingList, ScenarioConsistencyResponse, ScenarioPair, LabelList
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Respuesta fija del modo "mock" (comportamiento heredado)
MOCK_SCENARIOS = ["SN001", "SN002", "SN005"]

MSG_VALID = "Business Activity and Sector combination is valid"
MSG_VALID_MOCK = "Combination is valid (mock mode)"
MSG_STORE_UNAVAILABLE = "Scenario store is unavailable"


class ScenarioService:
    """
    Resolución de escenarios contra la tabla persistida.

    Si la base de datos no responde se aplica la política configurada en
    SCENARIO_STORE_FALLBACK:
    - static: responder desde el catálogo en memoria (degraded=True)
    - mock: respuesta fija heredada (degraded=True)
    - error: 503
    """

    def __init__(self, db: Session, fallback_mode: Optional[str] = None):
        self.db = db
        self.fallback_mode = fallback_mode or settings.SCENARIO_STORE_FALLBACK

    def lookup(self, business_activities: List[str], sectors: List[str]) -> ScenarioLookupResponse:
        """Unión ordenada de escenarios; selección vacía devuelve lista vacía."""
        if not business_activities or not sectors:
            return ScenarioLookupResponse(data=[])

        try:
            scenarios = self._query(
                lambda: ScenarioMappingCRUD.lookup_scenarios(self.db, business_activities, sectors),
                "Failed to lookup scenarios"
            )
        except ScenarioStoreUnavailable:
            if self.fallback_mode == "mock":
                logger.warning("Scenario store unavailable, returning mock scenarios")
                return ScenarioLookupResponse(data=list(MOCK_SCENARIOS), degraded=True)
            if self.fallback_mode == "static":
                logger.warning("Scenario store unavailable, resolving from static catalog")
                return ScenarioLookupResponse(
                    data=catalog.resolve_scenarios(business_activities, sectors),
                    degraded=True
                )
            raise

        logger.debug(
            f"Scenario lookup activities={business_activities} sectors={sectors} -> {scenarios}"
        )
        return ScenarioLookupResponse(data=scenarios)

    def validate(self, business_activities: List[str], sectors: List[str]) -> ScenarioValidateResponse:
        """
        Validar la selección antes de crear facturas.

        A diferencia de lookup, una selección vacía es inválida.
        """
        if not business_activities:
            return ScenarioValidateResponse(is_valid=False, message=catalog.MSG_ACTIVITY_REQUIRED)
        if not sectors:
            return ScenarioValidateResponse(is_valid=False, message=catalog.MSG_SECTOR_REQUIRED)

        try:
            scenarios = self._query(
                lambda: ScenarioMappingCRUD.lookup_scenarios(self.db, business_activities, sectors),
                "Failed to validate combination"
            )
            degraded = False
        except ScenarioStoreUnavailable:
            if self.fallback_mode == "mock":
                logger.warning("Scenario store unavailable, returning mock validation")
                return ScenarioValidateResponse(is_valid=True, message=MSG_VALID_MOCK, degraded=True)
            if self.fallback_mode == "static":
                logger.warning("Scenario store unavailable, validating against static catalog")
                scenarios = catalog.resolve_scenarios(business_activities, sectors)
                degraded = True
            else:
                raise

        if scenarios:
            return ScenarioValidateResponse(is_valid=True, message=MSG_VALID, degraded=degraded)

        return ScenarioValidateResponse(
            is_valid=False,
            message=self._no_scenarios_message(business_activities, sectors),
            degraded=degraded
        )

    def validate_pair(self, business_activity: str, sector: str) -> ScenarioValidateResponse:
        """Validación estricta de una combinación: rechaza etiquetas fuera del catálogo."""
        if not catalog.is_valid_business_activity(business_activity):
            return ScenarioValidateResponse(
                is_valid=False, message=f"Invalid Business Activity: {business_activity}"
            )
        if not catalog.is_valid_sector(sector):
            return ScenarioValidateResponse(is_valid=False, message=f"Invalid Sector: {sector}")
        return self.validate([business_activity], [sector])

    def list_mappings(self, include_inactive: bool = False) -> ScenarioMappingList:
        rows = self._query(
            lambda: ScenarioMappingCRUD.get_all(self.db, include_inactive),
            "Failed to list scenario mappings"
        )
        data = [
            ScenarioMappingOut(
                business_activity=row.business_activity,
                sector=row.sector,
                scenarios=row.scenario_codes,
                is_active=row.is_active
            )
            for row in rows
        ]
        return ScenarioMappingList(data=data, total=len(data))

    def check_consistency(self) -> ScenarioConsistencyResponse:
        """Reconciliar la tabla persistida con el catálogo estático."""
        persisted = self._query(
            lambda: ScenarioMappingCRUD.get_active_mappings(self.db),
            "Failed to check scenario consistency"
        )
        diff = catalog.diff_mappings(persisted)
        if not diff.consistent:
            logger.warning(
                f"Scenario mappings drift: missing={len(diff.missing)} "
                f"extra={len(diff.extra)} mismatched={len(diff.mismatched)}"
            )

        def to_pairs(keys):
            return [ScenarioPair(business_activity=a, sector=s) for a, s in keys]

        return ScenarioConsistencyResponse(
            consistent=diff.consistent,
            missing=to_pairs(diff.missing),
            extra=to_pairs(diff.extra),
            mismatched=to_pairs(diff.mismatched)
        )

    @staticmethod
    def business_activities() -> LabelList:
        return LabelList(data=list(catalog.BUSINESS_ACTIVITIES), total=len(catalog.BUSINESS_ACTIVITIES))

    @staticmethod
    def sectors() -> LabelList:
        return LabelList(data=list(catalog.SECTORS), total=len(catalog.SECTORS))

    def _query(self, operation: Callable[[], T], failure_message: str) -> T:
        """Ejecutar una lectura traduciendo errores de SQLAlchemy a errores del módulo."""
        try:
            return operation()
        except DBAPIError as e:
            self.db.rollback()
            if isinstance(e, OperationalError) or e.connection_invalidated:
                logger.error(f"Scenario store unavailable: {e}")
                raise ScenarioStoreUnavailable(MSG_STORE_UNAVAILABLE)
            logger.error(f"{failure_message}: {e}")
            raise ScenarioLookupError(failure_message)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{failure_message}: {e}")
            raise ScenarioLookupError(failure_message)

    @staticmethod
    def _no_scenarios_message(business_activities: List[str], sectors: List[str]) -> str:
        message = catalog.MSG_NO_SCENARIOS
        details = []
        unknown_activities = catalog.unknown_business_activities(business_activities)
        unknown_sectors = catalog.unknown_sectors(sectors)
        if unknown_activities:
            details.append(f"unknown business activities: {', '.join(unknown_activities)}")
        if unknown_sectors:
            details.append(f"unknown sectors: {', '.join(unknown_sectors)}")
        if details:
            message = f"{message} ({'; '.join(details)})"
        return message
