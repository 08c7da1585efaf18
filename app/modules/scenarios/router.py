"""
API routes for FBR scenario lookup and validation.
Requieren usuario autenticado, sin restricción de rol.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.scenarios.service import ScenarioService
from app.modules.scenarios.schemas import (
    ScenarioSelection, ScenarioPairSelection, ScenarioLookupResponse,
    ScenarioValidateResponse, LabelList, ScenarioMappingList,
    ScenarioConsistencyResponse
)

scenarios_router = APIRouter(prefix="/scenarios", tags=["Scenarios"])


@scenarios_router.post("/lookup", response_model=ScenarioLookupResponse)
def lookup_scenarios(
    selection: ScenarioSelection,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """
    Obtener escenarios FBR aplicables

    Retorna la unión ordenada y sin duplicados de los escenarios de todas
    las combinaciones actividad x sector enviadas.

    - Si alguno de los arreglos está vacío se retorna `data: []`
    - Las combinaciones desconocidas no aportan escenarios
    """
    service = ScenarioService(db)
    return service.lookup(selection.business_activities, selection.sectors)


@scenarios_router.post("/validate", response_model=ScenarioValidateResponse)
def validate_combination(
    selection: ScenarioSelection,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """
    Validar una selección de actividades económicas y sectores

    La selección es válida si tiene al menos una actividad, al menos un
    sector y la combinación tiene escenarios aplicables.
    """
    service = ScenarioService(db)
    return service.validate(selection.business_activities, selection.sectors)


@scenarios_router.post("/validate-pair", response_model=ScenarioValidateResponse)
def validate_pair(
    selection: ScenarioPairSelection,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """
    Validar una sola combinación actividad/sector

    Más estricta que /validate: rechaza actividades o sectores que no
    pertenecen al catálogo.
    """
    service = ScenarioService(db)
    return service.validate_pair(selection.business_activity, selection.sector)


@scenarios_router.get("/business-activities", response_model=LabelList)
def list_business_activities(
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """Listar las actividades económicas válidas."""
    return ScenarioService.business_activities()


@scenarios_router.get("/sectors", response_model=LabelList)
def list_sectors(
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """Listar los sectores válidos."""
    return ScenarioService.sectors()


@scenarios_router.get("/mappings", response_model=ScenarioMappingList)
def list_mappings(
    include_inactive: bool = Query(False, description="Incluir combinaciones inactivas"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """Listar las combinaciones persistidas con sus escenarios."""
    service = ScenarioService(db)
    return service.list_mappings(include_inactive)


@scenarios_router.get("/consistency", response_model=ScenarioConsistencyResponse)
def check_consistency(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)
):
    """
    Reconciliar la tabla persistida con el catálogo estático

    Reporta combinaciones faltantes, sobrantes o con códigos distintos.
    """
    service = ScenarioService(db)
    return service.check_consistency()
