"""
Módulo de Escenarios FBR

Determina qué escenarios de venta de FBR (SN001, SN002, ...) aplican a una
empresa según sus actividades económicas y sectores.

COMPONENTES:
- catalog: tabla estática actividad x sector -> escenarios y funciones puras
- models/crud: tabla persistida scenario_mappings y consultas parametrizadas
- seed_data: copia el catálogo a la base de datos (única fuente de verdad)
- service/router: endpoints /api/scenarios (lookup, validate, consistency)
- client: cliente httpx con contexto explícito (token, empresa)

SEMÁNTICA DE SELECCIONES VACÍAS:
- lookup: retorna lista vacía
- validate: la selección es inválida
"""

from .catalog import (
    BusinessActivity, Sector, BUSINESS_ACTIVITIES, SECTORS,
    resolve_scenarios, validate_combination, is_single_combination_valid,
    get_applicable_scenarios, ValidationResult
)
from .client import RequestContext, ScenarioApiClient
from .router import scenarios_router

__all__ = [
    "BusinessActivity", "Sector", "BUSINESS_ACTIVITIES", "SECTORS",
    "resolve_scenarios", "validate_combination", "is_single_combination_valid",
    "get_applicable_scenarios", "ValidationResult",
    "RequestContext", "ScenarioApiClient",
    "scenarios_router"
]
