"""
Cliente HTTP para los endpoints de escenarios.

El contexto de la petición (token y empresa) se pasa explícitamente al
construir el cliente; nada se lee de almacenamiento global.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from app.modules.scenarios import catalog
from app.modules.scenarios.catalog import ValidationResult
from app.modules.scenarios.exceptions import ScenarioValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10  # seconds
MSG_VALIDATION_FAILED = "Error validating combination. Please try again."


@dataclass(frozen=True)
class RequestContext:
    """Credenciales y tenant que acompañan cada llamada."""
    token: str
    tenant_id: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if self.tenant_id:
            headers["X-Company-ID"] = str(self.tenant_id)
        return headers


class ScenarioApiClient:
    """
    Cliente para /api/scenarios.

    Args:
        context: Token y tenant de la sesión
        base_url: URL base del API (se ignora si se pasa http_client)
        http_client: Cliente httpx ya configurado (útil en tests)
    """

    def __init__(
        self,
        context: RequestContext,
        base_url: str = "",
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT
    ):
        self.context = context
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = http_client is None

    def close(self):
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def lookup(self, business_activities: List[str], sectors: List[str]) -> List[str]:
        """
        Obtener escenarios aplicables.

        Valida localmente antes de llamar al API y lanza
        ScenarioValidationError si la selección no es válida.
        """
        validation = catalog.validate_combination(business_activities, sectors)
        if not validation.valid:
            raise ScenarioValidationError(validation.reason)

        try:
            data = self._post("/api/scenarios/lookup", {
                "businessActivities": list(business_activities),
                "sectors": list(sectors)
            })
        except httpx.HTTPError as e:
            logger.error(f"Error fetching applicable scenarios: {e}")
            raise

        if data.get("degraded"):
            logger.warning("Scenario lookup answered in degraded mode")
        return data.get("data") or []

    def validate(self, business_activities: List[str], sectors: List[str]) -> ValidationResult:
        data = self._post("/api/scenarios/validate", {
            "businessActivities": list(business_activities),
            "sectors": list(sectors)
        })
        if data["isValid"]:
            return ValidationResult(valid=True)
        return ValidationResult(valid=False, reason=data.get("message"))

    def validate_pair(self, business_activity: str, sector: str) -> ValidationResult:
        """Validar una combinación; los errores de red se reportan como inválida."""
        if not catalog.is_valid_business_activity(business_activity):
            return ValidationResult(valid=False, reason=f"Invalid Business Activity: {business_activity}")
        if not catalog.is_valid_sector(sector):
            return ValidationResult(valid=False, reason=f"Invalid Sector: {sector}")

        try:
            data = self._post("/api/scenarios/validate-pair", {
                "businessActivity": business_activity,
                "sector": sector
            })
        except httpx.HTTPError as e:
            logger.error(f"Error validating combination: {e}")
            return ValidationResult(valid=False, reason=MSG_VALIDATION_FAILED)

        if data["isValid"]:
            return ValidationResult(valid=True)
        return ValidationResult(valid=False, reason="Invalid Business Activity and Sector combination")

    def _post(self, path: str, payload: dict) -> dict:
        response = self._client.post(path, json=payload, headers=self.context.headers())
        response.raise_for_status()
        return response.json()
