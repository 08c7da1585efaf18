"""
Errores del módulo de escenarios.

Cada error lleva el status HTTP con el que se responde; el handler
registrado en app.main los convierte en {"success": false, "message": ...}.
"""


class ScenarioError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ScenarioValidationError(ScenarioError):
    """La selección no pasó la validación local del cliente."""
    status_code = 400


class ScenarioLookupError(ScenarioError):
    """Fallo inesperado al consultar la tabla de escenarios."""
    status_code = 500


class ScenarioStoreUnavailable(ScenarioError):
    """La base de datos no está disponible y no hay modo degradado configurado."""
    status_code = 503
