"""
Tests para el módulo de Escenarios FBR

Cubren:
- Catálogo estático y funciones puras del resolver
- Consultas SQL parametrizadas y su paridad con el catálogo
- Seed y reconciliación catálogo vs base de datos
- Endpoints /api/scenarios, incluidos los modos degradados
- Cliente HTTP con contexto explícito
"""

import itertools
from uuid import uuid4

import httpx
import pytest
from sqlalchemy.exc import InterfaceError, OperationalError, ProgrammingError

from app.core.config import settings
from app.modules.scenarios import catalog
from app.modules.scenarios.catalog import (
    BUSINESS_ACTIVITIES, SECTORS, SCENARIO_CODE_PATTERN,
    resolve_scenarios, validate_combination, is_single_combination_valid,
    get_applicable_scenarios, diff_mappings
)
from app.modules.scenarios.client import RequestContext, ScenarioApiClient
from app.modules.scenarios.crud import ScenarioMappingCRUD
from app.modules.scenarios.exceptions import (
    ScenarioStoreUnavailable, ScenarioLookupError, ScenarioValidationError
)
from app.modules.scenarios.models import ScenarioMapping
from app.modules.scenarios.seed_data import populate_scenario_mappings
from app.modules.scenarios.service import ScenarioService, MOCK_SCENARIOS


STEEL_MANUFACTURING = ["SN003", "SN004", "SN011"]
RETAIL_CODES = ["SN008", "SN026", "SN027", "SN028"]


def _store_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("could not connect to server"))


def _connection_dropped(*args, **kwargs):
    raise InterfaceError(
        "SELECT 1", {}, Exception("connection already closed"), connection_invalidated=True
    )


def _query_broken(*args, **kwargs):
    raise ProgrammingError("SELECT 1", {}, Exception("syntax error"))


# ===== FIXTURES =====

@pytest.fixture
def store_down(monkeypatch):
    monkeypatch.setattr(ScenarioMappingCRUD, "lookup_scenarios", _store_down)
    monkeypatch.setattr(ScenarioMappingCRUD, "get_all", _store_down)
    monkeypatch.setattr(ScenarioMappingCRUD, "get_active_mappings", _store_down)


@pytest.fixture
def api_client(client, auth_token):
    return ScenarioApiClient(RequestContext(token=auth_token), http_client=client)


# ===== TESTS DEL CATÁLOGO =====

class TestCatalog:
    """Tests para la tabla estática"""

    def test_closed_enumerations(self):
        assert len(BUSINESS_ACTIVITIES) == 8
        assert len(SECTORS) == 13
        assert "Service Provider" in BUSINESS_ACTIVITIES
        assert "Wholesale/Retails" in SECTORS

    def test_every_pair_has_unique_codes(self):
        """Cada combinación tiene códigos no vacíos, sin duplicados y con formato SNxxx"""
        pairs = list(catalog.iter_mappings())
        assert len(pairs) == len(BUSINESS_ACTIVITIES) * len(SECTORS)

        for activity, sector, codes in pairs:
            assert codes, f"{activity}/{sector} sin escenarios"
            assert len(codes) == len(set(codes)), f"{activity}/{sector} con duplicados"
            assert all(SCENARIO_CODE_PATTERN.match(code) for code in codes)

    def test_single_pair_returns_authored_set_sorted(self):
        for activity, sector, codes in catalog.iter_mappings():
            assert resolve_scenarios([activity], [sector]) == sorted(codes)

    def test_get_applicable_scenarios_unknown(self):
        assert get_applicable_scenarios("Bogus", "Steel") == []
        assert get_applicable_scenarios("Manufacturing", "Bogus") == []

    def test_all_scenario_codes(self):
        codes = catalog.all_scenario_codes()
        assert len(codes) == 28
        assert codes[0] == "SN001"
        assert codes[-1] == "SN028"

    def test_get_all_scenario_mappings(self):
        mappings = catalog.get_all_scenario_mappings()
        assert mappings[0] == {
            "business_activity": "Manufacturing",
            "sector": "All Other Sectors",
            "scenarios": list(catalog.SCENARIO_MAPPINGS["Manufacturing"]["All Other Sectors"])
        }

    def test_display_helpers(self):
        assert catalog.format_scenarios_for_display([]) == "No applicable scenarios"
        assert catalog.format_scenarios_for_display(None) == "No applicable scenarios"
        assert catalog.format_scenarios_for_display(["SN011", "SN003"]) == "SN003, SN011"
        assert catalog.get_scenario_description("SN001") == "FBR Tax Scenario SN001"

    def test_are_valid_for_reporting(self):
        assert catalog.are_valid_for_reporting(["SN001", "SN002"]) is True
        assert catalog.are_valid_for_reporting([]) is False
        assert catalog.are_valid_for_reporting(["SN001", "XX002"]) is False

    def test_unknown_labels(self):
        assert catalog.unknown_business_activities(["Retailer", "Bogus", "Bogus"]) == ["Bogus"]
        assert catalog.unknown_sectors(["Steel", "Mining"]) == ["Mining"]


# ===== TESTS DEL RESOLVER =====

class TestResolveScenarios:
    """Propiedades de resolve_scenarios"""

    def test_manufacturing_steel(self):
        assert resolve_scenarios(["Manufacturing"], ["Steel"]) == STEEL_MANUFACTURING

    def test_service_provider_services(self):
        assert resolve_scenarios(["Service Provider"], ["Services"]) == ["SN018", "SN019"]

    def test_empty_inputs(self):
        assert resolve_scenarios([], ["Steel"]) == []
        assert resolve_scenarios(["Manufacturing"], []) == []
        assert resolve_scenarios([], []) == []

    def test_order_and_duplicates_irrelevant(self):
        activities = ["Retailer", "Manufacturing", "Exporter"]
        sectors = ["Textile", "Steel", "Telecom"]
        expected = resolve_scenarios(activities, sectors)

        for perm_a in itertools.permutations(activities):
            for perm_s in itertools.permutations(sectors):
                assert resolve_scenarios(perm_a, perm_s) == expected

        assert resolve_scenarios(activities + activities, sectors + ["Steel"]) == expected

    def test_idempotent(self):
        first = resolve_scenarios(["Distributor"], ["FMCG", "Petroleum"])
        assert resolve_scenarios(["Distributor"], ["FMCG", "Petroleum"]) == first

    def test_union_is_exact(self):
        a1 = ["Manufacturing", "Retailer"]
        a2 = ["Service Provider"]
        sectors = ["Steel", "Services"]
        union = sorted(set(resolve_scenarios(a1, sectors)) | set(resolve_scenarios(a2, sectors)))
        assert resolve_scenarios(a1 + a2, sectors) == union

    def test_unknown_labels_are_skipped(self):
        assert resolve_scenarios(["Bogus"], ["Steel"]) == []
        assert resolve_scenarios(["Bogus", "Manufacturing"], ["Steel", "Mining"]) == STEEL_MANUFACTURING

    def test_result_is_sorted(self):
        result = resolve_scenarios(list(BUSINESS_ACTIVITIES), list(SECTORS))
        assert result == sorted(result)
        assert result == catalog.all_scenario_codes()


class TestValidateCombination:
    """Tests para validate_combination e is_single_combination_valid"""

    def test_activities_required_first(self):
        result = validate_combination([], ["Steel"])
        assert result.valid is False
        assert result.reason == "at least one business activity required"

        # Actividades vacías se reportan antes que sectores vacíos
        assert validate_combination([], []).reason == "at least one business activity required"

    def test_sectors_required(self):
        result = validate_combination(["Manufacturing"], [])
        assert result.valid is False
        assert result.reason == "at least one sector required"

    def test_no_applicable_scenarios(self):
        result = validate_combination(["Bogus"], ["Steel"])
        assert result.valid is False
        assert result.reason == "no applicable scenarios for this combination"

    def test_valid_multi_activity(self):
        result = validate_combination(["Manufacturing", "Retailer"], ["Steel"])
        assert result.valid is True
        assert result.reason is None
        assert resolve_scenarios(["Manufacturing", "Retailer"], ["Steel"]) == sorted(
            STEEL_MANUFACTURING + RETAIL_CODES
        )

    def test_single_combination(self):
        assert is_single_combination_valid("Manufacturing", "Steel") is True
        assert is_single_combination_valid("Bogus", "Steel") is False
        assert is_single_combination_valid("Manufacturing", "Mining") is False


# ===== TESTS DE BASE DE DATOS =====

class TestScenarioMappingCRUD:
    """Consultas sobre scenario_mappings"""

    def test_sql_matches_catalog_for_every_pair(self, seeded_session):
        for activity, sector, codes in catalog.iter_mappings():
            assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, [activity], [sector]) == sorted(codes)

    def test_sql_matches_catalog_for_sets(self, seeded_session):
        selections = [
            (["Manufacturing", "Retailer"], ["Steel"]),
            (["Distributor", "Wholesaler", "Other"], ["FMCG", "Textile", "CNG Stations"]),
            (list(BUSINESS_ACTIVITIES), list(SECTORS)),
            (["Service Provider", "Service Provider"], ["Services"]),
        ]
        for activities, sectors in selections:
            assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, activities, sectors) == \
                resolve_scenarios(activities, sectors)

    def test_empty_and_unknown(self, seeded_session):
        assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, [], ["Steel"]) == []
        assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, ["Bogus"], ["Steel"]) == []

    def test_injection_shaped_input_matches_nothing(self, seeded_session):
        payload = "Steel' OR '1'='1"
        assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, ["Manufacturing"], [payload]) == []
        assert ScenarioMappingCRUD.count(seeded_session) == 104

    def test_inactive_rows_are_excluded(self, seeded_session):
        row = seeded_session.query(ScenarioMapping).filter_by(
            business_activity="Manufacturing", sector="Steel"
        ).one()
        row.is_active = False
        seeded_session.commit()

        assert ScenarioMappingCRUD.lookup_scenarios(seeded_session, ["Manufacturing"], ["Steel"]) == []
        assert len(ScenarioMappingCRUD.get_all(seeded_session)) == 103
        assert len(ScenarioMappingCRUD.get_all(seeded_session, include_inactive=True)) == 104

    def test_codes_with_spaces_are_trimmed(self, db_session):
        db_session.add(ScenarioMapping(
            business_activity="Retailer", sector="Steel", applicable_scenarios="SN026, SN008 ,SN027,"
        ))
        db_session.commit()
        assert ScenarioMappingCRUD.lookup_scenarios(db_session, ["Retailer"], ["Steel"]) == [
            "SN008", "SN026", "SN027"
        ]


class TestSeedAndConsistency:
    """Seed desde el catálogo y reconciliación"""

    def test_seed_is_idempotent(self, db_session):
        assert populate_scenario_mappings(db_session) == 104
        assert populate_scenario_mappings(db_session) == 0
        assert ScenarioMappingCRUD.count(db_session) == 104

    def test_seeded_table_is_consistent(self, seeded_session):
        diff = diff_mappings(ScenarioMappingCRUD.get_active_mappings(seeded_session))
        assert diff.consistent

    def test_drift_is_detected_and_repaired(self, seeded_session):
        steel = seeded_session.query(ScenarioMapping).filter_by(
            business_activity="Manufacturing", sector="Steel"
        ).one()
        steel.applicable_scenarios = "SN003"
        textile = seeded_session.query(ScenarioMapping).filter_by(
            business_activity="Retailer", sector="Textile"
        ).one()
        textile.is_active = False
        seeded_session.add(ScenarioMapping(
            business_activity="Farmer", sector="Steel", applicable_scenarios="SN001"
        ))
        seeded_session.commit()

        diff = diff_mappings(ScenarioMappingCRUD.get_active_mappings(seeded_session))
        assert diff.mismatched == [("Manufacturing", "Steel")]
        assert diff.missing == [("Retailer", "Textile")]
        assert diff.extra == [("Farmer", "Steel")]

        assert populate_scenario_mappings(seeded_session, replace=True) == 3
        assert diff_mappings(ScenarioMappingCRUD.get_active_mappings(seeded_session)).consistent


# ===== TESTS DEL SERVICIO =====

class TestScenarioService:
    """Políticas del servicio, incluido el modo degradado"""

    def test_lookup_from_store(self, seeded_session):
        response = ScenarioService(seeded_session).lookup(["Manufacturing"], ["Steel"])
        assert response.data == STEEL_MANUFACTURING
        assert response.degraded is False

    def test_validate_empty_selection_is_invalid(self, seeded_session):
        service = ScenarioService(seeded_session)
        assert service.validate([], ["Steel"]).message == "at least one business activity required"
        assert service.validate(["Retailer"], []).message == "at least one sector required"

    def test_validate_reports_unknown_labels(self, seeded_session):
        response = ScenarioService(seeded_session).validate(["Bogus"], ["Mining"])
        assert response.is_valid is False
        assert response.message == (
            "no applicable scenarios for this combination "
            "(unknown business activities: Bogus; unknown sectors: Mining)"
        )

    def test_static_fallback(self, seeded_session, store_down):
        service = ScenarioService(seeded_session, fallback_mode="static")
        response = service.lookup(["Manufacturing"], ["Steel"])
        assert response.data == STEEL_MANUFACTURING
        assert response.degraded is True

        validation = service.validate(["Bogus"], ["Steel"])
        assert validation.is_valid is False
        assert validation.degraded is True

    def test_mock_fallback(self, seeded_session, store_down):
        service = ScenarioService(seeded_session, fallback_mode="mock")
        assert service.lookup(["Bogus"], ["Steel"]).data == MOCK_SCENARIOS
        assert service.validate(["Bogus"], ["Steel"]).is_valid is True

    def test_error_fallback(self, seeded_session, store_down):
        service = ScenarioService(seeded_session, fallback_mode="error")
        with pytest.raises(ScenarioStoreUnavailable):
            service.lookup(["Manufacturing"], ["Steel"])
        with pytest.raises(ScenarioStoreUnavailable):
            service.validate(["Manufacturing"], ["Steel"])

    def test_empty_lookup_does_not_hit_store(self, seeded_session, store_down):
        service = ScenarioService(seeded_session, fallback_mode="error")
        assert service.lookup([], ["Steel"]).data == []

    def test_dropped_connection_uses_fallback(self, seeded_session, monkeypatch):
        monkeypatch.setattr(ScenarioMappingCRUD, "lookup_scenarios", _connection_dropped)
        response = ScenarioService(seeded_session, fallback_mode="static").lookup(["Retailer"], ["Steel"])
        assert response.data == catalog.get_applicable_scenarios("Retailer", "Steel")
        assert response.degraded is True

        with pytest.raises(ScenarioStoreUnavailable):
            ScenarioService(seeded_session, fallback_mode="error").validate(["Retailer"], ["Steel"])

    def test_unexpected_query_error(self, seeded_session, monkeypatch):
        monkeypatch.setattr(ScenarioMappingCRUD, "lookup_scenarios", _query_broken)
        with pytest.raises(ScenarioLookupError) as exc_info:
            ScenarioService(seeded_session, fallback_mode="static").lookup(["Retailer"], ["Steel"])
        assert exc_info.value.message == "Failed to lookup scenarios"


# ===== TESTS DE ENDPOINTS =====

class TestScenarioEndpoints:
    """Tests para /api/scenarios"""

    def test_requires_authentication(self, client):
        response = client.post("/api/scenarios/lookup", json={"businessActivities": [], "sectors": []})
        assert response.status_code in (401, 403)

        response = client.post(
            "/api/scenarios/lookup",
            json={"businessActivities": [], "sectors": []},
            headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    def test_lookup(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/lookup",
            json={"businessActivities": ["Manufacturing"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == STEEL_MANUFACTURING

    def test_lookup_empty_selection(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/lookup",
            json={"businessActivities": [], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"] == []

    @pytest.mark.parametrize("body", [
        {"sectors": ["Steel"]},
        {"businessActivities": "Manufacturing", "sectors": ["Steel"]},
        {"businessActivities": ["Manufacturing"], "sectors": None},
        {"businessActivities": ["Manufacturing"], "sectors": {"name": "Steel"}},
    ])
    def test_lookup_bad_request(self, client, auth_headers, body):
        response = client.post("/api/scenarios/lookup", json=body, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Business activities and sectors must be provided as arrays"
        }

    def test_validate(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/validate",
            json={"businessActivities": ["Manufacturing", "Retailer"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["isValid"] is True
        assert data["message"] == "Business Activity and Sector combination is valid"

    def test_validate_empty_selection(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/validate",
            json={"businessActivities": [], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["isValid"] is False
        assert data["message"] == "at least one business activity required"

    def test_validate_bad_request(self, client, auth_headers):
        response = client.post("/api/scenarios/validate", json={"businessActivities": 3}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_validate_pair(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/validate-pair",
            json={"businessActivity": "Bogus", "sector": "Steel"},
            headers=auth_headers
        )
        assert response.json()["isValid"] is False
        assert response.json()["message"] == "Invalid Business Activity: Bogus"

        response = client.post(
            "/api/scenarios/validate-pair",
            json={"businessActivity": "Retailer", "sector": "Steel"},
            headers=auth_headers
        )
        assert response.json()["isValid"] is True

    def test_validate_pair_bad_request(self, client, auth_headers):
        response = client.post(
            "/api/scenarios/validate-pair",
            json={"businessActivity": "Retailer"},
            headers=auth_headers
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "sector"]

    def test_mappings_bad_query(self, client, auth_headers):
        response = client.get(
            "/api/scenarios/mappings", params={"include_inactive": "maybe"}, headers=auth_headers
        )
        assert response.status_code == 422

    def test_catalog_endpoints(self, client, auth_headers):
        activities = client.get("/api/scenarios/business-activities", headers=auth_headers).json()
        assert activities["data"] == list(BUSINESS_ACTIVITIES)
        assert activities["total"] == 8

        sectors = client.get("/api/scenarios/sectors", headers=auth_headers).json()
        assert sectors["data"] == list(SECTORS)
        assert sectors["total"] == 13

    def test_mappings(self, client, auth_headers):
        response = client.get("/api/scenarios/mappings", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 104
        steel = next(
            m for m in data["data"]
            if m["businessActivity"] == "Manufacturing" and m["sector"] == "Steel"
        )
        assert steel["scenarios"] == STEEL_MANUFACTURING
        assert steel["isActive"] is True

    def test_consistency(self, client, auth_headers):
        response = client.get("/api/scenarios/consistency", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["consistent"] is True
        assert data["missing"] == []
        assert data["extra"] == []
        assert data["mismatched"] == []

    def test_mock_mode_when_store_down(self, client, auth_headers, store_down, monkeypatch):
        monkeypatch.setattr(settings, "SCENARIO_STORE_FALLBACK", "mock")
        response = client.post(
            "/api/scenarios/lookup",
            json={"businessActivities": ["Retailer"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"] == ["SN001", "SN002", "SN005"]
        assert response.json()["degraded"] is True

        response = client.post(
            "/api/scenarios/validate",
            json={"businessActivities": ["Bogus"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.json()["isValid"] is True
        assert response.json()["message"] == "Combination is valid (mock mode)"

    def test_error_mode_when_store_down(self, client, auth_headers, store_down, monkeypatch):
        monkeypatch.setattr(settings, "SCENARIO_STORE_FALLBACK", "error")
        response = client.post(
            "/api/scenarios/lookup",
            json={"businessActivities": ["Retailer"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 503
        assert response.json() == {"success": False, "message": "Scenario store is unavailable"}

        response = client.get("/api/scenarios/consistency", headers=auth_headers)
        assert response.status_code == 503

    def test_unexpected_error_is_500(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(ScenarioMappingCRUD, "lookup_scenarios", _query_broken)
        response = client.post(
            "/api/scenarios/validate",
            json={"businessActivities": ["Retailer"], "sectors": ["Steel"]},
            headers=auth_headers
        )
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Failed to validate combination"}

    def test_tenant_header(self, client, auth_headers):
        tenant_id = str(uuid4())
        response = client.get(
            "/api/scenarios/sectors",
            headers={**auth_headers, "X-Company-ID": tenant_id}
        )
        assert response.status_code == 200
        assert response.headers["X-Tenant-ID"] == tenant_id

        response = client.get(
            "/api/scenarios/sectors",
            headers={**auth_headers, "X-Company-ID": "not-a-uuid"}
        )
        assert response.status_code == 400

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

        response = client.get("/health", headers={"X-Company-ID": "not-a-uuid"})
        assert response.status_code == 200
        assert "X-Tenant-ID" not in response.headers


# ===== TESTS DEL CLIENTE =====

class TestScenarioApiClient:
    """Cliente httpx con contexto explícito"""

    def test_context_headers(self):
        context = RequestContext(token="abc", tenant_id="tenant-1")
        assert context.headers() == {"Authorization": "Bearer abc", "X-Company-ID": "tenant-1"}
        assert RequestContext(token="abc").headers() == {"Authorization": "Bearer abc"}

    def test_lookup(self, api_client):
        assert api_client.lookup(["Service Provider"], ["Services"]) == ["SN018", "SN019"]

    def test_lookup_validates_locally(self, api_client):
        with pytest.raises(ScenarioValidationError) as exc_info:
            api_client.lookup([], ["Steel"])
        assert exc_info.value.message == "at least one business activity required"

    def test_validate(self, api_client):
        assert api_client.validate(["Manufacturing"], ["Steel"]).valid is True

        result = api_client.validate(["Bogus"], ["Steel"])
        assert result.valid is False
        assert result.reason == "no applicable scenarios for this combination (unknown business activities: Bogus)"

    def test_validate_pair(self, api_client):
        assert api_client.validate_pair("Retailer", "FMCG").valid is True
        assert api_client.validate_pair("Retailer", "Mining").reason == "Invalid Sector: Mining"

    def test_validate_pair_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        http_client = httpx.Client(base_url="http://testserver", transport=httpx.MockTransport(handler))
        api_client = ScenarioApiClient(RequestContext(token="abc"), http_client=http_client)

        result = api_client.validate_pair("Retailer", "FMCG")
        assert result.valid is False
        assert result.reason == "Error validating combination. Please try again."
