"""
Catálogo estático de escenarios FBR.

Tabla autorizada Actividad Económica x Sector -> escenarios aplicables,
basada en el documento "Business Activity and Sector Scenarios" de FBR.
Es la única fuente de verdad: la tabla persistida `scenario_mappings`
se genera a partir de este módulo (ver seed_data.py) y se puede
reconciliar contra él con `diff_mappings`.

Todas las funciones son puras y no dependen de la base de datos.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple


class BusinessActivity(str, Enum):
    MANUFACTURING = "Manufacturing"
    IMPORTER = "Importer"
    DISTRIBUTOR = "Distributor"
    WHOLESALER = "Wholesaler"
    EXPORTER = "Exporter"
    RETAILER = "Retailer"
    SERVICE_PROVIDER = "Service Provider"
    OTHER = "Other"


class Sector(str, Enum):
    ALL_OTHER_SECTORS = "All Other Sectors"
    STEEL = "Steel"
    FMCG = "FMCG"
    TEXTILE = "Textile"
    TELECOM = "Telecom"
    PETROLEUM = "Petroleum"
    ELECTRICITY_DISTRIBUTION = "Electricity Distribution"
    GAS_DISTRIBUTION = "Gas Distribution"
    SERVICES = "Services"
    AUTOMOBILE = "Automobile"
    CNG_STATIONS = "CNG Stations"
    PHARMACEUTICALS = "Pharmaceuticals"
    WHOLESALE_RETAILS = "Wholesale/Retails"


BUSINESS_ACTIVITIES: Tuple[str, ...] = tuple(a.value for a in BusinessActivity)
SECTORS: Tuple[str, ...] = tuple(s.value for s in Sector)

SCENARIO_CODE_PATTERN = re.compile(r"^SN\d{3}$")

# Bloques que se repiten en el documento de FBR
_GENERAL = ("SN001", "SN002", "SN005", "SN006", "SN007", "SN015", "SN016", "SN017", "SN021", "SN022", "SN024")
_RETAIL = ("SN026", "SN027", "SN028", "SN008")
_SERVICES = ("SN018", "SN019")
_STEEL = ("SN003", "SN004", "SN011")

# Importer y Exporter comparten la misma tabla
_IMPORT_EXPORT = {
    "All Other Sectors": _GENERAL,
    "Steel": _GENERAL + _STEEL,
    "FMCG": _GENERAL + ("SN025",),
    "Textile": _GENERAL + ("SN025",),
    "Telecom": _GENERAL + ("SN010",),
    "Petroleum": _GENERAL + ("SN012",),
    "Electricity Distribution": _GENERAL + ("SN013",),
    "Gas Distribution": _GENERAL + ("SN014",),
    "Services": _GENERAL + _SERVICES,
    "Automobile": _GENERAL + ("SN020",),
    "CNG Stations": _GENERAL + ("SN023",),
    "Pharmaceuticals": _GENERAL + ("SN025",),
    "Wholesale/Retails": _GENERAL + _RETAIL,
}

# Distributor y Wholesaler comparten la misma tabla
_DISTRIBUTION = {
    "All Other Sectors": _GENERAL + _RETAIL,
    "Steel": _STEEL + _RETAIL,
    "FMCG": ("SN008", "SN026", "SN027", "SN028"),
    "Textile": ("SN009",) + _RETAIL,
    "Telecom": ("SN010",) + _RETAIL,
    "Petroleum": ("SN012",) + _RETAIL,
    "Electricity Distribution": ("SN013",) + _RETAIL,
    "Gas Distribution": ("SN014",) + _RETAIL,
    "Services": _SERVICES + _RETAIL,
    "Automobile": ("SN020",) + _RETAIL,
    "CNG Stations": ("SN023",) + _RETAIL,
    "Pharmaceuticals": ("SN025",) + _RETAIL,
    "Wholesale/Retails": ("SN001", "SN002") + _RETAIL,
}

SCENARIO_MAPPINGS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "Manufacturing": {
        "All Other Sectors": _GENERAL,
        "Steel": _STEEL,
        "FMCG": _GENERAL + ("SN025",),
        "Textile": _GENERAL + ("SN025",),
        "Telecom": _GENERAL + ("SN010",),
        "Petroleum": _GENERAL + ("SN012",),
        "Electricity Distribution": _GENERAL + ("SN013",),
        "Gas Distribution": _GENERAL + ("SN014",),
        "Services": _GENERAL + _SERVICES,
        "Automobile": _GENERAL + ("SN020",),
        "CNG Stations": _GENERAL + ("SN023",),
        "Pharmaceuticals": _GENERAL + ("SN025",),
        "Wholesale/Retails": _GENERAL + _RETAIL,
    },
    "Importer": _IMPORT_EXPORT,
    "Distributor": _DISTRIBUTION,
    "Wholesaler": _DISTRIBUTION,
    "Exporter": _IMPORT_EXPORT,
    "Retailer": {
        "All Other Sectors": _GENERAL + _RETAIL,
        "Steel": _RETAIL,
        "FMCG": _RETAIL,
        "Textile": _RETAIL,
        "Telecom": ("SN010",) + _RETAIL,
        "Petroleum": ("SN012",) + _RETAIL,
        "Electricity Distribution": ("SN013",) + _RETAIL,
        "Gas Distribution": ("SN014",) + _RETAIL,
        "Services": _SERVICES + _RETAIL,
        "Automobile": ("SN020",) + _RETAIL,
        "CNG Stations": ("SN023",) + _RETAIL,
        "Pharmaceuticals": ("SN025",) + _RETAIL,
        "Wholesale/Retails": _RETAIL,
    },
    "Service Provider": {
        "All Other Sectors": _GENERAL + _SERVICES,
        "Steel": _STEEL + _SERVICES,
        "FMCG": ("SN008",) + _SERVICES,
        "Textile": ("SN009",) + _SERVICES,
        "Telecom": ("SN010",) + _SERVICES,
        "Petroleum": ("SN012",) + _SERVICES,
        "Electricity Distribution": ("SN013",) + _SERVICES,
        "Gas Distribution": ("SN014",) + _SERVICES,
        "Services": _SERVICES,
        "Automobile": ("SN020",) + _SERVICES,
        "CNG Stations": ("SN023",) + _SERVICES,
        "Pharmaceuticals": ("SN025",) + _SERVICES,
        "Wholesale/Retails": _RETAIL + _SERVICES,
    },
    "Other": {
        "All Other Sectors": _GENERAL,
        "Steel": _GENERAL + _STEEL,
        "FMCG": _GENERAL + ("SN008",),
        "Textile": _GENERAL + ("SN009",),
        "Telecom": _GENERAL + ("SN010",),
        "Petroleum": _GENERAL + ("SN012",),
        "Electricity Distribution": _GENERAL + ("SN013",),
        "Gas Distribution": _GENERAL + ("SN014",),
        "Services": _GENERAL + _SERVICES,
        "Automobile": _GENERAL + ("SN020",),
        "CNG Stations": _GENERAL + ("SN023",),
        "Pharmaceuticals": _GENERAL + ("SN025",),
        "Wholesale/Retails": _GENERAL + _RETAIL,
    },
}

MSG_ACTIVITY_REQUIRED = "at least one business activity required"
MSG_SECTOR_REQUIRED = "at least one sector required"
MSG_NO_SCENARIOS = "no applicable scenarios for this combination"


@dataclass(frozen=True)
class ValidationResult:
    """Resultado de validar una selección de actividades y sectores."""
    valid: bool
    reason: Optional[str] = None


@dataclass
class MappingDiff:
    """Diferencias entre la tabla persistida y el catálogo estático."""
    missing: List[Tuple[str, str]] = field(default_factory=list)
    extra: List[Tuple[str, str]] = field(default_factory=list)
    mismatched: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not (self.missing or self.extra or self.mismatched)


def get_applicable_scenarios(business_activity: str, sector: str) -> List[str]:
    """
    Obtener los escenarios de una combinación actividad/sector.

    Retorna los códigos en el orden del documento de FBR, o una lista
    vacía si la combinación no existe.
    """
    activity_mappings = SCENARIO_MAPPINGS.get(business_activity)
    if not activity_mappings:
        return []
    return list(activity_mappings.get(sector, ()))


def resolve_scenarios(activities: Iterable[str], sectors: Iterable[str]) -> List[str]:
    """
    Unión de escenarios para todas las combinaciones actividad x sector.

    Las entradas se tratan como conjuntos (orden y duplicados irrelevantes).
    Las combinaciones desconocidas no aportan nada y no generan error.
    Si alguno de los conjuntos está vacío el resultado es una lista vacía.

    Returns:
        Códigos únicos ordenados lexicográficamente
    """
    activity_set = set(activities)
    sector_set = set(sectors)
    if not activity_set or not sector_set:
        return []

    codes: Set[str] = set()
    for activity in activity_set:
        for sector in sector_set:
            codes.update(get_applicable_scenarios(activity, sector))
    return sorted(codes)


def validate_combination(activities: Iterable[str], sectors: Iterable[str]) -> ValidationResult:
    """
    Validar que la selección sirva para reportes de cumplimiento.

    El orden de las validaciones determina el mensaje: primero actividades
    vacías, luego sectores vacíos y por último una unión sin escenarios.
    """
    activity_set = set(activities)
    sector_set = set(sectors)

    if not activity_set:
        return ValidationResult(valid=False, reason=MSG_ACTIVITY_REQUIRED)
    if not sector_set:
        return ValidationResult(valid=False, reason=MSG_SECTOR_REQUIRED)
    if not resolve_scenarios(activity_set, sector_set):
        return ValidationResult(valid=False, reason=MSG_NO_SCENARIOS)
    return ValidationResult(valid=True)


def is_valid_business_activity(business_activity: str) -> bool:
    return business_activity in BUSINESS_ACTIVITIES


def is_valid_sector(sector: str) -> bool:
    return sector in SECTORS


def is_single_combination_valid(business_activity: str, sector: str) -> bool:
    """
    Validación estricta de una sola combinación.

    A diferencia de `resolve_scenarios`, rechaza etiquetas que no estén en
    las enumeraciones cerradas de actividades y sectores.
    """
    return (
        is_valid_business_activity(business_activity)
        and is_valid_sector(sector)
        and len(resolve_scenarios([business_activity], [sector])) > 0
    )


def unknown_business_activities(activities: Iterable[str]) -> List[str]:
    """Actividades que no pertenecen al catálogo, sin duplicados y en orden de llegada."""
    return list(dict.fromkeys(a for a in activities if not is_valid_business_activity(a)))


def unknown_sectors(sectors: Iterable[str]) -> List[str]:
    """Sectores que no pertenecen al catálogo, sin duplicados y en orden de llegada."""
    return list(dict.fromkeys(s for s in sectors if not is_valid_sector(s)))


def iter_mappings() -> Iterator[Tuple[str, str, Tuple[str, ...]]]:
    """Recorrer todas las combinaciones con escenarios, en orden de catálogo."""
    for activity in BUSINESS_ACTIVITIES:
        for sector in SECTORS:
            codes = SCENARIO_MAPPINGS.get(activity, {}).get(sector, ())
            if codes:
                yield activity, sector, codes


def get_all_scenario_mappings() -> List[Dict[str, object]]:
    return [
        {"business_activity": activity, "sector": sector, "scenarios": list(codes)}
        for activity, sector, codes in iter_mappings()
    ]


def all_scenario_codes() -> List[str]:
    codes: Set[str] = set()
    for _, _, pair_codes in iter_mappings():
        codes.update(pair_codes)
    return sorted(codes)


def get_scenario_description(scenario_code: str) -> str:
    # TODO: reemplazar por las descripciones oficiales cuando FBR publique el catálogo completo
    return f"FBR Tax Scenario {scenario_code}"


def are_valid_for_reporting(scenarios: Iterable[str]) -> bool:
    """Hay al menos un escenario y todos tienen prefijo SN."""
    codes = list(scenarios)
    return len(codes) > 0 and all(code.startswith("SN") for code in codes)


def format_scenarios_for_display(scenarios: Optional[Iterable[str]]) -> str:
    codes = sorted(scenarios or [])
    if not codes:
        return "No applicable scenarios"
    return ", ".join(codes)


def diff_mappings(persisted: Mapping[Tuple[str, str], Iterable[str]]) -> MappingDiff:
    """
    Comparar la tabla persistida contra el catálogo estático.

    Args:
        persisted: {(actividad, sector): códigos} con las filas activas

    Returns:
        MappingDiff con combinaciones faltantes, sobrantes y con códigos distintos
    """
    expected = {(a, s): set(codes) for a, s, codes in iter_mappings()}
    actual = {key: set(codes) for key, codes in persisted.items() if codes}

    diff = MappingDiff()
    for key in expected:
        if key not in actual:
            diff.missing.append(key)
        elif actual[key] != expected[key]:
            diff.mismatched.append(key)
    for key in actual:
        if key not in expected:
            diff.extra.append(key)

    diff.missing.sort()
    diff.extra.sort()
    diff.mismatched.sort()
    return diff
