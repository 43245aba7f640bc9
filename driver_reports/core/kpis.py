"""
KPI catalogue.

Single source of truth for every derived KPI: display label, explanation,
improvement direction, unit and display precision. Calculation, ranking,
trend analysis, composition and every renderer read from here, so the
number formatting is identical across preview and exported documents.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class KpiDefinition:
    """
    Metadata for a single KPI.

    Attributes:
        key: Attribute name on CalculatedMetrics
        label: Display label used in tables
        short_label: Column header used in the overall ranking
        explanation: One-line explanation shown in the metrics table
        higher_is_better: Improvement direction
        unit: Unit suffix for display
        decimals: Fixed display precision
    """

    key: str
    label: str
    short_label: str
    explanation: str
    higher_is_better: bool
    unit: str
    decimals: int

    def format_value(self, value: Optional[float]) -> str:
        """Format a value with this KPI's precision and unit."""
        if value is None:
            return "N/A"
        text = f"{value:.{self.decimals}f}"
        if self.unit == "%":
            return f"{text}%"
        return f"{text} {self.unit}"


IDLE = "idle_percentage"
CRUISE = "cruise_control_share"
ENGINE_BRAKE = "engine_brake_share"
COASTING = "coasting_share"
DIESEL = "diesel_efficiency"
WEIGHT_ADJUSTED = "weight_adjusted_consumption"
OVERSPEED = "overspeed_share"
CO2 = "co2_efficiency"


KPI_DEFINITIONS: Dict[str, KpiDefinition] = {
    IDLE: KpiDefinition(
        key=IDLE,
        label="Tomgangsprocent",
        short_label="Tomgang",
        explanation="Procentdel af total motordriftstid brugt i tomgang. Lavere er bedre.",
        higher_is_better=False,
        unit="%",
        decimals=1,
    ),
    CRUISE: KpiDefinition(
        key=CRUISE,
        label="Fartpilot Andel",
        short_label="Fartpilot",
        explanation="Procentdel af kørsel over 50 km/t med fartpilot aktiv. Højere er bedre.",
        higher_is_better=True,
        unit="%",
        decimals=1,
    ),
    ENGINE_BRAKE: KpiDefinition(
        key=ENGINE_BRAKE,
        label="Motorbremse Andel",
        short_label="Motorbremse",
        explanation="Procentdel af total bremsning udført med motorbremse. Højere er bedre.",
        higher_is_better=True,
        unit="%",
        decimals=1,
    ),
    COASTING: KpiDefinition(
        key=COASTING,
        label="Påløbsdrift Andel",
        short_label="Påløbsdrift",
        explanation="Procentdel af kørestrækningen i påløbsdrift. Højere er bedre.",
        higher_is_better=True,
        unit="%",
        decimals=1,
    ),
    DIESEL: KpiDefinition(
        key=DIESEL,
        label="Diesel Effektivitet",
        short_label="Diesel",
        explanation="Antal kilometer kørt per liter brændstof. Højere er bedre.",
        higher_is_better=True,
        unit="km/l",
        decimals=2,
    ),
    WEIGHT_ADJUSTED: KpiDefinition(
        key=WEIGHT_ADJUSTED,
        label="Vægtkorrigeret Forbrug",
        short_label="Vægtkorr.",
        explanation="Brændstofforbrug justeret for lastens vægt. Lavere er bedre.",
        higher_is_better=False,
        unit="l/100km/t",
        decimals=3,
    ),
    OVERSPEED: KpiDefinition(
        key=OVERSPEED,
        label="Overspeed Andel",
        short_label="Overspeed",
        explanation="Procentdel af kørestrækningen over hastighedsgrænsen. Lavere er bedre.",
        higher_is_better=False,
        unit="%",
        decimals=1,
    ),
    CO2: KpiDefinition(
        key=CO2,
        label="CO2 Effektivitet",
        short_label="CO2",
        explanation="CO2-udledning per km justeret for totalvægt. Lavere er bedre.",
        higher_is_better=False,
        unit="kg/km/t",
        decimals=4,
    ),
}

# Order of the rows in a driver's metrics table
METRICS_TABLE_KPIS: List[str] = [
    IDLE, CRUISE, ENGINE_BRAKE, COASTING, DIESEL, WEIGHT_ADJUSTED, OVERSPEED,
]

# The four KPIs that make up the overall ranking score
RANKING_KPIS: List[str] = [IDLE, CRUISE, ENGINE_BRAKE, COASTING]

# Titles of the per-metric ranking tables
RANKING_TITLES: Dict[str, str] = {
    IDLE: "Tomgangsprocent",
    CRUISE: "Fartpilot Anvendelse",
    ENGINE_BRAKE: "Motorbremse Anvendelse",
    COASTING: "Påløbsdrift Udnyttelse",
}

ALL_KPIS: List[str] = list(KPI_DEFINITIONS)


def get_kpi(key: str) -> KpiDefinition:
    """
    Look up a KPI definition.

    Args:
        key: KPI key (e.g. "idle_percentage")

    Returns:
        The KpiDefinition

    Raises:
        KeyError: If the KPI is unknown
    """
    return KPI_DEFINITIONS[key]


def format_kpi(key: str, value: Optional[float]) -> str:
    """Format a KPI value with its catalogue precision and unit."""
    return KPI_DEFINITIONS[key].format_value(value)
