"""
Configuration constants for the labor dashboard data layer.
"""

import os
from typing import Dict, List, Tuple

# ======================================================
#  DATA STORE / TABLES
# ======================================================
GEO_TABLE: str = "geo_data"
POPULATION_TABLE: str = "population"
LABOR_TABLE: str = "labor"
FERTILITY_TABLE: str = "fertility"
PREDICTIONS_TABLE: str = "predictions"

# Columns read from each table (also the schema enforced on CSV exports)
TABLE_COLUMNS: Dict[str, List[str]] = {
    GEO_TABLE: ["geo", "un_region", "latitude", "longitude"],
    POPULATION_TABLE: ["geo", "year", "sex", "age", "population"],
    LABOR_TABLE: ["geo", "year", "sex", "labour_force"],
    FERTILITY_TABLE: ["geo", "year", "fertility_rate"],
    PREDICTIONS_TABLE: ["geo", "time_period", "predicted_labour_force"],
}

# Row identity per table; used as a stable sort key when paging
TABLE_KEYS: Dict[str, List[str]] = {
    GEO_TABLE: ["geo"],
    POPULATION_TABLE: ["geo", "year", "sex", "age"],
    LABOR_TABLE: ["geo", "year", "sex"],
    FERTILITY_TABLE: ["geo", "year"],
    PREDICTIONS_TABLE: ["geo", "time_period"],
}

NUMERIC_COLUMNS: Tuple[str, ...] = (
    "latitude",
    "longitude",
    "population",
    "labour_force",
    "fertility_rate",
    "predicted_labour_force",
)
YEAR_COLUMNS: Tuple[str, ...] = ("year", "time_period")

# Tables needed to build the dashboard payload
DASHBOARD_TABLES: Tuple[str, ...] = (
    GEO_TABLE,
    POPULATION_TABLE,
    LABOR_TABLE,
    FERTILITY_TABLE,
)

SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
SUPABASE_TIMEOUT: float = float(os.getenv("SUPABASE_TIMEOUT", "30"))
# PostgREST caps responses at 1000 rows unless configured otherwise
SUPABASE_PAGE_SIZE: int = int(os.getenv("SUPABASE_PAGE_SIZE", "1000"))

# Directory of ``<table>_rows.csv`` exports; when set it replaces Supabase
DASHBOARD_DATA_DIR: str = os.getenv("DASHBOARD_DATA_DIR", "")
CSV_SUFFIX: str = "_rows.csv"
DEFAULT_SEP: str = ","

# ======================================================
#  DEMOGRAPHIC CATEGORIES
# ======================================================
SEX_TOTAL: str = "Total"
SEX_MALES: str = "Males"
SEX_FEMALES: str = "Females"
LABOR_SEXES: Tuple[str, str] = (SEX_MALES, SEX_FEMALES)

AGE_TOTAL: str = "Total"

# Canonical age bands, youngest to oldest (order matters for the pyramid)
AGE_BANDS: List[str] = [
    "From 0 to 4 years",
    "From 5 to 9 years",
    "From 10 to 14 years",
    "From 15 to 19 years",
    "From 20 to 24 years",
    "From 25 to 29 years",
    "From 30 to 34 years",
    "From 35 to 39 years",
    "From 40 to 44 years",
    "From 45 to 49 years",
    "From 50 to 54 years",
    "From 55 to 59 years",
    "From 60 to 64 years",
    "From 65 to 69 years",
    "From 70 to 74 years",
    "From 75 to 79 years",
    "From 80 to 84 years",
    "From 85 to 89 years",
    "From 90 to 94 years",
    "From 95 to 99 years",
    "100 years and over",
]

WORKING_AGE_BANDS: List[str] = AGE_BANDS[3:13]
DEPENDENT_AGE_BANDS: List[str] = AGE_BANDS[:3] + AGE_BANDS[13:]

# labour_force is stored in thousands
LABOR_FORCE_UNIT: int = 1000

# ======================================================
#  SCOPE / PRESENTATION DEFAULTS
# ======================================================
ALL: str = "all"
DEFAULT_REGION: str = ALL
DEFAULT_COUNTRY: str = ALL
UNKNOWN_REGION: str = "Unknown"

TOP_LABOR_FORCE_COUNTRIES: int = 3
TOP_PREDICTION_COUNTRIES: int = 15

METRIC_LABELS: Dict[str, str] = {
    "populationTotal": "Population",
    "laborForceRate": "Labor Force Participation",
    "fertilityRate": "Fertility Rate",
    "dependencyRatio": "Dependency Ratio",
}

# ======================================================
#  SERVICE
# ======================================================
DASHBOARD_REQUEST_TIMEOUT: float = float(
    os.getenv("DASHBOARD_REQUEST_TIMEOUT", "30")
)
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
MAX_FETCH_WORKERS: int = 5
