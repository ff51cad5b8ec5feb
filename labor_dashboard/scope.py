"""Scope value object: the (region, year, country) filter of every aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd

from .config import ALL, DEFAULT_COUNTRY, DEFAULT_REGION


def _clean_label(value: object, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def parse_year(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Scope:
    region: str = DEFAULT_REGION
    year: Optional[int] = None
    country: str = DEFAULT_COUNTRY

    @classmethod
    def from_params(
        cls,
        region: object = None,
        year: object = None,
        country: object = None,
    ) -> "Scope":
        """Build a scope from raw request values.

        Missing, blank or unparseable values fall back to the defaults
        instead of being rejected.
        """
        return cls(
            region=_clean_label(region, DEFAULT_REGION),
            year=parse_year(year),
            country=_clean_label(country, DEFAULT_COUNTRY),
        )

    @property
    def single_country(self) -> bool:
        return self.country != ALL

    def geo_codes(self, geo_df: pd.DataFrame) -> Optional[List[str]]:
        """Expand the scope to the geo codes it covers.

        Returns ``None`` when no filtering applies (region and country are
        both ``'all'``).  A selected country takes precedence over the
        region.
        """
        if self.single_country:
            return [self.country]
        if self.region == ALL:
            return None
        if geo_df.empty:
            return []
        mask = geo_df["un_region"] == self.region
        return sorted(geo_df.loc[mask, "geo"].dropna().astype(str).unique())


def filter_geo(df: pd.DataFrame, codes: Optional[Iterable[str]]) -> pd.DataFrame:
    """Restrict a frame to the given geo codes (``None`` keeps every row)."""
    if codes is None:
        return df
    return df[df["geo"].isin(list(codes))]
