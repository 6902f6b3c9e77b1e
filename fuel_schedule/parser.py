import logging
import re
from datetime import datetime
from typing import List, Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_LAYOUT, ColumnLayout
from .dates import parse_date, reporting_date
from .models import SiteRecord
from .status import status_for

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def _coerce_coordinate(value: str) -> float:
    if not value:
        return 0.0

    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or not np.isfinite(number):
        return 0.0

    return float(number)


def _split_row(line: str, width: int) -> List[str]:
    # Naive split: the published sheet never quotes its fields.
    values = [value.strip() for value in line.split(",")]
    if len(values) < width:
        values.extend([""] * (width - len(values)))
    return values


def build_site_id(site_name: str, row_index: int) -> str:
    return f"{_WHITESPACE.sub('_', site_name)}_{row_index}"


def parse_sites(
    csv_text: Optional[str],
    evaluated_at: datetime,
    layout: ColumnLayout = DEFAULT_LAYOUT,
) -> List[SiteRecord]:
    """
    Parse the published fueling sheet into classified site records.

    The first non-blank line is the header and is skipped without checks.
    Rows without a site name are dropped; every other malformed field falls
    back to a default (0.0 coordinates, due today) instead of raising.
    """

    if not csv_text:
        return []

    lines = [line for line in csv_text.split("\n") if line.strip()]
    if len(lines) < 2:
        return []

    default_date = reporting_date(evaluated_at)
    sites = []

    for row_index, line in enumerate(lines[1:], start=1):
        values = _split_row(line, layout.width)

        site_name = values[layout.name]
        if not site_name:
            logger.debug("Skipping row %s without a site name", row_index)
            continue

        next_fueling_date = parse_date(values[layout.next_fueling_date], layout.date_order)
        date_defaulted = next_fueling_date is None
        if date_defaulted:
            next_fueling_date = default_date

        sites.append(
            SiteRecord(
                id=build_site_id(site_name, row_index),
                site_name=site_name,
                location=site_name,
                latitude=_coerce_coordinate(values[layout.latitude]),
                longitude=_coerce_coordinate(values[layout.longitude]),
                next_fueling_date=next_fueling_date,
                status=status_for(next_fueling_date, evaluated_at),
                priority=values[layout.priority],
                date_defaulted=date_defaulted,
            )
        )

    return sites
