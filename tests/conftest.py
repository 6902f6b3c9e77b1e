from datetime import datetime, timedelta, timezone

import pytest

REPORTING_TZ = timezone(timedelta(hours=3))


@pytest.fixture
def evaluated_at() -> datetime:
    return datetime(2025, 1, 15, 0, 0, tzinfo=REPORTING_TZ)
