from datetime import datetime, timezone as dt_timezone

SUPERVISOR_ID = 501
FARMER_ID = 901
NOW = datetime(2025, 3, 10, 8, 0, tzinfo=dt_timezone.utc)
