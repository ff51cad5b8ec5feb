import logging

from labor_dashboard.api import create_app

# ======================================================
#  APPLICATION
# ======================================================
# The data source is resolved from the environment on the first request
# (DASHBOARD_DATA_DIR for CSV exports, otherwise SUPABASE_URL/SUPABASE_KEY).
# Run with: uvicorn app:app
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
