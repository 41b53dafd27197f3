"""
routers/ — FastAPI route modules.

Each file contains a thin APIRouter. Ledger, billing and permission logic
lives in services/. Routers validate input, call services, and return
responses.
"""
