"""
FastAPI routers for the Roster API, one module per area.
"""
