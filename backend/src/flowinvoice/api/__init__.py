"""
HTTP API package - FastAPI routers, dependencies and schemas.
"""
