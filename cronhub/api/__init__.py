"""
HTTP API for cronhub (FastAPI).
"""
