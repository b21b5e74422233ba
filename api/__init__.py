"""
api — shared FastAPI dependencies and app-level middleware.
"""
