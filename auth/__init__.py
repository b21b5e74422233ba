"""
auth — verification of the caller's identity assertion.

Provides:
  • Signed identity token creation & verification
  • ``get_current_user_id`` FastAPI dependency (in ``api.dependencies``)
"""
