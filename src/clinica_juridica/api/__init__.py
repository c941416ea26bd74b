"""
clinica_juridica.api

Backend REST API package.

Responsibilities:
- FastAPI app factory and per-entity router modules.
- API-layer dependency wiring and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: request validation + auth + delegation to services.
