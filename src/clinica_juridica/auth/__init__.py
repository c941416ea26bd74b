"""
clinica_juridica.auth

Authentication/authorization package.

Responsibilities:
- JWT helpers and validation (access + refresh tokens).
- Password hashing.
- FastAPI auth dependencies (Principal + role checks).
"""

# Package marker.
