"""
clinica_juridica.services

Service layer (transaction owners).

Responsibilities:
- Inline lifecycle and authorization checks for fichas, trámites and usuarios.
- Sequential numbering, notifications and audit bookkeeping.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services raise `ClinicaError` subclasses; the API maps them to HTTP responses.
