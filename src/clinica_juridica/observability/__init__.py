"""
clinica_juridica.observability

structlog configuration and the request-context middleware used by both services.
"""
