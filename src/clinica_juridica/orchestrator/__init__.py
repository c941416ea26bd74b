"""
clinica_juridica.orchestrator

Workflow orchestrator microservice.

Responsibilities:
- Poll the BPMN engine for external tasks and forward them to the backend REST API.
- Expose process start / user-task completion endpoints for the backend.
- Report liveness via `/health`.
"""

# Package marker.
