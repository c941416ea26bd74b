"""
clinica_juridica.workflow

Backend-side boundary to the workflow orchestrator.

Responsibilities:
- Ask the orchestrator to start the BPMN process of a new trámite.
"""

# Package marker.
