"""
clinica_juridica

Legal-clinic case management: the REST backend (`clinica_juridica.api`) and the BPMN
external-task orchestrator (`clinica_juridica.orchestrator`).
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
