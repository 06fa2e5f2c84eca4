"""
Workflow kernel services: the transition engine and the optional
SQLAlchemy audit sink.
"""

from workflow_kernel.services.transition_engine import TransitionEngine

__all__ = ["TransitionEngine"]
