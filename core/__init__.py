"""
Core business logic package for FocusClass.

Contains the headless MonitoringEngine, the capture loop and the
event-loop timer facility. Zero UI dependencies.
"""

from core.engine import MonitoringEngine

__all__ = ["MonitoringEngine"]
