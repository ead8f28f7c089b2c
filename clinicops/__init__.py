# Clinic Signal Engine - Core Library
"""
Tags, scores, alerts and streaks for a clinic directory.

Consumers (cli/main.py, api/server.py) go through clinicops.service.SignalEngine.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
