"""
Mockzilla

Stateful HTTP mock workflows: scenarios, transitions and per-scenario state.
"""

__version__ = '1.0.0'
