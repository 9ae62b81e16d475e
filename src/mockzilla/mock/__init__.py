"""
Mockzilla Mock Server Module

HTTP surface for workflow scenarios.

This module provides:
- FastAPI-based workflow server
- Admin API for scenarios, transitions and state
- Server configuration and metrics
"""

from .server import WorkflowServer, ServerConfig, ServerMetrics, create_workflow_server

__all__ = [
    'WorkflowServer',
    'ServerConfig',
    'ServerMetrics',
    'create_workflow_server',
]

__version__ = '1.0.0'
