"""Orchestration services.

This package contains the helpers that *compose* AWS calls into data mover
operations (e.g., bucket access roles, locations, rollback, task tracking).
"""
