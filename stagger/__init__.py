"""Stagger — deterministic, evenly spread polling schedules.

Subpackages:
    models/     — Pydantic models for target records and scheduled tasks
    scheduling/ — Offset hashing, task generation, cadence profiles
"""
