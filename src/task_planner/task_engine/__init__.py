"""Task dependency engine.

This package provides the task model, the linking policy, cycle detection,
symmetric link mutation, suggestion ranking, and the file-backed store and
engine that tie them together.
"""
