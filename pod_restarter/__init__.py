"""
Pod Restarter - deletes Pods stuck on a known failure Event so their
owning controller recreates them.
"""

__version__ = "0.1.0"
