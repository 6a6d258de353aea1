"""
Shared calculation and logging helpers.
"""
