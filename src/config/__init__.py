"""
Configuration loading and account classification.
"""
