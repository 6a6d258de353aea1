"""
Report export for analysis results.
"""
