"""
Endpoint modules, one per pipeline stage.
"""
