"""
Operator HTTP endpoints for the pipeline stages.
"""
