"""
Session aggregation and alerting.
"""
