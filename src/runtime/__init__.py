"""
Runtime wiring.
"""
