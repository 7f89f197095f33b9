"""
Stats API (FastAPI).
"""
