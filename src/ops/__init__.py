"""
Operational helpers: logging and memory.
"""
