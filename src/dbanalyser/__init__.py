"""
Database analysis toolkit: schema inventory, profiling, dependency graphs,
quality checks, usage scoring and index advice for one database or a whole server
"""

__version__ = "0.1.0"
