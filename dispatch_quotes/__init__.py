"""
Quote follow-up lifecycle for the dispatch back office.
"""
__version__ = "0.1.0"
