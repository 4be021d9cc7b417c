"""
Weekly sync bot: check-in collection, pre-meeting summaries and thread correlation.
"""

__version__ = "0.1.0"
