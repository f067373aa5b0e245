"""
Fixture Sync Engine.

Background synchronization of API-Football data into a relational store.
"""

__version__ = "1.0.0"
