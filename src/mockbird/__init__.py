"""
MockBird - hosted mock API execution engine.
"""

__version__ = '1.0.0'
