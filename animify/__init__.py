"""
Animify

Photo transformation, animation and persona chat on top of the ExH AI API.
"""

__version__ = "1.0.0"
