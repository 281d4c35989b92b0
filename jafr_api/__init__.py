"""Jafr (Abjad numerology) analysis service.

The Flask app lives in `jafr_api.factory`; `jafr_api.abjad` has no
third-party imports.
"""

__version__ = "1.0.0"
