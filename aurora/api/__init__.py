"""
API module for Aurora.

Provides REST endpoints for:
- Point assignment from the modem dispatch server
- Flight data, incremental updates, and landing prediction
- Modem and flight metadata
"""

from aurora.api.assign import assign_bp
from aurora.api.flights import flights_bp
from aurora.api.meta import meta_bp

__all__ = ['assign_bp', 'flights_bp', 'meta_bp']
