"""External service integrations."""

from aurora.services.elevation import ElevationService, elevation_service

__all__ = ['ElevationService', 'elevation_service']
