"""
Aurora Backend Package.

High-altitude balloon telemetry tracking built with Flask, SQLAlchemy, and NumPy.

Modules:
    tracking/    Flight data model, velocity vectors, and flight assignment
    analytics/   Altitude-binned wind model and landing prediction
    models/      SQLAlchemy ORM models (Modem, FlightRegistry, FlightPointRecord)
    ingestion/   Modem registry and SQL-backed flight store
    services/    External API integrations (Google elevation lookups)
    api/         REST endpoints for assignment, flights, updates, and metadata
    cache.py     Thread-safe snapshot cache of flights and landing predictors
    uid.py       Flight UID validation and compression
    config.py    Centralized configuration from environment variables
    app.py       Flask application factory
"""

__version__ = '1.0.0'
