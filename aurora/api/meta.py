"""
Modem and flight metadata API endpoints.

Provides endpoints for:
- GET /api/meta/modems - Redacted list of authorized modems
- GET /api/meta/flights - Flights of one modem (by modem_name)
- GET /api/meta/search - Flights by modem or organization and date
- GET /api/meta/active - Flights with a valid point in the active window
- GET /api/meta/last - A modem's flight if it is still reporting

Full IMEIs never leave the server; modems are exposed by name,
organization, and the last few IMEI digits.
"""

import logging
import time
from datetime import date, datetime, timedelta
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from aurora.api.flights import DATE_PATTERN
from aurora.config import config
from aurora.uid import compress_uid

logger = logging.getLogger(__name__)

meta_bp = Blueprint('meta', __name__, url_prefix='/api/meta')


def _parse_date(value: str) -> Optional[date]:
    """YYYY-MM-DD to a date, None if malformed."""
    if not DATE_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return None


def _now() -> datetime:
    return current_app.config['CLOCK']()


@meta_bp.route('/modems', methods=['GET'])
def get_modems():
    modems = current_app.config['MODEM_LIST']
    return jsonify([m.to_dict() for m in modems.get_redacted_set()])


@meta_bp.route('/flights', methods=['GET'])
def get_modem_flights():
    """List flights for a modem, newest first."""
    modem_name = request.args.get('modem_name')
    if not modem_name:
        return jsonify({'error': 'modem_name is required'}), 400

    modem = current_app.config['MODEM_LIST'].get_by_name(modem_name)
    if modem is None:
        return jsonify({'error': f"Invalid modem name '{modem_name}'"}), 404

    flights = current_app.config['FLIGHT_STORE'].flights_for_imei(modem.imei)
    return jsonify(flights)


@meta_bp.route('/search', methods=['GET'])
def search_flights():
    """
    Search flights.

    Query parameters (at least one of):
    - modem_name: one modem; takes precedence over org
    - org: every modem of an organization
    - date: flights starting on this day (YYYY-MM-DD)
    - end_date: with date, flights starting in [date, end_date]

    Results carry each flight's first point and are ordered by modem name.
    """
    start_time = time.perf_counter()
    modems = current_app.config['MODEM_LIST']
    store = current_app.config['FLIGHT_STORE']

    modem_name = request.args.get('modem_name')
    org = request.args.get('org')
    date_str = request.args.get('date')
    end_date_str = request.args.get('end_date')

    if not any((modem_name, org, date_str, end_date_str)):
        return jsonify({'error': 'At least one search condition is required'}), 400

    start_date = end_date = None
    if date_str:
        start_date = _parse_date(date_str)
        if start_date is None:
            return jsonify({'error': 'date not in form YYYY-MM-DD'}), 400
    if end_date_str:
        if start_date is None:
            return jsonify({'error': 'end_date requires date'}), 400
        end_date = _parse_date(end_date_str)
        if end_date is None:
            return jsonify({'error': 'end_date not in form YYYY-MM-DD'}), 400
        if end_date < start_date:
            return jsonify({'error': 'end_date is before date'}), 400

    imeis = None
    if modem_name:
        modem = modems.get_by_name(modem_name)
        if modem is None:
            return jsonify({'error': f"No modem found for name '{modem_name}'"}), 404
        imeis = [modem.imei]
    elif org:
        imeis = [m.imei for m in modems.get_by_org(org)]
        if not imeis:
            return jsonify({'error': f"No modems found for organization '{org}'"}), 404

    results = []
    for flight in store.search(imeis=imeis, start_date=start_date, end_date=end_date):
        modem = modems.get_redacted(flight['imei'])
        if modem is None:
            logger.warning(f"Flight {flight['uid']} has no modem in the modem list")
            continue
        results.append({
            'uid': flight['uid'],
            'short_uid': compress_uid(flight['uid']),
            'date': flight['date'],
            'modem': modem.to_dict(),
            'start_point': flight['start_point'],
        })
    results.sort(key=lambda r: r['modem']['name'])

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'found': len(results),
        'results': results,
        'query_time_ms': round(query_time_ms, 2),
    })


@meta_bp.route('/active', methods=['GET'])
def get_active_flights():
    """
    Flights that received a valid point within the active window.

    Each flight carries the position of its newest valid point.

    Query parameters:
    - hours: window length (default ACTIVE_FLIGHT_DELTA_HRS)
    """
    start_time = time.perf_counter()
    modems = current_app.config['MODEM_LIST']
    store = current_app.config['FLIGHT_STORE']

    try:
        hours = float(request.args.get('hours', config.tracking.active_flight_delta_hrs))
    except ValueError:
        return jsonify({'error': 'hours must be a number'}), 400

    since = _now() - timedelta(hours=hours)
    active = []
    for flight in store.active_flights(int(since.timestamp())):
        modem = modems.get_redacted(flight['imei'])
        if modem is None:
            logger.warning(f"Active flight {flight['uid']} has no modem in the modem list")
            continue
        active.append({
            'uid': flight['uid'],
            'short_uid': compress_uid(flight['uid']),
            'date': flight['date'],
            'last_timestamp': flight['last_timestamp'],
            'latitude': flight['latitude'],
            'longitude': flight['longitude'],
            'altitude': flight['altitude'],
            'modem': modem.to_dict(),
        })

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': active,
        'count': len(active),
        'window_hours': hours,
        'query_time_ms': round(query_time_ms, 2),
    })


@meta_bp.route('/last', methods=['GET'])
def get_last_flight():
    """
    The flight a modem is currently reporting to.

    Query parameters:
    - imei: modem IMEI (required)

    Only a flight with a point inside the contiguous-flight window
    (CONTIG_FLIGHT_DELTA_HRS) counts; otherwise 404.
    """
    store = current_app.config['FLIGHT_STORE']

    try:
        imei = int(request.args['imei'])
    except (KeyError, ValueError):
        return jsonify({'error': 'imei is required and must be numeric'}), 400

    since = _now() - timedelta(hours=config.tracking.contig_flight_delta_hrs)
    uid = store.find_recent_active(imei, int(since.timestamp()))
    if uid is None:
        return jsonify({'error': 'No recent flight for this modem'}), 404

    registry = store.get_registry(uid)
    modem = current_app.config['MODEM_LIST'].get_redacted(imei)
    last = store.last_point(uid)

    return jsonify({
        'uid': uid,
        'short_uid': compress_uid(uid),
        'date': registry.start_date.isoformat(),
        'modem': modem.to_dict() if modem else None,
        'last_point': last.to_dict() if last else None,
    })
