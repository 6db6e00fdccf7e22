"""
Flight data API endpoints.

Provides endpoints for:
- GET /api/flight - Full flight by uid, or by modem_name and date
- POST /api/flight/update - Points added since a client's last timestamp
- GET /api/flight/landing - Predicted landing position

Flights are served from the flight cache, which is refreshed from the
database on every request so polling clients always see stored points.
"""

import logging
import re
import time
from datetime import datetime
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from aurora.analytics import PredictionNotReadyError, constant_descent, parachute_descent
from aurora.config import config
from aurora.tracking.flight import Flight, FlightPoint
from aurora.uid import compress_uid, standardize_uid

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flight')

FLIGHT_FIELDS = [
    'timestamp',
    'latitude',
    'longitude',
    'altitude',
    'vertical_velocity',
    'ground_speed',
    'satellites',
    'input_pins',
    'output_pins',
    'velocity_vector',
]

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MAX_MODEM_NAME_LENGTH = 20

# Ground elevation is only looked up for a payload on its way down
ELEVATION_CEILING = 3000.0


def point_row(point: FlightPoint) -> list:
    """Compact row matching FLIGHT_FIELDS."""
    return [
        point.timestamp,
        point.latitude,
        point.longitude,
        point.altitude,
        point.vertical_velocity,
        point.ground_speed,
        point.satellites,
        point.input_pins,
        point.output_pins,
        list(point.velocity_vector),
    ]


def _redacted_modem(imei: Optional[int]) -> Optional[dict]:
    modem = current_app.config['MODEM_LIST'].get_redacted(imei)
    return modem.to_dict() if modem else None


def _ground_elevation(point: FlightPoint) -> Optional[float]:
    if point.altitude >= ELEVATION_CEILING or point.vertical_velocity >= 0:
        return None
    return current_app.config['ELEVATION_SERVICE'].request(point.latitude, point.longitude)


def _load(uid: str) -> Optional[Flight]:
    cache = current_app.config['FLIGHT_CACHE']
    cache.refresh(uid)
    return cache.get_flight(uid)


@flights_bp.route('', methods=['GET'])
def get_flight():
    """
    Get a complete flight.

    Query parameters (one of):
    - uid: full or compressed flight UID
    - modem_name and date (YYYY-MM-DD)

    Only valid points are included. Rows follow the `fields` order.
    """
    start_time = time.perf_counter()
    modems = current_app.config['MODEM_LIST']
    store = current_app.config['FLIGHT_STORE']

    raw_uid = request.args.get('uid')
    modem_name = request.args.get('modem_name')
    date_str = request.args.get('date')

    if raw_uid is not None:
        uid = standardize_uid(raw_uid)
        if not uid:
            return jsonify({'error': 'UID improperly formatted'}), 400
    elif modem_name and date_str:
        if len(modem_name) > MAX_MODEM_NAME_LENGTH or not DATE_PATTERN.match(date_str):
            return jsonify({'error': 'Modem name too long or date not in form YYYY-MM-DD'}), 400
        try:
            start_date = datetime.strptime(date_str, '%Y-%m-%d').date()
        except ValueError:
            return jsonify({'error': f'Invalid date {date_str}'}), 400

        modem = modems.get_by_name(modem_name)
        if modem is None:
            return jsonify({'error': f"No modem found for name '{modem_name}'"}), 404

        uid = store.find_uid(modem.imei, start_date)
        if uid is None:
            return jsonify({'error': f"No flight found for ('{modem_name}', {date_str})"}), 404
    else:
        return jsonify({'error': 'Bad request: missing required params'}), 400

    flight = _load(uid)
    if flight is None:
        return jsonify({'error': f'No flight found for UID {uid}'}), 404

    modem = _redacted_modem(flight.imei)
    if modem is None:
        logger.error(f'No modem found for UID {uid} (IMEI {flight.imei})')
        return jsonify({'error': f'No modem found for UID {uid}'}), 500

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'uid': flight.uid,
        'short_uid': compress_uid(flight.uid),
        'start_date': flight.start_date.isoformat() if flight.start_date else None,
        'modem': modem,
        'fields': FLIGHT_FIELDS,
        'data': [point_row(p) for p in flight.valid_points()],
        'stats': flight.stats.to_dict(),
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('/update', methods=['POST'])
def update_flight():
    """
    Get points stored after a client's most recent point.

    Request JSON: {"uid": <uid>, "datetime": <unix seconds>}

    The response also carries ground elevation under the newest point
    when the payload is descending below 3000 m.
    """
    body = request.get_json(silent=True) or {}
    raw_uid = body.get('uid')
    last_time = body.get('datetime')

    if raw_uid is None or last_time is None:
        return jsonify({'error': 'Bad request'}), 400

    uid = standardize_uid(raw_uid)
    if not uid:
        return jsonify({'error': 'UID improperly formatted'}), 400
    if isinstance(last_time, bool) or not isinstance(last_time, int):
        return jsonify({'error': 'Datetime must be in UNIX format'}), 400

    flight = _load(uid)
    if flight is None:
        return jsonify({'error': f'No flight found for UID {uid}'}), 404

    result = [p.to_dict() for p in flight.valid_points() if p.timestamp > last_time]

    content = {
        'update': len(result) > 0,
        'result': result,
    }

    if result:
        newest = flight.last_valid_point()
        elevation = _ground_elevation(newest)
        if elevation is not None:
            content['ground_elevation'] = elevation

    return jsonify(content)


def _velocity_fn_from_args():
    """
    Terminal velocity function from query parameters.

    mass, diameter, and drag_coefficient select the parachute model;
    otherwise descent_rate (m/s) or the configured default is used.
    """
    parachute = [request.args.get(k) for k in ('mass', 'diameter', 'drag_coefficient')]
    if any(v is not None for v in parachute):
        if not all(v is not None for v in parachute):
            raise ValueError('mass, diameter, and drag_coefficient must be given together')
        mass, diameter, drag = (float(v) for v in parachute)
        return parachute_descent(mass, diameter, drag)

    rate = float(request.args.get('descent_rate', config.prediction.default_descent_rate))
    if rate <= 0:
        raise ValueError('descent_rate must be positive')
    return constant_descent(rate)


@flights_bp.route('/landing', methods=['GET'])
def get_landing():
    """
    Predict where a flight will land.

    Query parameters:
    - uid: flight UID (required)
    - timestamp: predict from this point instead of the last valid point
    - descent_rate: constant descent speed in m/s
    - mass, diameter, drag_coefficient: parachute descent model instead
    """
    start_time = time.perf_counter()
    cache = current_app.config['FLIGHT_CACHE']

    uid = standardize_uid(request.args.get('uid'))
    if not uid:
        return jsonify({'error': 'UID missing or improperly formatted'}), 400

    try:
        velocity_fn = _velocity_fn_from_args()
    except ValueError as e:
        return jsonify({'error': f'Invalid descent parameters: {e}'}), 400

    flight = _load(uid)
    if flight is None:
        return jsonify({'error': f'No flight found for UID {uid}'}), 404

    timestamp = request.args.get('timestamp')
    if timestamp is not None:
        try:
            point = flight.get_by_timestamp(int(timestamp))
        except ValueError:
            return jsonify({'error': 'timestamp must be an integer'}), 400
        if point is None:
            return jsonify({'error': f'No point at {timestamp} in flight {uid}'}), 404
    else:
        point = flight.last_valid_point()
        if point is None:
            return jsonify({'error': f'Flight {uid} has no valid points'}), 404

    try:
        landing = cache.predict_landing(uid, velocity_fn, point)
    except PredictionNotReadyError as e:
        logger.warning(f'Landing prediction unavailable for {uid}: {e}')
        return jsonify({'error': str(e)}), 409

    result = {
        'uid': uid,
        'from': point.to_dict(),
        'landing': landing.to_dict(),
    }

    elevation = current_app.config['ELEVATION_SERVICE'].request(landing.lat, landing.lng)
    if elevation is not None:
        result['ground_elevation'] = elevation

    result['query_time_ms'] = round((time.perf_counter() - start_time) * 1000, 2)
    return jsonify(result)
