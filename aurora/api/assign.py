"""
Point assignment API endpoint.

Provides:
- POST /api/assign - Attach a telemetry point to a flight

Called by the modem dispatch server for every received message. The body
is either {"point": {...}} or the point object itself.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from aurora.tracking.assigner import Assignment, RejectionReason

logger = logging.getLogger(__name__)

assign_bp = Blueprint('assign', __name__, url_prefix='/api/assign')

REJECTION_STATUS = {
    RejectionReason.UNAUTHORIZED_MODEM: 403,
}


@assign_bp.route('', methods=['POST'])
def assign_point():
    """
    Assign a point to today's flight, a recent flight, or a new flight.

    Returns 200 with {'status': 'success', 'type', 'flight'} on success.
    Rejections return {'status': 'error', 'reason', 'data'} with 403 for an
    unauthorized modem and 400 otherwise.
    """
    start_time = time.perf_counter()

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({'status': 'error', 'reason': 'malformed', 'data': 'Request body must be JSON'}), 400

    payload = body.get('point', body)
    assigner = current_app.config['FLIGHT_ASSIGNER']
    result = assigner.assign_payload(payload)

    response = result.to_dict()
    response['query_time_ms'] = round((time.perf_counter() - start_time) * 1000, 2)

    if isinstance(result, Assignment):
        return jsonify(response)

    return jsonify(response), REJECTION_STATUS.get(result.reason, 400)


@assign_bp.route('', methods=['GET'])
def assign_get():
    return jsonify({'error': 'Points must be submitted with POST'}), 400
