"""Main blueprint with health check and notification endpoints."""
from flask import Blueprint, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from natapos.database import get_session
from natapos.middleware import require_operator
from natapos.state import get_app_state
from natapos.utils.serialization import json_response

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        session = get_session()
        row = session.execute(text("SELECT 1 as health_check")).fetchone()

        if row and row[0] == 1:
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'message': 'Database connection successful'
            }), 200
        return jsonify({
            'status': 'unhealthy',
            'database': 'error',
            'message': 'Unexpected query result'
        }), 500

    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'message': 'Failed to connect to database'
        }), 500


@main_bp.route('/health/cache')
def health_cache():
    """
    Cache and realtime health check.

    Never returns 500: Redis is optional, without it the summary cache is
    skipped and realtime events stay inside this process.
    """
    from natapos.services.cache_service import get_cache
    from natapos.services.realtime_service import get_realtime

    try:
        cache_ok = get_cache().is_available()
    except RuntimeError:
        cache_ok = False
    try:
        subscribers = get_realtime().subscriber_count('orders')
    except RuntimeError:
        subscribers = 0

    return jsonify({
        'status': 'ok' if cache_ok else 'degraded',
        'cache': 'connected' if cache_ok else 'unavailable',
        'realtime_order_subscribers': subscribers,
    }), 200


@main_bp.route('/notifications')
@require_operator
def notifications():
    """Recent notifications, newest first. ?level=error filters by level."""
    items = get_app_state().notifications.list(level=request.args.get('level'))
    return json_response({'notifications': items})


@main_bp.route('/notifications/<int:notification_id>/dismiss', methods=['POST'])
@require_operator
def dismiss_notification(notification_id: int):
    dismissed = get_app_state().notifications.dismiss(notification_id)
    return json_response({'dismissed': dismissed}, 200 if dismissed else 404)
