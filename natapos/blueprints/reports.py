"""Reports blueprint - sales over a date range."""
from datetime import date

from flask import Blueprint, request

from natapos.database import get_session
from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.services.report_service import sales_report
from natapos.utils.serialization import json_response

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')


def _parse_date(raw, default):
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Invalid date: {raw}. Use YYYY-MM-DD.')


@reports_bp.route('/sales', methods=['GET'])
@require_operator
def sales():
    """?start=YYYY-MM-DD&end=YYYY-MM-DD (both default to today)"""
    today = date.today()
    start = _parse_date(request.args.get('start'), today)
    end = _parse_date(request.args.get('end'), today)
    return json_response({'report': sales_report(get_session(), start, end)})
