"""Middleware for operator context."""
from functools import wraps
from flask import session, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from natapos.database import get_session
from natapos.exceptions import UnauthorizedError
from natapos.models import Staff


def load_operator():
    """
    Load the signed-in operator into g (Flask's per-request global).

    Login itself happens outside this application; it only leaves
    `staff_id` in the session. Sets g.staff and g.staff_id.
    """
    g.staff = None
    g.staff_id = None

    staff_id = session.get('staff_id')
    if not staff_id:
        return

    try:
        staff = get_session().query(Staff).filter_by(id=staff_id, active=True).first()
    except SQLAlchemyError as e:
        # Avoid crashing the whole app if context loading fails
        current_app.logger.error(f"Error in load_operator: {e}")
        return

    if staff:
        g.staff = staff
        g.staff_id = staff.id
    else:
        session.pop('staff_id', None)


def require_operator(f):
    """
    Decorator: Require a signed-in operator.

    Raises UnauthorizedError (rendered as a JSON 401) otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, 'staff', None) is None:
            raise UnauthorizedError('Sign in to use the terminal')
        return f(*args, **kwargs)
    return decorated_function
