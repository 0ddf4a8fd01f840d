from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models import db
from models.user import User
from utils.errors import Unauthenticated

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(Unauthenticated("Authentication required").to_dict()), 401
        return fn(*args, **kwargs)
    return wrapper

def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = getattr(g, "user", None)
        if user is None:
            return jsonify(Unauthenticated("Authentication required").to_dict()), 401
        if not user.is_admin:
            return jsonify(success=False, error="Admin access required", error_kind="forbidden"), 403
        return fn(*args, **kwargs)
    return wrapper
