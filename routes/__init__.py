from .health import health_bp
from .auth import auth_bp
from .passes import passes_bp
from .bookings import bookings_bp
from .functions import functions_bp, FUNCTION_PATHS, CORS_ALLOW_HEADERS
from .admin import admin_bp
