from .db import db
from .user import User, Role, user_roles
from .session import Session
from .login import UserLogin, FailedLogin, LoginWindow
from .park_pass import Pass
from .booking import Booking, BOOKING_STATUSES
from .payment import Payment
from .booking_log import BookingLog
from .setting import Setting
from .password_reset import PasswordResetToken
