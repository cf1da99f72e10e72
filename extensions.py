"""Shared Flask extension singletons to avoid circular imports."""
from flask_login import LoginManager
from flask_wtf import CSRFProtect

from utils.backend import Backend

# Initialize extensions without app; app_factory will bind them.
csrf = CSRFProtect()
login_manager = LoginManager()
backend = Backend()
