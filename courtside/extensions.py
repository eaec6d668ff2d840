"""Extension instances shared by the app factory and blueprints."""

from flask_wtf.csrf import CSRFProtect

csrf = CSRFProtect()
