"""Initialize the Flask app and its extensions."""

import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, current_app, g, session
from werkzeug.middleware.proxy_fix import ProxyFix

from .activity.callables import DEFAULT_REGION, DEFAULT_TIMEOUT
from .core.constants import USERS_COLLECTION
from .extensions import csrf


def _load_credentials(app):
    """Find Firebase credentials: env JSON, then a local file, then ADC.

    Returns the credential (or None) and the project id it names.
    """
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            return credentials.Certificate(cred_info), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    cred_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
    )
    if os.path.exists(cred_path):
        try:
            with open(cred_path) as f:
                cred_info = json.load(f)
            return credentials.Certificate(cred_path), cred_info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error loading credentials from file: {e}")

    try:
        return credentials.ApplicationDefault(), os.environ.get("FIREBASE_PROJECT_ID")
    except Exception as e:
        app.logger.error(f"Could not find any valid credentials: {e}")
    return None, os.environ.get("FIREBASE_PROJECT_ID")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        FUNCTIONS_REGION=os.environ.get("FIREBASE_FUNCTIONS_REGION") or DEFAULT_REGION,
        FUNCTIONS_BASE_URL=os.environ.get("FIREBASE_FUNCTIONS_BASE_URL"),
        FUNCTIONS_TIMEOUT=float(
            os.environ.get("FIREBASE_FUNCTIONS_TIMEOUT") or DEFAULT_TIMEOUT
        ),
    )

    if test_config:
        app.config.update(test_config)

    if not app.config.get("TESTING"):
        app.logger.setLevel(logging.INFO)
        logging.getLogger("courtside").setLevel(logging.INFO)

        cred, project_id = _load_credentials(app)
        if cred and not firebase_admin._apps:
            try:
                options = {"projectId": project_id} if project_id else {}
                firebase_admin.initialize_app(cred, options)
            except ValueError:
                app.logger.info("Firebase app already initialized.")

        if not app.config.get("FUNCTIONS_BASE_URL") and project_id:
            region = app.config["FUNCTIONS_REGION"]
            app.config["FUNCTIONS_BASE_URL"] = (
                f"https://{region}-{project_id}.cloudfunctions.net"
            )
        if not app.config.get("FUNCTIONS_BASE_URL"):
            app.logger.warning("No callable functions URL; commands will fail.")

    csrf.init_app(app)

    from . import auth as auth_bp

    app.register_blueprint(auth_bp.bp)

    from . import activity as activity_bp

    app.register_blueprint(activity_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.before_request
    def load_logged_in_user():
        """Load the signed-in user's profile into g."""
        user_id = session.get("user_id")
        g.user = None
        if user_id is None:
            return

        try:
            db = firestore.client()
            user_doc = db.collection(USERS_COLLECTION).document(user_id).get()
            if user_doc.exists:
                g.user = user_doc.to_dict()
                g.user["uid"] = user_id
            else:
                session.clear()
                current_app.logger.warning(
                    f"User {user_id} in session but not found in Firestore."
                )
        except Exception as e:
            current_app.logger.error(f"Error loading user from session: {e}")
            session.clear()

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
