from firebase_admin import auth, firestore
from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from . import bp


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    Called by the client after a successful Firebase sign-in.
    Verifies the ID token and opens a server-side session. The token is kept
    so that callable functions can be invoked on the user's behalf.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        return jsonify({"status": "error", "message": "Missing ID token."}), 400
    try:
        decoded_token = auth.verify_id_token(id_token)
        uid = decoded_token["uid"]
        db = firestore.client()
        user_doc = db.collection("users").document(uid).get()
        if not user_doc.exists:
            return (
                jsonify({"status": "error", "message": "User not found in Firestore."}),
                404,
            )
    except Exception as e:
        current_app.logger.error(f"Error during session login: {e}")
        return (
            jsonify({"status": "error", "message": "Invalid token or server error."}),
            401,
        )

    session["user_id"] = uid
    session["id_token"] = id_token
    return jsonify({"status": "success"})


@bp.route("/logout", methods=["POST"])
def logout():
    """Clear the server-side session; Firebase sign-out happens client-side."""
    session.clear()
    return jsonify({"status": "success"})


@bp.route("/csrf_token")
def csrf_token():
    """Hand the client a CSRF token to send back in the X-CSRFToken header."""
    return jsonify({"csrfToken": generate_csrf()})
