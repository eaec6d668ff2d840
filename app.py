"""Main entry point for the application."""

import os

from flask import jsonify

from courtside import create_app

app = create_app()


@app.route("/health")
def health_check():
    """Report that the service is up."""
    return jsonify({"status": "ok"}), 200


if __name__ == "__main__":
    port = int(os.environ.get("PORT") or 8080)
    app.run(debug=True, host="0.0.0.0", port=port)  # nosec
