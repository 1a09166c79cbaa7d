"""Error handlers for the application.

Every error leaves as ``{"message": ...}`` JSON; the onboarding clients never
ask for HTML.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from onboarding.core.errors import OnboardingError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(OnboardingError)
    def onboarding_error(error):
        """Service-level failure carrying its own status."""
        if error.status >= 500:
            app.logger.error(f"Request failed: [{error.status}] {error.message}")
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Werkzeug errors (404, 405, malformed JSON) as JSON."""
        return jsonify({"message": error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # ALWAYS log the full error (even in production) - logs are secure
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"message": "An unexpected error occurred"}), 500
