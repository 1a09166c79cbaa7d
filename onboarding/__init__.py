"""Invite-based user onboarding service.

To use the Flask app:
    from onboarding.flask_app import create_app

To use the onboarding services without HTTP:
    from onboarding.core import build_services
"""
# Note: flask_app is not imported here so the CLI can run without Flask
