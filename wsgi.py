"""ABOUTME: WSGI entry point for production deployment
ABOUTME: Creates the CharityGuard Flask application for WSGI servers such as Gunicorn"""

from charityguard.entrypoints.flask_app import create_app

app = create_app()

if __name__ == "__main__":
    app.run()
