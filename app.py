"""
Lema API server.

Learners describe a goal, get a generated course (modules, lessons,
slides, quiz questions) and work through it lesson by lesson. Premium
status comes from the Lemon Squeezy subscription webhook.
"""

import logging

import waitress
from flask import Flask, jsonify

from auth_routes import auth
from billing_service import LemonSqueezyClient
from config import get_config
from course_routes import courses
from errors import register_error_handlers
from extensions import db
from generation_service import ContentGenerator
from lesson_routes import lessons
from payment_routes import payment, webhooks


def create_app(config_object=None, content_generator=None, billing_client_factory=None):
    cfg = config_object or get_config()
    app = Flask(__name__)
    app.config.from_object(cfg)

    logging.basicConfig(
        level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app.logger.info("Running with %s", getattr(cfg, "__name__", type(cfg).__name__))

    db.init_app(app)

    app.extensions["content_generator"] = content_generator or ContentGenerator.from_config(app.config)
    app.extensions["billing_client_factory"] = billing_client_factory or LemonSqueezyClient.from_config

    app.register_blueprint(auth, url_prefix='/auth')
    app.register_blueprint(courses, url_prefix='/api')
    app.register_blueprint(lessons, url_prefix='/api')
    app.register_blueprint(payment, url_prefix='/payment')
    app.register_blueprint(webhooks, url_prefix='/webhooks')
    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

    if app.config['USE_WAITRESS']:
        print(f"Starting Waitress production server on {app.config['SERVER_HOST']}:{app.config['SERVER_PORT']}...")
        waitress.serve(app, host=app.config['SERVER_HOST'], port=app.config['SERVER_PORT'], threads=12)
    else:
        print(f"Starting Flask development server on {app.config['SERVER_HOST']}:{app.config['SERVER_PORT']}...")
        app.run(host=app.config['SERVER_HOST'],
                port=app.config['SERVER_PORT'],
                debug=app.config.get('DEBUG', False))
