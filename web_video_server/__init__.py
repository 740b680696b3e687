"""
Web video server - Flask application factory
"""
from flask import Flask

from .config import Config


def create_app(config_class=Config, bus=None):
    """Application factory pattern for Flask app creation"""
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_class)

    if bus is None:
        from .services.bus import MqttBus
        bus = MqttBus(config_class)

    from .server import WebVideoServer
    server = WebVideoServer(bus, config=config_class, templates=app.jinja_env)
    app.extensions['web_video_server'] = server
    app.extensions['web_video_bus'] = bus

    # Register blueprints
    from .routes import main_bp
    app.register_blueprint(main_bp)

    return app
