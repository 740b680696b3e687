"""
Flask blueprints for the web video server.
"""
from .main import main_bp
