"""
Creates and returns main flask app
"""

import threading

from flask import Flask, jsonify
from flask_cors import CORS

from .liquidation.logging_config import install_signal_handlers
from .liquidation.routes import liquidation, start_monitor


def create_app(chain_id=None):
    """Create Flask app and start the liquidation bot for the given chain ID"""
    app = Flask(__name__)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    install_signal_handlers()

    monitor_thread = threading.Thread(target=start_monitor, args=(chain_id,), daemon=True)
    monitor_thread.start()

    app.register_blueprint(liquidation, url_prefix="/liquidation")

    return app
