# ==============================================================
# Read-only Flask status API for a running sensor
# - /api/status   lifecycle state, config and counters
# - /api/alerts   recent alerts, newest first
# - /api/sources  tracked sources with their distinct-port counts
# ==============================================================

import threading

from flask import Flask, jsonify, request

from utils.logger import get_logger

_logger = get_logger("scanwatch.api")


def create_app(pipeline, recent):
    """Build the app around a pipeline and a MemorySink of recent alerts."""
    app = Flask(__name__)

    @app.route('/')
    def index():
        return "<h2>scanwatch sensor</h2><p>Visit /api/status, /api/alerts, /api/sources</p>"

    @app.route('/api/status')
    def api_status():
        return jsonify({
            "state": pipeline.state,
            "config": pipeline.config.as_dict(),
            "stats": pipeline.summary(),
        })

    @app.route('/api/alerts')
    def api_alerts():
        limit = request.args.get('limit', type=int)
        return jsonify([a.to_dict() for a in recent.recent(limit)])

    @app.route('/api/sources')
    def api_sources():
        limit = request.args.get('limit', default=100, type=int)
        return jsonify(pipeline.tracker.snapshot()[:max(limit, 0)])

    return app


def start_api_thread(app, host='127.0.0.1', port=5001):
    """Serve the status API from a daemon thread"""
    t = threading.Thread(target=lambda: app.run(host=host, port=port, debug=False, use_reloader=False),
                         name="scanwatch-api", daemon=True)
    t.start()
    _logger.info(f"[API] Status API listening on http://{host}:{port}")
    return t
