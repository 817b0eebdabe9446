"""
Web interface for the dual camera recorder using Flask.
Provides start/stop control and status reporting.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict

import psutil
from flask import Flask, jsonify, request
from werkzeug.serving import make_server

from .config import SystemConfig
from .recorder import RecordingController
from .storage import StorageManager

logger = logging.getLogger(__name__)


class WebInterface:
    """HTTP control surface for recording sessions."""

    def __init__(self, controller: RecordingController, storage: StorageManager,
                 config: SystemConfig):
        """
        Initialize web interface.

        Args:
            controller: RecordingController that owns the sessions
            storage: StorageManager for the recordings directory
            config: SystemConfig instance (host and port come from config.web)
        """
        self.controller = controller
        self.storage = storage
        self.config = config
        self.host = config.web.host
        self.port = config.web.port

        self.flask_app = Flask(__name__)
        self._setup_routes()

        self.server = None
        self.server_thread = None

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.flask_app.route('/')
        def index():
            return jsonify({'service': 'dualcam-recorder', 'status': 'ok'})

        @self.flask_app.route('/start', methods=['GET', 'POST'])
        def start_recording():
            """Start a recording session in the background."""
            if not self.controller.start():
                return jsonify({'success': False,
                                'error': 'Recording is already in progress.'}), 409
            return jsonify({'success': True,
                            'message': 'Recording started in the background.'})

        @self.flask_app.route('/stop', methods=['GET', 'POST'])
        def stop_recording():
            """Signal the running session to stop and finalize."""
            if not self.controller.stop():
                return jsonify({'success': False,
                                'error': 'Recording is not currently active or has already finished.'}), 409
            return jsonify({'success': True,
                            'message': 'Stop request sent. Recording will finalize shortly.'})

        @self.flask_app.route('/api/status')
        def api_status():
            return jsonify(self._get_status())

        @self.flask_app.route('/api/recordings')
        def api_recordings():
            limit = request.args.get('limit', 50, type=int)
            recordings = self.storage.list_recordings(limit)
            return jsonify({'count': len(recordings), 'recordings': recordings})

        @self.flask_app.route('/api/system')
        def api_system():
            return jsonify(self._get_system_info())

    def _get_status(self) -> Dict[str, Any]:
        capture = self.config.capture
        status = self.controller.get_status()
        status.update({
            'timestamp': datetime.now().isoformat(),
            'cameras': {
                'primary': {'index': self.config.primary.index, 'name': self.config.primary.name},
                'secondary': {'index': self.config.secondary.index, 'name': self.config.secondary.name},
            },
            'resolution': f"{capture.composite_width}x{capture.height}",
            'requested_fps': capture.framerate,
        })
        return status

    def _get_system_info(self) -> Dict[str, Any]:
        mem = psutil.virtual_memory()
        info = {
            'cpu_percent': psutil.cpu_percent(interval=None),
            'cpu_count': psutil.cpu_count(),
            'memory': {
                'total': mem.total,
                'used': mem.used,
                'percent': mem.percent,
                'available': mem.available
            },
        }

        disk = self.storage.get_disk_usage()
        if disk:
            info['disk'] = disk
        return info

    def start(self):
        """Start the web server in a separate thread."""
        if self.server_thread and self.server_thread.is_alive():
            logger.warning("Web server already running")
            return

        logger.info(f"Starting web interface on {self.host}:{self.port}")

        self.server = make_server(self.host, self.port, self.flask_app, threaded=True)

        self.server_thread = threading.Thread(target=self.server.serve_forever,
                                              daemon=True, name="WebServer")
        self.server_thread.start()

        logger.info(f"Web interface started at http://{self.host}:{self.port}")

    def stop(self):
        """Stop the web server."""
        if self.server:
            logger.info("Stopping web interface...")
            self.server.shutdown()
            self.server_thread.join(timeout=5)
            self.server = None
            logger.info("Web interface stopped")
