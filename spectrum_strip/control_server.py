"""
HTTP front for the control plane.

  GET  /characteristics          JSON catalog (name, flags, size)
  GET  /characteristics/<name>   raw bytes
  PUT  /characteristics/<name>   raw body → write   (POST works too)

Writes answer 204 on success and 400 with a plain-text reason when the
value is rejected; unknown names are 404. The server runs on a daemon
thread next to the render loop.
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote, urlparse

from .control import ControlError, UnknownCharacteristic
from .constants import CONTROL_PORT

logger = logging.getLogger(__name__)

PREFIX = '/characteristics'
MAX_BODY = 4096


class ControlHandler(BaseHTTPRequestHandler):
    control = None  # set per server by make_handler()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    # ── Routing ────────────────────────────────────────────────────

    def _characteristic_name(self):
        path = unquote(urlparse(self.path).path).rstrip('/')
        if path == PREFIX:
            return ''
        if path.startswith(PREFIX + '/'):
            return path[len(PREFIX) + 1:]
        return None

    def do_GET(self):
        name = self._characteristic_name()
        if name is None:
            self._text_response("not found", status=404)
        elif name == '':
            self._json_response(self.control.describe())
        else:
            try:
                value = self.control.read(name)
            except UnknownCharacteristic as e:
                self._text_response(str(e), status=404)
            except ControlError as e:
                self._text_response(str(e), status=400)
            else:
                self._bytes_response(value)

    def do_PUT(self):
        name = self._characteristic_name()
        if not name:
            self._text_response("not found", status=404)
            return
        length = int(self.headers.get('Content-Length') or 0)
        if length > MAX_BODY:
            self._text_response(f"body larger than {MAX_BODY} bytes", status=413)
            return
        body = self.rfile.read(length) if length else b''
        try:
            self.control.write(name, body)
        except UnknownCharacteristic as e:
            self._text_response(str(e), status=404)
        except ControlError as e:
            logger.info("Rejected %s write: %s", name, e)
            self._text_response(str(e), status=400)
        else:
            self.send_response(204)
            self.end_headers()

    do_POST = do_PUT

    # ── Responses ──────────────────────────────────────────────────

    def _bytes_response(self, data, status=200):
        self.send_response(status)
        self.send_header('Content-Type', 'application/octet-stream')
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _text_response(self, text, status=200):
        payload = text.encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'text/plain; charset=utf-8')
        self.send_header('Content-Length', str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _json_response(self, data, status=200):
        payload = json.dumps(data).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


def make_handler(control):
    return type('BoundControlHandler', (ControlHandler,), {'control': control})


def start_control_server(control, host='127.0.0.1', port=CONTROL_PORT):
    """Serve the control plane on a daemon thread. Returns the server."""
    server = ThreadingHTTPServer((host, port), make_handler(control))
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True, name="ControlServer")
    thread.start()
    host, port = server.server_address[:2]
    logger.info("Control plane at http://%s:%d%s", host, port, PREFIX)
    return server
