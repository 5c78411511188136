import socket
import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Dict, List, Tuple
from xml.sax.saxutils import escape

import pytest


@dataclass
class Reply:
    status: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)


def _make_handler(feed_server):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            headers = dict(self.headers.items())
            feed_server.requests.append((self.path, headers))
            route = feed_server.routes.get(self.path)
            reply = route(headers) if route else Reply(404, b"not found")

            try:
                self.send_response(reply.status)
                for name, value in reply.headers.items():
                    self.send_header(name, value)
                if reply.status != 304:
                    self.send_header("Content-Length", str(len(reply.body)))
                self.end_headers()
                if reply.body and reply.status != 304:
                    self.wfile.write(reply.body)
            except (BrokenPipeError, ConnectionResetError):
                # The client gave up waiting.
                pass

        def log_message(self, format, *args):
            pass

    return Handler


class FeedServer:
    """Local HTTP server answering scripted routes and recording requests."""

    def __init__(self):
        self.routes: Dict[str, Callable[[dict], Reply]] = {}
        self.requests: List[Tuple[str, dict]] = []
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(self))
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()

    def url(self, path: str) -> str:
        return f"http://127.0.0.1:{self._server.server_address[1]}{path}"

    def serve(self, path, status=200, body=b"", headers=None):
        self.routes[path] = lambda request: Reply(status, body, dict(headers or {}))

    def serve_feed(self, path, body, headers=None, honor_if_modified_since=True):
        def reply(request):
            if honor_if_modified_since and request.get("If-Modified-Since"):
                return Reply(304)
            return Reply(200, body, dict(headers or {}))

        self.routes[path] = reply

    def serve_slow(self, path, body, delay):
        def reply(request):
            time.sleep(delay)
            return Reply(200, body)

        self.routes[path] = reply

    def redirect_chain(self, prefix, hops, target, status=302):
        for index in range(hops):
            location = f"{prefix}{index + 1}" if index + 1 < hops else target
            self.serve(f"{prefix}{index}", status=status, headers={"Location": location})
        return f"{prefix}0"

    def requests_for(self, path):
        return [headers for requested, headers in self.requests if requested == path]


@pytest.fixture
def feed_server():
    server = FeedServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def unreachable_url():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/feed.xml"


@pytest.fixture
def make_rss():
    """Return a builder for small RSS 2.0 documents."""

    def build(title="Example Blog", items=(), link="https://blog.example.com/"):
        parts = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(title)}</title>",
            f"<link>{escape(link)}</link>",
            "<description>Example feed</description>",
        ]
        for item_title, published in items:
            parts.append(
                "<item>"
                f"<title>{escape(item_title)}</title>"
                f"<link>https://blog.example.com/{abs(hash(item_title))}</link>"
                f"<pubDate>{published}</pubDate>"
                "<description>&lt;p&gt;Body&lt;/p&gt;</description>"
                "</item>"
            )
        parts.append("</channel></rss>")
        return "".join(parts).encode("utf-8")

    return build
