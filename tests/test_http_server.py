import sys
import tempfile
import unittest
import urllib.error
import urllib.request
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from livedoc.core.http_server import StaticServer, create_app
from tests.helpers import LOOPBACK, free_port, occupied_port


class TestStaticApp(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.root = Path(self.tmp.name)
        (self.root / 'notes.html').write_text('<title>Notes</title>', encoding='utf-8')
        (self.root / 'style.css').write_text('body {}', encoding='utf-8')
        self.client = create_app(self.root).test_client()

    def test_serves_page(self):
        response = self.client.get('/notes.html')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'<title>Notes</title>', response.data)
        self.assertEqual(response.headers['Cache-Control'], 'no-cache')
        response.close()

    def test_serves_asset(self):
        response = self.client.get('/style.css')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.mimetype.startswith('text/css'))
        response.close()

    def test_missing_file(self):
        self.assertEqual(self.client.get('/other.html').status_code, 404)

    def test_no_index_route(self):
        self.assertEqual(self.client.get('/').status_code, 404)

    def test_cannot_escape_root(self):
        served = self.root / 'out'
        served.mkdir()
        (self.root / 'secret.txt').write_text('private', encoding='utf-8')
        client = create_app(served).test_client()

        response = client.get('/../secret.txt')
        self.assertEqual(response.status_code, 404)
        self.assertNotIn(b'private', response.data)


class TestStaticServer(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.root = Path(self.tmp.name)
        (self.root / 'page.html').write_text('hello', encoding='utf-8')
        self.server = StaticServer(self.root)
        self.addCleanup(self.server.stop)

    def test_start_serve_stop(self):
        port = free_port()
        self.server.start(LOOPBACK, port)
        self.assertTrue(self.server.running)
        self.assertEqual(self.server.port, port)

        with urllib.request.urlopen(f"http://{LOOPBACK}:{port}/page.html", timeout=5) as response:
            self.assertEqual(response.read(), b'hello')

        self.server.stop()
        self.assertFalse(self.server.running)
        self.assertIsNone(self.server.port)

        # Port is released: a fresh server can take it over
        again = StaticServer(self.root)
        again.start(LOOPBACK, port)
        again.stop()

    def test_stop_is_idempotent(self):
        self.server.stop()
        self.server.start(LOOPBACK, free_port())
        self.server.stop()
        self.server.stop()
        self.assertFalse(self.server.running)

    def test_bind_failure_raises(self):
        with occupied_port() as taken:
            with self.assertRaises(OSError):
                self.server.start(LOOPBACK, taken)
        self.assertFalse(self.server.running)


if __name__ == '__main__':
    unittest.main()
