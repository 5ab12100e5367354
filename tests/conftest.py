import httpx
import pytest

from linkpulse import create_app
from linkpulse.client import BackendClient
from linkpulse.config import TestConfig
from linkpulse.extensions import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_backend(app):
    backends = []

    def factory():
        backend = BackendClient(
            "http://linkpulse.test",
            transport=httpx.WSGITransport(app=app),
            auto_poll=False,
        )
        backends.append(backend)
        return backend

    yield factory
    for backend in backends:
        backend.close()


@pytest.fixture
def backend(make_backend):
    return make_backend()
