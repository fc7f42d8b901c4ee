import logging

import pytest

from flask import Flask, jsonify, request
from requests import Session
from requests_flask_adapter import FlaskAdapter

from escher_request.api import Response
from escher_request.client import EscherClient
from escher_request.registry import IntegrationRegistry
from escher_request.transport import RequestsTransport, Transport
from escher_request.verify import EscherAuth

TARGET_HOSTS = ['http://www.example.com', 'http://www.tap.com']


def example_integration(**overrides):
    integration = {
        'serviceUrl': 'http://www.example.com',
        'credentialScope': 'eu/test-target/ems_request',
        'keyId': 'test_test-target_v1',
        'secret': 'secret',
        'acceptOnly': False,
    }
    integration.update(overrides)
    return integration


class RecordingTransport(Transport):
    def __init__(self):
        self.sent = []

    def send(self, method, url, headers, body, transport_options):
        self.sent.append({'method': method, 'url': url, 'headers': headers, 'body': body, **transport_options})
        return Response({'status': 200, 'data': 'OK', 'effective_config': self.sent[-1]})


@pytest.fixture
def verifying_registry():
    # The target service knows every key, acceptOnly ones included
    return IntegrationRegistry.build([
        example_integration(acceptOnly=True),
        example_integration(keyId='test_test-target_v2'),
        example_integration(keyId='other_v1', credentialScope='eu/other/ems_request', secret='other-secret'),
    ])


@pytest.fixture
def target_app(verifying_registry):
    app = Flask(__name__)
    app.testing = True
    app.logger.setLevel(logging.INFO)
    auth = EscherAuth(verifying_registry)

    @app.route('/hello', methods=['GET', 'POST', 'PUT', 'DELETE'])
    @auth.login_required
    def hello():
        return jsonify({
            'yolo': True,
            'key_id': auth.current_user().key_id,
            'sajt': request.headers.get('x-sajt'),
            'body': request.get_data(as_text=True),
        })

    @app.route('/text')
    @auth.login_required
    def text():
        return 'OK'

    @app.route('/large')
    @auth.login_required
    def large():
        return 'x' * 5000

    return app


@pytest.fixture
def session_factory(target_app):
    def factory():
        session = Session()
        for host in TARGET_HOSTS:
            session.mount(host, FlaskAdapter(target_app))
        return session
    return factory


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_client(session_factory):
    return lambda integrations=None: EscherClient(
        IntegrationRegistry.build(integrations),
        transport=RequestsTransport(session_factory),
    )


@pytest.fixture
def client(make_client):
    return make_client([example_integration()])


@pytest.fixture
def recording_transport():
    return RecordingTransport()
