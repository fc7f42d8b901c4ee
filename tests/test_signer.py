from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from escher_request import escher
from escher_request.api import RequestOptions
from escher_request.exceptions import InvalidRequestError
from escher_request.registry import IntegrationRegistry
from escher_request.resolver import CredentialResolver
from escher_request.signer import RequestSigner

from tests.conftest import example_integration

NOW = datetime(2011, 9, 9, 23, 36, tzinfo=timezone.utc)


@pytest.fixture
def signer():
    return RequestSigner(CredentialResolver(IntegrationRegistry.build([example_integration()])))


@patch('escher_request.signer._utcnow', return_value=NOW)
def test_prepare_adds_default_and_signing_headers(_utcnow, signer):
    prepared = signer.prepare('http://www.example.com/hello', 'GET', {}, b'', RequestOptions({}))

    assert prepared.url == 'http://www.example.com/hello'
    assert prepared.credential.key_id == 'test_test-target_v1'
    assert prepared.headers['content-type'] == 'application/json'
    assert prepared.headers['host'] == 'www.example.com'
    assert prepared.headers['x-ems-date'] == '20110909T233600Z'

    expected = escher.sign(
        prepared.credential, 'GET', '/hello',
        {'content-type': 'application/json', 'host': 'www.example.com'}, b'', NOW,
    )
    assert prepared.headers['x-ems-auth'] == expected.authorization


@patch('escher_request.signer._utcnow', return_value=NOW)
def test_caller_headers_override_defaults_and_are_signed(_utcnow, signer):
    prepared = signer.prepare('http://www.example.com/hello?a=1', 'POST', {
        'Content-Type': 'text/plain',
        'x-sajt': 'kacsa',
    }, b'hello', RequestOptions({}))

    assert prepared.headers['Content-Type'] == 'text/plain'
    assert 'content-type' not in prepared.headers
    assert prepared.headers['x-sajt'] == 'kacsa'

    parsed = escher.parse_authorization(prepared.headers['x-ems-auth'])
    assert parsed.signed_headers == ['content-type', 'host', 'x-ems-date', 'x-sajt']

    expected = escher.sign(
        prepared.credential, 'POST', '/hello?a=1',
        {'content-type': 'text/plain', 'host': 'www.example.com', 'x-sajt': 'kacsa'}, b'hello', NOW,
    )
    assert prepared.headers['x-ems-auth'] == expected.authorization


@patch('escher_request.signer._utcnow', return_value=NOW)
def test_caller_cannot_supply_signing_headers(_utcnow, signer):
    prepared = signer.prepare('http://www.example.com/hello', 'GET', {
        'X-Ems-Date': '19990101T000000Z',
        'X-EMS-Auth': 'EMS-HMAC-SHA256 forged',
    }, b'', RequestOptions({}))

    assert prepared.headers['x-ems-date'] == '20110909T233600Z'
    assert prepared.headers['x-ems-auth'].startswith(
        'EMS-HMAC-SHA256 Credential=test_test-target_v1/20110909/eu/test-target/ems_request, '
        'SignedHeaders=content-type;host;x-ems-date, '
    )
    assert 'X-Ems-Date' not in prepared.headers
    assert 'X-EMS-Auth' not in prepared.headers


def test_timestamp_is_taken_when_signing(signer):
    with patch('escher_request.signer._utcnow', return_value=NOW):
        first = signer.prepare('http://www.example.com/hello', 'GET', {}, b'', RequestOptions({}))
    with patch('escher_request.signer._utcnow', return_value=NOW.replace(second=1)):
        second = signer.prepare('http://www.example.com/hello', 'GET', {}, b'', RequestOptions({}))

    assert first.headers['x-ems-date'] == '20110909T233600Z'
    assert second.headers['x-ems-date'] == '20110909T233601Z'
    assert first.headers['x-ems-auth'] != second.headers['x-ems-auth']


def test_acquire_uses_inline_credentials(signer):
    credential = signer.acquire('http://www.tap.com/hello', RequestOptions({
        'escherKeyId': 'inline_v1',
        'escherCredentialScope': 'eu/inline/ems_request',
        'escherSecret': 'inline-secret',
    }))

    assert credential.key_id == 'inline_v1'


def test_relative_url_cannot_be_signed(signer):
    with pytest.raises(InvalidRequestError):
        signer.prepare('/hello', 'GET', {}, b'', RequestOptions({'escher_key_id': 'test_test-target'}))
