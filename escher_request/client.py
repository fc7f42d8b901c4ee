import json
from urllib.parse import urlsplit

from escher_request.api import HttpMethod, IntegrationConfig, RequestOptions, Response, SigningConfig, import_model
from escher_request.exceptions import InvalidRequestError
from escher_request.registry import IntegrationRegistry
from escher_request.resolver import CredentialResolver
from escher_request.signer import RequestSigner
from escher_request.transport import RequestsTransport, Transport


def _is_absolute(url: str) -> bool:
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


def _absolute_url(url_or_path: str, credential: IntegrationConfig) -> str:
    if _is_absolute(url_or_path):
        return url_or_path

    if not credential.service_url:
        raise InvalidRequestError(
            f'Relative url `{url_or_path}` needs a configured integration to resolve against'
        )
    return f'{credential.service_url.rstrip("/")}/{url_or_path.lstrip("/")}'


def _encode_body(data) -> bytes:
    if data is None:
        return b''
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode('utf8')
    return json.dumps(data).encode('utf8')


class EscherClient:
    """
    Signs requests with the escher credential matching their url and sends them.

        client = EscherClient(IntegrationRegistry.build(integrations))
        response = client.get('/hello', escher_key_id='test_test-target')

    Options are those of `RequestOptions`, either by name or by their camelCase alias.
    """

    def __init__(self, registry: IntegrationRegistry = None, transport: Transport = None,
                 signing_config: SigningConfig = None):
        self.registry = registry if registry is not None else IntegrationRegistry()
        self.transport = transport or RequestsTransport()
        self.signer = RequestSigner(CredentialResolver(self.registry), signing_config)

    def request(self, method: str, url_or_path: str, **options) -> Response:
        method = method.upper()
        if method not in HttpMethod.choices:
            raise InvalidRequestError(f'Unsupported HTTP method `{method}`')

        request_options = import_model(RequestOptions, options, InvalidRequestError)

        # Resolution comes first, a relative path is only meaningful once we know the integration
        credential = self.signer.acquire(url_or_path, request_options)
        url = _absolute_url(url_or_path, credential)

        prepared = self.signer.prepare(
            url, method, request_options.get_headers(), _encode_body(request_options.data),
            request_options, credential=credential,
        )

        return self.transport.send(
            method, prepared.url, prepared.headers, prepared.body, request_options.transport_options()
        )

    def get(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.GET, url_or_path, **options)

    def head(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.HEAD, url_or_path, **options)

    def post(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.POST, url_or_path, **options)

    def put(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.PUT, url_or_path, **options)

    def patch(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.PATCH, url_or_path, **options)

    def delete(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.DELETE, url_or_path, **options)

    def options(self, url_or_path: str, **options) -> Response:
        return self.request(HttpMethod.OPTIONS, url_or_path, **options)
