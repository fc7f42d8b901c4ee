import json
import logging
from typing import Callable, Dict, Optional

import requests

from escher_request.api import Response
from escher_request.exceptions import TransportError

CHUNK_SIZE = 64 * 1024


class Transport:
    def send(self, method: str, url: str, headers: Dict[str, str], body: bytes, transport_options: dict) -> Response:
        raise NotImplementedError


def _read_content(response: requests.Response, max_content_length: Optional[int]) -> bytes:
    """
    Reads a streamed response body, giving up as soon as it is known to exceed `max_content_length`.
    """
    if max_content_length is not None:
        try:
            announced = int(response.headers.get('content-length', ''))
        except ValueError:
            announced = None
        if announced is not None and announced > max_content_length:
            raise TransportError(
                f'{response.url} announced {announced} bytes, more than the allowed {max_content_length}'
            )

    content = bytearray()
    for chunk in response.iter_content(CHUNK_SIZE):
        content.extend(chunk)
        if max_content_length is not None and len(content) > max_content_length:
            raise TransportError(
                f'{response.url} returned more than the allowed {max_content_length} bytes'
            )
    return bytes(content)


def _decode(response: requests.Response, content: bytes):
    content_type = response.headers.get('content-type', '')
    if 'json' in content_type and content:
        try:
            return json.loads(content)
        except ValueError:
            logging.warning(f'Response from {response.url} claims to be JSON but is not.')
    return content.decode(response.encoding or 'utf8', errors='replace')


class RequestsTransport(Transport):
    """
    Sends requests with a fresh `requests.Session` from `session_factory` for every call.
    """

    def __init__(self, session_factory: Callable[[], requests.Session] = requests.Session):
        self.session_factory = session_factory

    def send(self, method, url, headers, body, transport_options) -> Response:
        timeout: Optional[float] = transport_options.get('timeout')
        max_content_length: Optional[int] = transport_options.get('max_content_length')
        max_redirects: Optional[int] = transport_options.get('max_redirects')

        effective_config = {
            'method': method,
            'url': url,
            'headers': dict(headers),
            'data': body,
            'timeout': timeout,
            'max_content_length': max_content_length,
            'max_redirects': max_redirects,
        }

        with self.session_factory() as session:
            if max_redirects is not None:
                session.max_redirects = max_redirects

            try:
                response = session.request(
                    method,
                    url,
                    headers=headers,
                    data=body or None,
                    timeout=timeout,
                    allow_redirects=max_redirects != 0,
                    stream=True,
                )
            except requests.RequestException as e:
                raise TransportError(f'{method} {url} failed: {e}') from e

            try:
                content = _read_content(response, max_content_length)
            except requests.RequestException as e:
                raise TransportError(f'{method} {url} failed while reading the response: {e}') from e
            finally:
                response.close()

            logging.info(f'{method} {url} -> {response.status_code}')
            return Response({
                'status': response.status_code,
                'headers': dict(response.headers),
                'data': _decode(response, content),
                'effective_config': effective_config,
            })
