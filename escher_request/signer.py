from datetime import datetime, timezone
from typing import Dict, NamedTuple, Optional
from urllib.parse import urlsplit

from requests.structures import CaseInsensitiveDict

from escher_request import escher
from escher_request.api import IntegrationConfig, RequestOptions, SigningConfig
from escher_request.exceptions import InvalidRequestError
from escher_request.registry import host_of
from escher_request.resolver import CredentialResolver, credential_source


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PreparedRequest(NamedTuple):
    url: str
    headers: Dict[str, str]
    body: bytes
    credential: IntegrationConfig


class RequestSigner:
    def __init__(self, resolver: CredentialResolver, config: SigningConfig = None):
        self.resolver = resolver
        self.config = config or SigningConfig()

    def acquire(self, target_url: str, options: RequestOptions) -> IntegrationConfig:
        return credential_source(target_url, options).acquire(self.resolver)

    def prepare(self, target_url: str, method: str, caller_headers, body: bytes, options: RequestOptions,
                credential: Optional[IntegrationConfig] = None) -> PreparedRequest:
        if credential is None:
            credential = self.acquire(target_url, options)

        split = urlsplit(target_url)
        if not split.netloc:
            raise InvalidRequestError(f'Cannot sign a request to relative url `{target_url}`')

        headers = CaseInsensitiveDict({
            'content-type': self.config.default_content_type,
            'host': host_of(target_url),
        })
        headers.update(caller_headers or {})

        # Stale or forged signing headers never reach the wire
        headers.pop(self.config.date_header_name, None)
        headers.pop(self.config.auth_header_name, None)

        path = f'{split.path}?{split.query}' if split.query else split.path

        result = escher.sign(credential, method, path, headers, body, _utcnow(), self.config)

        headers[self.config.date_header_name] = result.date
        headers[self.config.auth_header_name] = result.authorization

        return PreparedRequest(url=target_url, headers=dict(headers), body=body, credential=credential)
