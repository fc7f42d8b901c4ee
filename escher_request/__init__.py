from escher_request.api import IntegrationConfig, RequestOptions, Response, SigningConfig
from escher_request.client import EscherClient
from escher_request.exceptions import (
    EscherRequestError,
    ConfigError,
    CredentialError,
    CredentialNotFoundError,
    AmbiguousCredentialError,
    SigningInputError,
    InvalidRequestError,
    TransportError,
)
from escher_request.registry import IntegrationRegistry
from escher_request.resolver import CredentialResolver
from escher_request.signer import RequestSigner
from escher_request.transport import RequestsTransport, Transport
