import hmac
import logging
import time

from flask import request
from flask_httpauth import HTTPAuth

from escher_request import escher
from escher_request.api import SigningConfig
from escher_request.exceptions import SigningInputError
from escher_request.registry import IntegrationRegistry


class EscherAuth(HTTPAuth):
    """
    Verifies escher signed requests to a Flask app. Every configured key is accepted here,
    including `acceptOnly` ones. `current_user()` is the matching integration.
    """

    def __init__(self, registry: IntegrationRegistry, realm=None, config: SigningConfig = None):
        self.config = config or SigningConfig()
        super().__init__(self.config.algorithm, realm, header=self.config.auth_header_name)
        self.registry = registry

    @property
    def required_headers(self):
        return [*self.config.required_headers, self.config.date_header_name]

    def _get_path(self):
        return request.full_path if request.query_string else request.path

    def _get_signed_headers(self, names):
        headers = {}
        for name in names:
            if name == 'host':
                headers[name] = request.headers.get('host', request.host)
            elif name in request.headers:
                headers[name] = request.headers[name]
            else:
                return None
        return headers

    def authenticate(self, auth, _pw):
        # Get the current time as early as possible
        authentication_time = time.time()

        if auth is None:
            logging.warning('No escher authentication provided.')
            return False

        parsed = escher.parse_authorization(request.headers.get(self.config.auth_header_name, ''))
        if parsed is None:
            logging.warning('Malformed escher authorization header.')
            return False

        if parsed.algorithm != self.config.algorithm:
            logging.warning(f'Unsupported signature algorithm: {parsed.algorithm}')
            return False

        for header in self.required_headers:
            if header not in parsed.signed_headers:
                logging.warning(f'Missing required header `{header}` in signature.')
                return False

        try:
            signed_at = escher.parse_long_date(request.headers.get(self.config.date_header_name))
        except SigningInputError:
            logging.warning('Malformed escher date header.')
            return False

        if signed_at.strftime(escher.SHORT_DATE_FORMAT) != parsed.short_date:
            logging.warning('Credential date does not match the date header.')
            return False

        if abs(authentication_time - signed_at.timestamp()) > self.config.clock_skew:
            logging.warning('Date on request too far away from current time.')
            return False

        credential = self.registry.lookup_by_key_id(parsed.key_id)
        if credential is None:
            logging.warning(f'Unknown key ID `{parsed.key_id}` when verifying signature.')
            return False

        if credential.credential_scope != parsed.credential_scope:
            logging.warning(f'Credential scope `{parsed.credential_scope}` is not valid for `{parsed.key_id}`.')
            return False

        headers = self._get_signed_headers(parsed.signed_headers)
        if headers is None:
            logging.warning('Signed header missing from request.')
            return False

        try:
            computed = escher.sign(
                credential, request.method, self._get_path(), headers, request.get_data(), signed_at, self.config
            )
        except SigningInputError as e:
            logging.warning(f'Cannot recompute signature: {e}')
            return False

        signature_valid = hmac.compare_digest(computed.signature, parsed.signature)
        if not signature_valid:
            logging.warning('Signature on request does not match expected signature.')
            return False
        return credential
