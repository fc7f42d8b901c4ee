"""
The Escher request signing algorithm (`EMS-HMAC-SHA256`).

Canonical request::

    METHOD
    /path
    sorted=query&string=pairs
    content-type:application/json
    host:www.example.com
    x-ems-date:20110909T233600Z

    content-type;host;x-ems-date
    <hex hash of the body>

String to sign::

    EMS-HMAC-SHA256
    20110909T233600Z
    20110909/<credential scope>
    <hex hash of the canonical request>

The signing key is derived by chaining HMACs, starting from `<algo prefix><secret>`,
over the short date and then every `/`-separated part of the credential scope. The
signature is the hex HMAC of the string to sign under that key.
"""
import hashlib
import hmac
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import parse_qsl, quote

from escher_request.api import IntegrationConfig, SigningConfig
from escher_request.exceptions import SigningInputError

LONG_DATE_FORMAT = '%Y%m%dT%H%M%SZ'
SHORT_DATE_FORMAT = '%Y%m%d'

_WHITESPACE = re.compile(r'\s+')
_INVALID_NAME = re.compile(r'[\s:]')
_AUTH_HEADER = re.compile(
    r'^(?P<algorithm>[A-Za-z0-9]+-HMAC-[A-Za-z0-9]+) '
    r'Credential=(?P<key_id>[^/]+)/(?P<short_date>\d{8})/(?P<credential_scope>[^,]+), '
    r'SignedHeaders=(?P<signed_headers>[^,]+), '
    r'Signature=(?P<signature>[0-9a-f]+)$'
)

_default_config = SigningConfig()


class SignatureResult(NamedTuple):
    date: str
    authorization: str
    signed_headers: Tuple[str, ...]
    signature: str


class ParsedAuthorization(NamedTuple):
    algorithm: str
    key_id: str
    short_date: str
    credential_scope: str
    signed_headers: List[str]
    signature: str


def format_long_date(timestamp: datetime) -> str:
    return _to_utc(timestamp).strftime(LONG_DATE_FORMAT)


def parse_long_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, LONG_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except (TypeError, ValueError) as e:
        raise SigningInputError(f'Malformed escher date `{value}`') from e


def parse_authorization(value: str) -> Optional[ParsedAuthorization]:
    match = _AUTH_HEADER.match(value.strip())
    if match is None:
        return None
    return ParsedAuthorization(
        algorithm=match['algorithm'],
        key_id=match['key_id'],
        short_date=match['short_date'],
        credential_scope=match['credential_scope'],
        signed_headers=match['signed_headers'].split(';'),
        signature=match['signature'],
    )


def _to_utc(timestamp: datetime) -> datetime:
    # Naive datetimes are taken to be UTC already
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.replace(microsecond=0)


def _hash(config: SigningConfig, data: bytes) -> str:
    return hashlib.new(config.hash_algo.lower(), data).hexdigest()


def _hmac(config: SigningConfig, key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode(), digestmod=config.hash_algo.lower()).digest()


def _encode_body(body) -> bytes:
    if body is None:
        return b''
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode('utf8')
    raise SigningInputError(f'Body must be bytes or str, got {type(body).__name__}')


def _canonical_value(name, value) -> str:
    if isinstance(value, (list, tuple)):
        return ','.join(_canonical_value(name, v) for v in value)
    if not isinstance(value, str):
        raise SigningInputError(f'Value of header `{name}` must be a string, got {type(value).__name__}')
    if '\r' in value or '\n' in value:
        raise SigningInputError(f'Value of header `{name}` contains a line break')
    return _WHITESPACE.sub(' ', value.strip())


def canonicalize_headers(headers) -> Dict[str, str]:
    if not isinstance(headers, Mapping):
        raise SigningInputError('Headers must be a mapping')

    result: Dict[str, str] = {}
    for name, value in headers.items():
        if not isinstance(name, str):
            raise SigningInputError(f'Header names must be strings, got {name!r}')
        canonical_name = name.strip().lower()
        if not canonical_name or _INVALID_NAME.search(canonical_name):
            raise SigningInputError(f'Invalid header name `{name}`')

        canonical_value = _canonical_value(name, value)
        if canonical_name in result:
            result[canonical_name] = f'{result[canonical_name]},{canonical_value}'
        else:
            result[canonical_name] = canonical_value
    return result


def canonicalize_query(query: str) -> str:
    pairs = [
        f"{quote(key, safe='-_.~')}={quote(value, safe='-_.~')}"
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return '&'.join(sorted(pairs))


def canonicalize_request(method: str, path: str, headers: Dict[str, str], body: bytes,
                         config: SigningConfig = _default_config) -> str:
    """
    `headers` must already be canonical (see `canonicalize_headers`); all of them are signed.
    """
    path, _, query = path.partition('?')
    signed_headers = sorted(headers)

    return '\n'.join([
        method.upper(),
        path or '/',
        canonicalize_query(query),
        *(f'{name}:{headers[name]}' for name in signed_headers),
        '',
        ';'.join(signed_headers),
        _hash(config, body),
    ])


def string_to_sign(canonical_request: str, timestamp: datetime, credential_scope: str,
                   config: SigningConfig = _default_config) -> str:
    timestamp = _to_utc(timestamp)
    return '\n'.join([
        config.algorithm,
        timestamp.strftime(LONG_DATE_FORMAT),
        f'{timestamp.strftime(SHORT_DATE_FORMAT)}/{credential_scope}',
        _hash(config, canonical_request.encode('utf8')),
    ])


def signing_key(secret: str, timestamp: datetime, credential_scope: str,
                config: SigningConfig = _default_config) -> bytes:
    key = _hmac(config, f'{config.algo_prefix}{secret}'.encode('utf8'),
                _to_utc(timestamp).strftime(SHORT_DATE_FORMAT))
    for part in credential_scope.split('/'):
        key = _hmac(config, key, part)
    return key


def sign(credential: IntegrationConfig, method: str, path: str, headers, body, timestamp: datetime,
         config: SigningConfig = None) -> SignatureResult:
    """
    Signs a request with the given credential. Every header in `headers` is signed,
    along with the date header, which is always set from `timestamp`.

    Pure: the same inputs always give the same result.
    """
    config = config or _default_config
    timestamp = _to_utc(timestamp)
    long_date = timestamp.strftime(LONG_DATE_FORMAT)

    canonical_headers = canonicalize_headers(headers)
    canonical_headers[config.date_header_name.lower()] = long_date

    canonical_request = canonicalize_request(method, path, canonical_headers, _encode_body(body), config)
    to_sign = string_to_sign(canonical_request, timestamp, credential.credential_scope, config)
    key = signing_key(credential.secret, timestamp, credential.credential_scope, config)
    signature = hmac.new(key, to_sign.encode('utf8'), digestmod=config.hash_algo.lower()).hexdigest()

    signed_headers = tuple(sorted(canonical_headers))
    authorization = (
        f'{config.algorithm} '
        f'Credential={credential.key_id}/{timestamp.strftime(SHORT_DATE_FORMAT)}/{credential.credential_scope}, '
        f'SignedHeaders={";".join(signed_headers)}, '
        f'Signature={signature}'
    )
    return SignatureResult(
        date=long_date, authorization=authorization, signed_headers=signed_headers, signature=signature
    )
