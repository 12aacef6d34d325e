import hashlib
import re
import secrets
from urllib.parse import urlsplit

from .logger import ColorLogger
from .models import Challenge

NONCE_COUNT = "00000001"

_PARAM_RE = re.compile(r'(\w+)=(?:"([^"]*)"|([^\s,]*))')


def is_digest(header):
    return bool(header) and "digest" in header.lower()


def parse_challenge(header):
    """
    Parse a ``WWW-Authenticate: Digest ...`` header value.

    Returns None when the header is not a Digest challenge or lacks
    realm/nonce. Values may be quoted or bare; a qop list such as
    ``"auth,auth-int"`` resolves to ``auth``.
    """
    if not is_digest(header):
        return None

    start = header.lower().index("digest") + len("digest")
    params = {}
    for key, quoted, bare in _PARAM_RE.findall(header[start:]):
        params[key.lower()] = quoted or bare

    if not params.get("realm") or not params.get("nonce"):
        return None

    return Challenge(
        realm=params["realm"],
        nonce=params["nonce"],
        qop=_select_qop(params.get("qop")),
        opaque=params.get("opaque") or None,
        algorithm=params.get("algorithm") or "MD5",
    )


def _select_qop(value):
    if not value:
        return None
    options = [opt.strip() for opt in value.split(",") if opt.strip()]
    if "auth" in options:
        return "auth"
    return options[0] if options else None


def request_uri(url):
    """Path plus query string, as it goes on the request line."""
    parsed = urlsplit(url)
    return (parsed.path or "/") + ("?" + parsed.query if parsed.query else "")


def md5_hex(data):
    return hashlib.md5(data.encode()).hexdigest()


def default_cnonce():
    return secrets.token_hex(16)


class DigestSigner:
    """
    RFC 2617 Digest (MD5) signer for Dahua devices.

    ``cnonce_factory`` is a zero-argument callable; pass a fixed one to get
    reproducible headers.
    """

    def __init__(self, cnonce_factory=None):
        self.cnonce_factory = cnonce_factory or default_cnonce
        self.logger = ColorLogger(name="DigestSigner", show_time=False)

    def response_hash(self, credentials, challenge, method, uri, cnonce=None):
        ha1 = md5_hex(f"{credentials.username}:{challenge.realm}:{credentials.password}")
        ha2 = md5_hex(f"{method}:{uri}")

        if challenge.qop:
            return md5_hex(
                f"{ha1}:{challenge.nonce}:{NONCE_COUNT}:{cnonce}:{challenge.qop}:{ha2}"
            )
        return md5_hex(f"{ha1}:{challenge.nonce}:{ha2}")

    def sign(self, credentials, challenge, method, uri):
        """Build the Authorization header value for one request."""
        if challenge.algorithm.upper() != "MD5":
            self.logger.warning(
                f"Challenge asks for algorithm {challenge.algorithm}; signing with MD5"
            )
        cnonce = self.cnonce_factory() if challenge.qop else None
        response = self.response_hash(credentials, challenge, method, uri, cnonce)

        header = (
            f'Digest username="{credentials.username}", '
            f'realm="{challenge.realm}", '
            f'nonce="{challenge.nonce}", '
            f'uri="{uri}", '
            f'response="{response}"'
        )
        if challenge.opaque:
            header += f', opaque="{challenge.opaque}"'
        if challenge.qop:
            header += f', qop={challenge.qop}, nc={NONCE_COUNT}, cnonce="{cnonce}"'

        self.logger.debug(f"Signed {method} {uri} for realm '{challenge.realm}'")
        return header
