"""
The boundary between services and HTTP: the SOAP envelope, the auth types we can offer to a server and the test request
finds out which one an EWS endpoint wants.
"""
import logging
import re
import time

import requests.auth
import requests_ntlm
import requests_oauthlib

from .errors import UnauthorizedError, TransportError
from .util import ns_translation, _may_retry_on_error, _back_off_if_needed, DummyResponse, CONNECTION_ERRORS
from .xml_rw import EwsXmlWriter

log = logging.getLogger(__name__)

# Authentication method enums
NOAUTH = 'no authentication'
NTLM = 'NTLM'
BASIC = 'basic'
DIGEST = 'digest'
GSSAPI = 'gssapi'
SSPI = 'sspi'
OAUTH2 = 'OAuth 2.0'
CBA = 'CBA'  # Certificate Based Authentication

AUTH_TYPE_MAP = {
    NTLM: requests_ntlm.HttpNtlmAuth,
    BASIC: requests.auth.HTTPBasicAuth,
    DIGEST: requests.auth.HTTPDigestAuth,
    OAUTH2: requests_oauthlib.OAuth2,
    CBA: None,
    NOAUTH: None,
}
try:
    import requests_kerberos
    AUTH_TYPE_MAP[GSSAPI] = requests_kerberos.HTTPKerberosAuth
except ImportError:
    # Kerberos auth is optional
    pass
try:
    import requests_negotiate_sspi
    AUTH_TYPE_MAP[SSPI] = requests_negotiate_sspi.HttpNegotiateAuth
except ImportError:
    # SSPI auth is optional
    pass

# WWW-Authenticate schemes we can answer, most secure first. See
# http://docs.oracle.com/javase/7/docs/technotes/guides/net/http-auth.html
OFFERED_SCHEME_PREFERENCE = (('digest', DIGEST), ('ntlm', NTLM), ('basic', BASIC))

# The ways to identify an impersonated user in ConnectingSID, in order of preference. See
# https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/connectingsid
CONNECTING_SID_TAGS = (
    ('sid', 't:SID'),
    ('upn', 't:PrincipalName'),
    ('smtp_address', 't:SmtpAddress'),
    ('primary_smtp_address', 't:PrimarySmtpAddress'),
)

DEFAULT_ENCODING = 'utf-8'
DEFAULT_HEADERS = {'Content-Type': 'text/xml; charset=%s' % DEFAULT_ENCODING, 'Accept-Encoding': 'gzip, deflate'}

_QUOTED_RE = re.compile(r'"[^"]*"')
_SEPARATOR_RE = re.compile(r'[\s,]+')


def extra_headers(account):
    """Extra HTTP headers for requests on behalf of 'account'"""
    if account is None or not account.primary_smtp_address:
        return None
    # Routes the request to the mailbox server of the account. See
    # https://blogs.msdn.microsoft.com/webdav_101/2015/05/11/best-practices-ews-authentication-and-access-issues/
    return {'X-AnchorMailbox': account.primary_smtp_address}


def wrap(content, api_version, account_to_impersonate=None, timezone=None):
    """Puts 'content' in a SOAP envelope. The header holds the API version, and optionally the impersonated user and
    the time zone that the server should use for date values without a time zone.

    MSDN:
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/requestserverversion
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/exchangeimpersonation
    https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/timezonecontext
    """
    writer = EwsXmlWriter()
    writer.start('s:Envelope', nsmap=ns_translation)
    writer.start('s:Header')
    writer.element('t:RequestServerVersion', attrs=dict(Version=api_version))
    if account_to_impersonate:
        writer.start('t:ExchangeImpersonation')
        writer.start('t:ConnectingSID')
        for attr, tag in CONNECTING_SID_TAGS:
            value = getattr(account_to_impersonate, attr)
            if value:
                writer.element(tag, value)
                break
        writer.end()
        writer.end()
    if timezone:
        writer.start('t:TimeZoneContext')
        writer.element('t:TimeZoneDefinition', attrs=dict(Id=timezone.ms_id))
        writer.end()
    writer.end()
    writer.start('s:Body')
    writer.append(content)
    writer.end()
    writer.end()
    return writer.to_bytes(encoding=DEFAULT_ENCODING)


def get_auth_instance(auth_type, **kwargs):
    """Returns an auth object for a 'requests' session, or None for auth types that need none"""
    model = AUTH_TYPE_MAP[auth_type]
    if model is None:
        return None
    if auth_type == GSSAPI:
        # Kerberos uses a ticket available outside this library
        return model()
    return model(**kwargs)


def offered_auth_schemes(header_value):
    """The lowercase scheme names in a WWW-Authenticate header. 'requests' joins repeated headers with commas.
    Scheme parameters like realm="x, y" are skipped.
    """
    tokens = _SEPARATOR_RE.split(_QUOTED_RE.sub('""', header_value.lower()))
    return [t for t in tokens if t and '=' not in t]


def get_auth_method_from_response(response):
    """The most secure auth type offered in a response to an unauthenticated request. Redirects are for the caller."""
    log.debug('Request headers: %s', response.request.headers)
    log.debug('Response headers: %s', response.headers)
    if response.status_code == 200:
        return NOAUTH
    schemes = []
    for key, val in response.headers.items():
        if key.lower() == 'www-authenticate':
            schemes.extend(offered_auth_schemes(val))
    for scheme, auth_type in OFFERED_SCHEME_PREFERENCE:
        if scheme in schemes:
            return auth_type
    raise UnauthorizedError('No compatible auth type was reported by server')


def _post_auth_check(service_endpoint, data, retry_policy, t_start):
    from .protocol import BaseProtocol
    wait = 10  # seconds
    while True:
        _back_off_if_needed(retry_policy.back_off_until)
        with BaseProtocol.raw_session() as s:
            try:
                r = s.post(url=service_endpoint, headers=DEFAULT_HEADERS.copy(), data=data, allow_redirects=False,
                           timeout=BaseProtocol.TIMEOUT)
                r.close()
                return r
            except CONNECTION_ERRORS as e:
                r = DummyResponse(url=service_endpoint, headers={}, request_headers=DEFAULT_HEADERS)
                if not _may_retry_on_error(response=r, retry_policy=retry_policy, wait=time.monotonic() - t_start):
                    raise TransportError(str(e)) from e
                log.info('Connection error on URL %s (error: %s). Cool down %s secs', service_endpoint, e, wait)
                retry_policy.back_off(wait)


def get_service_authtype(service_endpoint, retry_policy, api_versions):
    """Finds the auth type of an EWS endpoint by posting a small, valid request and reading the response headers.
    Only POST is used, because some servers redirect everything else to OWA.

    Some servers only answer requests with an API version they accept, so each version in 'api_versions' is tried in
    turn. Returns (auth_type, api_version).
    """
    t_start = time.monotonic()
    for api_version in api_versions:
        log.debug('Trying to get service auth type for %s with API version %s', service_endpoint, api_version)
        r = _post_auth_check(service_endpoint, dummy_xml(api_version=api_version), retry_policy, t_start)
        if r.status_code not in (200, 401):
            log.debug('Unexpected response: %s %s', r.status_code, r.reason)
            continue
        try:
            auth_type = get_auth_method_from_response(response=r)
        except UnauthorizedError:
            continue
        log.debug('Auth type is %s', auth_type)
        return auth_type, api_version
    raise TransportError('Failed to get auth type from service')


def dummy_xml(api_version):
    # A minimal, valid EWS request: fetch the id of the inbox
    from .properties import DistinguishedFolderId
    from .service_object import PropertySet
    writer = EwsXmlWriter()
    writer.start('m:GetFolder')
    PropertySet.ID_ONLY.write_to_xml(writer, shape_element='m:FolderShape')
    writer.start('m:FolderIds')
    DistinguishedFolderId('inbox').write_to_xml(writer)
    writer.end()
    writer.end()
    return wrap(content=writer.root, api_version=api_version)
