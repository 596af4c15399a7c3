"""
Shared helpers: XML namespaces, conversion between Python values and XML text, a forgiving XML parser, and the POST
loop that all requests to the server go through.
"""
from codecs import BOM_UTF8
import datetime
from decimal import Decimal
import io
import itertools
import logging
import re
import socket
from threading import get_ident
import time
from urllib.parse import urlparse

# Import _etree via defusedxml instead of directly from lxml.etree, to silence overly strict linters
from defusedxml.lxml import parse, tostring, GlobalParserTLS, RestrictedElement, _etree
import isodate
from oauthlib.oauth2 import TokenExpiredError
from pygments import highlight
from pygments.lexers.html import XmlLexer
from pygments.formatters.terminal import TerminalFormatter
import requests.exceptions

from .errors import TransportError, RateLimitError, RedirectError, RelativeRedirect, CASError, UnauthorizedError, \
    ErrorInvalidSchemaVersionForMailboxVersion, MalformedResponseError

log = logging.getLogger(__name__)


class ParseError(_etree.ParseError):
    """Raised for XML that even the forgiving parser gives up on"""
    pass


# Characters that are illegal in XML 1.0
_ILLEGAL_XML_CHARS_RE = re.compile('[\x00-\x08\x0b\x0c\x0e-\x1F\uD800-\uDFFF\uFFFE\uFFFF]')

SOAPNS = 'http://schemas.xmlsoap.org/soap/envelope/'
MNS = 'http://schemas.microsoft.com/exchange/services/2006/messages'
TNS = 'http://schemas.microsoft.com/exchange/services/2006/types'
ENS = 'http://schemas.microsoft.com/exchange/services/2006/errors'
ANS = 'http://schemas.microsoft.com/exchange/2010/Autodiscover'
WSA = 'http://www.w3.org/2005/08/addressing'
XSI = 'http://www.w3.org/2001/XMLSchema-instance'

# Prefixes used when building requests
ns_translation = {
    's': SOAPNS,
    't': TNS,
    'm': MNS,
    'a': ANS,
    'wsa': WSA,
    'xsi': XSI,
}
for prefix, uri in ns_translation.items():
    _etree.register_namespace(prefix, uri)


def is_iterable(value, generators_allowed=False):
    """True for list-like values. Strings and bytes never count. Generators only count with 'generators_allowed',
    because most callers need to iterate more than once.
    """
    if isinstance(value, (bytes, str)):
        return False
    if generators_allowed:
        return hasattr(value, '__iter__')
    return isinstance(value, (tuple, list, set))


def chunkify(iterable, chunksize):
    """Yields consecutive chunks of at most 'chunksize' elements. Sequences are sliced. Anything else is collected
    into lists.
    """
    if hasattr(iterable, '__getitem__'):
        for start in range(0, len(iterable), chunksize):
            yield iterable[start:start + chunksize]
        return
    it = iter(iterable)
    while True:
        chunk = list(itertools.islice(it, chunksize))
        if not chunk:
            return
        yield chunk


def xml_to_str(tree, encoding=None, xml_declaration=False):
    """Serializes 'tree' to str, or to bytes with an XML declaration when 'encoding' is set"""
    if encoding is None:
        if xml_declaration:
            raise ValueError("'xml_declaration' is not supported when 'encoding' is None")
        return tostring(tree, encoding=str, xml_declaration=False)
    return tostring(tree, encoding=encoding, xml_declaration=True)


def get_xml_attr(tree, name):
    # The text of the first 'name' child, with empty text as None
    elem = tree.find(name)
    if elem is None:
        return None
    return elem.text or None


def get_xml_attrs(tree, name):
    return [elem.text for elem in tree.findall(name) if elem.text is not None]


def _bool_from_text(text):
    return {'true': True, 'false': False}.get(text)


def _text_converters():
    from .ewsdatetime import EWSDateTime, EWSDate
    return {
        str: str,
        bool: _bool_from_text,
        int: int,
        Decimal: Decimal,
        datetime.timedelta: isodate.parse_duration,
        EWSDateTime: EWSDateTime.from_string,
        EWSDate: EWSDate.from_string,
    }


def value_to_xml_text(value):
    from .ewsdatetime import EWSTimeZone, EWSDateTime, EWSDate
    # bool is an int subclass, so the order matters
    if isinstance(value, str):
        return _ILLEGAL_XML_CHARS_RE.sub('?', value)
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (EWSDateTime, EWSDate)):
        return value.ewsformat()
    if isinstance(value, EWSTimeZone):
        return value.ms_id
    if isinstance(value, datetime.timedelta):
        return isodate.duration_isoformat(value)
    if isinstance(value, datetime.time):
        return value.isoformat()
    if isinstance(value, (int, Decimal)):
        return str(value)
    raise NotImplementedError('Unsupported type: %s (%s)' % (type(value), value))


def xml_text_to_value(value, value_type):
    return _text_converters()[value_type](value)


def _clark_name(name):
    # 't:Foo' -> '{http://...}Foo'
    if ':' not in name:
        return name
    prefix, local_name = name.split(':')
    return '{%s}%s' % (ns_translation[prefix], local_name)


def create_element(name, attrs=None, nsmap=None):
    elem = RestrictedElement(nsmap=nsmap)
    # Attributes are set in the given order, to get deterministic output
    for key, val in (attrs or {}).items():
        elem.set(_clark_name(key), val)
    elem.tag = _clark_name(name)
    return elem


class ForgivingParser(GlobalParserTLS):
    parser_config = {
        'resolve_entities': False,
        # Exchange servers sometimes return broken XML
        'recover': True,
        # MIME content and large item bodies
        'huge_tree': True,
    }


_forgiving_parser = ForgivingParser()


class BytesGeneratorIO(io.RawIOBase):
    """A read-only file object over a generator of byte strings, e.g. response.iter_content()"""
    def __init__(self, bytes_generator):
        super().__init__()
        self._bytes_generator = bytes_generator
        self._buffer = bytearray()
        self._position = 0

    def readable(self):
        return not self.closed

    def tell(self):
        return self._position

    def read(self, size=-1):
        if self.closed:
            return b''
        want_all = size is None or size < 0
        # The generator yields chunks of any length. Keep what the caller did not ask for.
        while want_all or len(self._buffer) < size:
            chunk = next(self._bytes_generator, None)
            if chunk is None:
                break
            self._buffer.extend(chunk)
        if want_all:
            res, self._buffer = self._buffer, bytearray()
        else:
            res, self._buffer = self._buffer[:size], self._buffer[size:]
        self._position += len(res)
        return bytes(res)

    def close(self):
        if not self.closed:
            self._bytes_generator.close()
        super().close()


class DocumentYielder:
    """Splits a stream of bytes into the XML documents it contains. The stream is a byte-at-a-time iterator, and a
    document starts and ends with a 'document_tag' element in any namespace.
    """
    XML_DECLARATION = b"<?xml version='1.0' encoding='utf-8'?>\n"

    def __init__(self, content_iterator, document_tag='Envelope'):
        self._iterator = content_iterator
        self._document_tag = document_tag.encode()

    def _read_tag(self):
        # Everything up to and including the next '>'. A '>' inside an attribute value ends the tag early, but only
        # the tag name matters.
        parts = [b'<']
        for c in self._iterator:
            parts.append(c)
            if c == b'>':
                break
        return b''.join(parts)

    @staticmethod
    def _tag_name(tag):
        # b'</ns:Name attr="x">' -> b'Name'
        return tag.strip(b'<>/').split(b' ')[0].split(b':')[-1]

    def __iter__(self):
        buffer = None
        for c in self._iterator:
            if c != b'<':
                if buffer is not None:
                    buffer.append(c)
                continue
            tag = self._read_tag()
            is_boundary = self._tag_name(tag) == self._document_tag
            if buffer is None:
                if is_boundary:
                    buffer = [tag]
                continue
            buffer.append(tag)
            if is_boundary:
                yield self.XML_DECLARATION + b''.join(buffer)
                buffer = None


def _offending_text(stream, lineno, offset):
    stream.seek(0)
    line = stream.read().splitlines()[lineno - 1]
    return line[max(0, offset - 20):offset + 20]


def to_xml(bytes_content):
    """Parses bytes, or a generator of bytes, to an element tree. Exchange servers sometimes return invalid XML, so the
    parser tries hard to recover.
    """
    stream = io.BytesIO(bytes_content) if isinstance(bytes_content, bytes) else BytesGeneratorIO(bytes_content)
    try:
        res = parse(stream, parser=_forgiving_parser.getDefaultParser())
    except AssertionError as e:
        raise ParseError(e.args[0], '<not from file>', -1, 0)
    except _etree.ParseError as e:
        if hasattr(e, 'position'):
            e.lineno, e.offset = e.position
        msg = str(e)
        if e.lineno:
            try:
                msg = '%s\nOffending text: [...]%s[...]' % (msg, _offending_text(stream, e.lineno, e.offset))
            except (IndexError, io.UnsupportedOperation):
                pass
        raise ParseError(msg, '<not from file>', e.lineno, e.offset)
    except TypeError:
        try:
            stream.seek(0)
        except (IndexError, io.UnsupportedOperation):
            pass
        raise ParseError('This is not XML: %r' % stream.read(), '<not from file>', -1, 0)
    if res.getroot() is None:
        try:
            stream.seek(0)
            msg = 'No root element found: %r' % stream.read()
        except (IndexError, io.UnsupportedOperation):
            msg = 'No root element found'
        raise ParseError(msg, '<not from file>', -1, 0)
    return res


def is_xml(text):
    """Cheap check for an XML document, with or without a UTF-8 byte order mark"""
    if text.startswith(BOM_UTF8):
        text = text[len(BOM_UTF8):]
    return text[:5] == b'<?xml'


class PrettyXmlHandler(logging.StreamHandler):
    """A log handler that pretty-prints and colors XML in DEBUG messages when writing to a terminal. XML is only
    recognized in dict-style log arguments with keys starting with 'xml_' and bytes values.
    """
    @staticmethod
    def parse_bytes(xml_bytes):
        return parse(io.BytesIO(xml_bytes))

    @classmethod
    def prettify_xml(cls, xml_bytes):
        pretty = tostring(cls.parse_bytes(xml_bytes), xml_declaration=True, encoding='utf-8', pretty_print=True)
        return pretty.replace(b'\t', b'    ').replace(b' xmlns:', b'\n    xmlns:')

    @staticmethod
    def highlight_xml(xml_str):
        return highlight(xml_str, XmlLexer(), TerminalFormatter()).rstrip()

    def _xml_args(self, record):
        if record.levelno != logging.DEBUG or not self.is_tty() or not isinstance(record.args, dict):
            return
        for key, value in record.args.items():
            if key.startswith('xml_') and isinstance(value, bytes) and is_xml(value):
                yield key, value

    def emit(self, record):
        for key, value in list(self._xml_args(record)):
            try:
                record.args[key] = self.highlight_xml(self.prettify_xml(value))
            except Exception as e:
                # Logging must never crash the program
                print('XML highlighting failed: %s' % e)
        return super().emit(record)

    def is_tty(self):
        try:
            return self.stream.isatty()
        except AttributeError:
            return False


class DummyRequest:
    def __init__(self, headers=None):
        self.headers = headers or {}


class DummyResponse:
    """Stands in for a requests.Response when there is no real one, e.g. after a connection error"""
    def __init__(self, url=None, headers=None, request_headers=None, content=b'', status_code=503, streaming=False,
                 history=None):
        self.status_code = status_code
        self.url = url
        self.headers = headers or {}
        self.content = iter((bytes([b]) for b in content)) if streaming else content
        self.text = content.decode('utf-8', errors='ignore')
        self.request = DummyRequest(headers=request_headers)
        self.reason = ''
        self.history = history

    def iter_content(self):
        return self.content

    def close(self):
        pass


def get_domain(email):
    try:
        return email.split('@')[1].lower()
    except (IndexError, AttributeError):
        raise ValueError("'%s' is not a valid email" % email)


def split_url(url):
    """Returns (is_https, netloc, path). netloc is empty for relative URLs."""
    parsed_url = urlparse(url)
    return parsed_url.scheme == 'https', parsed_url.netloc.lower(), parsed_url.path


def get_redirect_url(response, allow_relative=True, require_relative=False):
    """The absolute URL that 'response' redirects to. A redirect to the same scheme and server is a relative redirect:
    RelativeRedirect is raised when one is found and 'allow_relative' is False, or when none is found and
    'require_relative' is True.
    """
    location = response.headers.get('location', None)
    if not location:
        raise TransportError('HTTP redirect but no location header')
    has_ssl, server, path = split_url(location)
    # The URL we originally asked for, before any earlier redirects
    request_url = response.history[0] if response.history else response.url
    request_has_ssl, request_server, _ = split_url(request_url)
    response_has_ssl, response_server, response_path = split_url(response.url)
    if not server:
        has_ssl, server = response_has_ssl, response_server
    if not path.startswith('/'):
        path = (response_path or '/') + path
    redirect_url = '%s://%s%s' % ('https' if has_ssl else 'http', server, path)
    if redirect_url == request_url:
        raise TransportError('Redirect to same location: %s' % redirect_url)
    is_relative = request_has_ssl == response_has_ssl and request_server == server
    if is_relative and not allow_relative:
        raise RelativeRedirect(redirect_url)
    if require_relative and not is_relative:
        raise RelativeRedirect(redirect_url)
    return redirect_url


# Max number of redirects followed by a single POST
MAX_REDIRECTS = 5
# Seconds to wait before the first retry. Doubled on each retry.
RETRY_WAIT = 10

# Errors that we treat as a dropped connection
CONNECTION_ERRORS = (requests.exceptions.ChunkedEncodingError, requests.exceptions.ConnectionError,
                     requests.exceptions.Timeout, socket.timeout, ConnectionResetError)

# Errors that are not worth retrying
TLS_ERRORS = (requests.exceptions.SSLError,)

# Returned instead of a 500 or 503 by some servers during outages
GENERIC_ERROR_PAGE = '/ews/genericerrorpage.htm?aspxerrorpath=/ews/exchange.asmx'

REQUEST_LOG_TEMPLATE = '''\
Retry: %(retry)s
Waited: %(wait)s
Timeout: %(timeout)s
Session: %(session_id)s
Thread: %(thread_id)s
Auth type: %(auth)s
URL: %(url)s
HTTP adapter: %(adapter)s
Allow redirects: %(allow_redirects)s
Streaming: %(stream)s
Response time: %(response_time)s
Status code: %(status_code)s
Request headers: %(request_headers)s
Response headers: %(response_headers)s
Request data: %(xml_request)s
Response data: %(xml_response)s
'''


class RateLimitedPost:
    """One POST request, retried according to the retry policy of the protocol.

    FailFast gives up on anything but HTTP 200. FaultTolerance retries on errors that are likely to be temporary, e.g.
    throttling, maintenance or a closed connection, doubling the wait between attempts until 'max_wait' seconds have
    passed in total. Redirects are followed with a new POST, never a GET.

    The session that was used last is returned along with the response. If an exception is raised, the session is
    retired instead.
    """
    def __init__(self, protocol, session, url, headers, data, allow_redirects=False, stream=False, timeout=None):
        self.protocol = protocol
        self.session = session
        self.url = url
        self.headers = headers
        self.data = data
        self.allow_redirects = allow_redirects
        self.stream = stream
        self.timeout = timeout or protocol.TIMEOUT
        self.thread_id = get_ident()
        self.retry = 0
        self.wait = RETRY_WAIT
        self.redirects = 0
        self.log_vals = dict(
            retry=0, wait=self.wait, timeout=self.timeout, session_id=session.session_id, thread_id=self.thread_id,
            auth=session.auth, url=url, adapter=session.get_adapter(url), allow_redirects=allow_redirects,
            stream=stream, response_time=None, status_code=None, request_headers=headers, response_headers=None,
            xml_request=data, xml_response=None,
        )

    @property
    def retry_policy(self):
        return self.protocol.retry_policy

    def _post_once(self):
        d_start = time.monotonic()
        # Something to log if the request fails
        r = DummyResponse(url=self.url, request_headers=self.headers)
        try:
            r = self.session.post(url=self.url, headers=self.headers, data=self.data, allow_redirects=False,
                                  timeout=self.timeout, stream=self.stream)
        except TLS_ERRORS as e:
            # TLS errors are most likely persistent
            raise TransportError(str(e))
        except CONNECTION_ERRORS as e:
            log.debug("Session %s thread %s: connection error POST'ing to %s", self.session.session_id,
                      self.thread_id, self.url)
            r = DummyResponse(url=self.url, headers={'TimeoutException': e}, request_headers=self.headers)
        except TokenExpiredError:
            log.debug('Session %s thread %s: OAuth token expired; refreshing', self.session.session_id,
                      self.thread_id)
            r = DummyResponse(url=self.url, headers={}, request_headers=self.headers, status_code=401)
            self.session = self.protocol.refresh_credentials(self.session)
            return None
        finally:
            self.log_vals.update(
                retry=self.retry, wait=self.wait, session_id=self.session.session_id, url=str(r.url),
                response_time=time.monotonic() - d_start, status_code=r.status_code,
                request_headers=r.request.headers, response_headers=r.headers,
                xml_response='[STREAMING]' if self.stream else r.content,
            )
        log.debug(REQUEST_LOG_TEMPLATE, self.log_vals)
        return r

    def _loop(self, t_start):
        while True:
            _back_off_if_needed(self.retry_policy.back_off_until)
            log.debug("Session %s thread %s: retry %s timeout %s POST'ing to %s after %ss wait",
                      self.session.session_id, self.thread_id, self.retry, self.timeout, self.url, self.wait)
            r = self._post_once()
            if r is None:
                # Credentials were refreshed. Try again right away.
                continue
            if _may_retry_on_error(response=r, retry_policy=self.retry_policy, wait=time.monotonic() - t_start):
                log.info('Session %s thread %s: Connection error on URL %s (code %s). Cool down %s secs',
                         self.session.session_id, self.thread_id, r.url, r.status_code, self.wait)
                self.retry_policy.back_off(self.wait)
                self.retry += 1
                self.wait *= 2
                self.session = self.protocol.renew_session(self.session)
                continue
            if r.status_code in (301, 302):
                if self.stream:
                    r.close()
                self.url = self._redirect_url(r)
                continue
            return r

    def _redirect_url(self, response):
        # Redirects are followed here, because 'requests' would follow them with a GET
        try:
            redirect_url = get_redirect_url(response=response, allow_relative=False)
        except RelativeRedirect as e:
            log.debug("'allow_redirects' only supports relative redirects (%s -> %s)", response.url, e.value)
            raise RedirectError(url=e.value)
        if not self.allow_redirects:
            raise TransportError(
                'Redirect not allowed but we were redirected (%s -> %s)' % (response.url, redirect_url)
            )
        log.debug('HTTP redirected to %s', redirect_url)
        self.redirects += 1
        if self.redirects > MAX_REDIRECTS:
            raise TransportError('Max redirect count exceeded')
        return redirect_url

    def run(self):
        try:
            r = self._loop(t_start=time.monotonic())
        except (RateLimitError, RedirectError) as e:
            log.warning(e.value)
            self.protocol.retire_session(self.session)
            raise
        except Exception as e:
            # Add full context for higher layers
            log.error('%s: %s\n%s', e.__class__.__name__, str(e), REQUEST_LOG_TEMPLATE % self.log_vals)
            self.protocol.retire_session(self.session)
            raise
        if r.status_code == 500 and r.content and is_xml(r.content):
            # Some servers send a valid SOAP response with HTTP 500
            log.debug('Got status code %s but trying to parse content anyway', r.status_code)
        elif r.status_code != 200:
            self.protocol.retire_session(self.session)
            try:
                _raise_response_errors(r, self.protocol, REQUEST_LOG_TEMPLATE % self.log_vals)
            finally:
                if self.stream:
                    r.close()
        log.debug('Session %s thread %s: Useful response from %s', self.session.session_id, self.thread_id,
                  self.url)
        return r, self.session


def post_ratelimited(protocol, session, url, headers, data, allow_redirects=False, stream=False, timeout=None):
    """POSTs 'data' to 'url' and returns (response, session). 'timeout' overrides the protocol timeout, e.g. for
    streaming requests that must outlive the default timeout.
    """
    return RateLimitedPost(protocol=protocol, session=session, url=url, headers=headers, data=data,
                           allow_redirects=allow_redirects, stream=stream, timeout=timeout).run()


def _back_off_if_needed(back_off_until):
    if not back_off_until:
        return False
    sleep_secs = (back_off_until - datetime.datetime.now()).total_seconds()
    if sleep_secs <= 0:
        # Expired in the meantime
        return False
    log.warning('Server requested back off until %s. Sleeping %s seconds', back_off_until, sleep_secs)
    time.sleep(sleep_secs)
    return True


def _may_retry_on_error(response, retry_policy, wait):
    """Whether a failed request is worth retrying. Raises RateLimitError when we have waited too long in total."""
    status_code = response.status_code
    if status_code not in (301, 302, 401, 500, 503):
        log.debug('No retry: wrong status code %s', status_code)
        return False
    if retry_policy.fail_fast:
        log.debug('No retry: fail-fast policy')
        return False
    if wait > retry_policy.max_wait:
        raise RateLimitError('Max timeout reached', url=response.url, status_code=status_code, total_wait=wait)
    if status_code in (401, 503):
        # Servers also answer 401 when they want us to throttle
        return True
    if response.headers.get('connection') == 'close':
        return True
    if status_code == 302 and response.headers.get('location', '').lower() == GENERIC_ERROR_PAGE:
        return True
    # Seen under heavy load
    return status_code == 500 and b"Server Error in '/EWS' Application" in response.content


def _raise_response_errors(response, protocol, context):
    cas_error = response.headers.get('X-CasErrorCode')
    if cas_error:
        if cas_error.startswith('CAS error:'):
            cas_error = cas_error.split(':', 1)[1].strip()
        raise CASError(cas_error=cas_error, response=response)
    if response.status_code == 500 and (b'The specified server version is invalid' in response.content or
                                        b'ErrorInvalidSchemaVersionForMailboxVersion' in response.content):
        raise ErrorInvalidSchemaVersionForMailboxVersion('Invalid server version')
    if b'The referenced account is currently locked out' in response.content:
        raise TransportError('The service account is currently locked out')
    if response.status_code == 401 and protocol.retry_policy.fail_fast:
        raise UnauthorizedError('Wrong username or password for %s' % response.url)
    if 'TimeoutException' in response.headers:
        raise response.headers['TimeoutException']
    if response.status_code == 200 and not response.content:
        raise MalformedResponseError('Empty response from %s' % response.url)
    raise TransportError('Unknown failure\n' + context)
