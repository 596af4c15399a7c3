import logging

from ..errors import TransportError
from ..protocol import BaseProtocol
from ..transport import get_auth_method_from_response
from ..util import CONNECTION_ERRORS

log = logging.getLogger(__name__)


class AutodiscoverProtocol(BaseProtocol):
    """The protocol for a SOAP autodiscover endpoint. Autodiscover endpoints are short-lived, so they are not cached"""
    TIMEOUT = 10  # Seconds
    SESSION_POOLSIZE = 1

    def get_auth_type(self):
        # An empty POST is enough to get the WWW-Authenticate header from the server
        with self.raw_session() as s:
            try:
                r = s.post(url=self.service_endpoint, data=b'', allow_redirects=False, timeout=self.TIMEOUT)
            except CONNECTION_ERRORS as e:
                raise TransportError(str(e)) from e
            r.close()
        return get_auth_method_from_response(response=r)

    def __str__(self):
        return '''\
Autodiscover endpoint: %s
Auth type: %s''' % (self.service_endpoint, self.auth_type)
