"""
Finds the EWS endpoint of a mailbox from its email address, using the SOAP autodiscover service.

The autodiscover endpoint is looked for, in order, at https://autodiscover.<domain>, at https://<domain> and at the
host named in the _autodiscover._tcp.<domain> DNS SRV record. See
https://docs.microsoft.com/en-us/exchange/client-developer/exchange-web-services/autodiscover-for-exchange
"""
from collections import namedtuple
import logging
import random

import dns.exception
import dns.resolver

from ..configuration import Configuration
from ..errors import AutoDiscoverFailed, AutoDiscoverCircularRedirect, TransportError, UnauthorizedError
from ..protocol import Protocol, FailFast
from ..util import get_domain, CONNECTION_ERRORS
from .properties import UserSettingName, REDIRECT_ADDRESS, REDIRECT_URL
from .protocol import AutodiscoverProtocol
from .services import GetUserSettings

log = logging.getLogger(__name__)

SrvRecord = namedtuple('SrvRecord', ('priority', 'weight', 'port', 'srv'))

# Only records that point to a TLS port are useful
SSL_PORT = 443
AUTODISCOVER_SRV_PREFIX = '_autodiscover._tcp.'
AUTODISCOVER_PATH = '/autodiscover/autodiscover.svc'

# The settings needed to create a Protocol for the mailbox
DISCOVERY_SETTINGS = (
    UserSettingName.AUTODISCOVER_SMTP_ADDRESS,
    UserSettingName.EXTERNAL_EWS_URL,
    UserSettingName.INTERNAL_EWS_URL,
)


def select_srv_record(records, rng=None):
    """Selects an SRV record from 'records'. Records are ordered by priority and then weight. The priority and weight
    of the first record on port 443 decide which records qualify. Ties are broken with 'rng', a random.Random instance.

    Returns None if no record points to port 443.
    """
    rng = rng or random.Random()
    ordered = sorted(records, key=lambda r: (r.priority, r.weight))
    best = next((r for r in ordered if r.port == SSL_PORT), None)
    if best is None:
        log.debug('No SRV records on port %s among %s records', SSL_PORT, len(ordered))
        return None
    candidates = [
        r for r in ordered if r.port == SSL_PORT and r.priority == best.priority and r.weight == best.weight
    ]
    index = rng.randrange(len(candidates)) if len(candidates) > 1 else 0
    record = candidates[index]
    log.debug('Selected SRV record %s of %s candidates (%s records total): %s', index, len(candidates), len(ordered),
              record)
    return record


class AutodiscoverDnsClient:
    """Reads the autodiscover host of a domain from DNS"""

    def __init__(self, resolver=None, rng=None):
        if resolver is None:
            resolver = dns.resolver.Resolver()
            resolver.timeout = AutodiscoverProtocol.TIMEOUT
            resolver.lifetime = AutodiscoverProtocol.TIMEOUT
        self.resolver = resolver
        self.rng = rng or random.Random()

    def get_srv_records(self, hostname):
        log.debug('Attempting to get SRV records for %s', hostname)
        try:
            answers = self.resolver.resolve('%s.' % hostname, 'SRV')
        except dns.exception.DNSException as e:
            log.debug('DNS lookup failure for %s: %s', hostname, e)
            return []
        records = []
        for rdata in answers:
            record = SrvRecord(priority=rdata.priority, weight=rdata.weight, port=rdata.port,
                               srv=str(rdata.target).rstrip('.'))
            log.debug('Found SRV record %s', record)
            records.append(record)
        return records

    def find_autodiscover_host(self, domain):
        """Returns the target host of the best SRV record for the domain, or None"""
        record = select_srv_record(self.get_srv_records(AUTODISCOVER_SRV_PREFIX + domain), rng=self.rng)
        if record is None or not record.srv:
            log.debug('No appropriate SRV record was found for %s', domain)
            return None
        log.debug('DNS query for SRV record for domain %s found %s', domain, record.srv)
        return record.srv


class Autodiscovery:
    """Walks the candidate autodiscover endpoints for an email address until one of them knows the EWS endpoint.

    Email redirects start the search over with the new address. URL redirects replace the endpoint list.
    """
    # Keep each step short. A FaultTolerance policy could hang for a long time on an endpoint that doesn't exist.
    INITIAL_RETRY_POLICY = FailFast()
    MAX_REDIRECTS = 10

    def __init__(self, email, credentials=None, auth_type=None, retry_policy=None, dns_client=None):
        self.email = email
        self.credentials = credentials
        self.auth_type = auth_type  # The auth type of the resulting Protocol
        self.retry_policy = retry_policy  # The retry policy of the resulting Protocol
        self.dns_client = dns_client or AutodiscoverDnsClient()
        self._emails_visited = []
        self._redirect_count = 0

    def candidate_endpoints(self, domain):
        yield 'https://autodiscover.%s%s' % (domain, AUTODISCOVER_PATH)
        yield 'https://%s%s' % (domain, AUTODISCOVER_PATH)
        srv_host = self.dns_client.find_autodiscover_host(domain)
        if srv_host:
            yield 'https://%s%s' % (srv_host, AUTODISCOVER_PATH)

    def discover(self):
        """Returns a (primary_smtp_address, Protocol) tuple"""
        while True:
            if self.email.lower() in self._emails_visited:
                raise AutoDiscoverCircularRedirect('We were redirected to an email address we have already seen')
            self._emails_visited.append(self.email.lower())
            response = self._query_endpoints(self.candidate_endpoints(get_domain(self.email)))
            if response.error_code == REDIRECT_ADDRESS:
                log.debug('Got a redirect address: %s', response.redirect_target)
                self._count_redirect()
                self.email = response.redirect_target
                continue
            return self._build_response(response)

    def _count_redirect(self):
        self._redirect_count += 1
        if self._redirect_count > self.MAX_REDIRECTS:
            raise AutoDiscoverFailed('Maximum number of redirects reached')

    def _query_endpoints(self, endpoints):
        for url in endpoints:
            while True:
                try:
                    response = self._query(url)
                except (TransportError, UnauthorizedError) + CONNECTION_ERRORS as e:
                    log.debug('Autodiscover endpoint %s failed: %s', url, e)
                    break
                if response.error_code == REDIRECT_URL:
                    log.debug('Got a redirect URL: %s', response.redirect_target)
                    self._count_redirect()
                    url = response.redirect_target
                    continue
                if response.has_error and response.error_code != REDIRECT_ADDRESS:
                    log.debug('Autodiscover endpoint %s returned %s: %s', url, response.error_code,
                              response.error_message)
                    break
                return response
        raise AutoDiscoverFailed(
            'All autodiscover endpoints failed for email %r. If you think this is an error, consider doing an official '
            'test at https://testconnectivity.microsoft.com' % self.email)

    def _query(self, url):
        log.debug('Trying autodiscover endpoint %s for %s', url, self.email)
        protocol = AutodiscoverProtocol(config=Configuration(
            service_endpoint=url,
            credentials=self.credentials,
            auth_type=self.auth_type,
            retry_policy=self.INITIAL_RETRY_POLICY,
        ))
        try:
            responses = GetUserSettings(protocol=protocol).call(smtp_addresses=[self.email],
                                                                settings=DISCOVERY_SETTINGS)
        finally:
            protocol.close()
        if not len(responses):
            raise AutoDiscoverFailed('Autodiscover endpoint %s returned no user responses' % url)
        return responses[0]

    def _build_response(self, response):
        ews_url = response.settings.get(UserSettingName.EXTERNAL_EWS_URL) \
            or response.settings.get(UserSettingName.INTERNAL_EWS_URL)
        if not ews_url:
            raise AutoDiscoverFailed('No EWS URL in autodiscover response for %s' % self.email)
        primary_smtp_address = response.settings.get(UserSettingName.AUTODISCOVER_SMTP_ADDRESS) or self.email
        protocol = Protocol(config=Configuration(
            service_endpoint=ews_url,
            credentials=self.credentials,
            auth_type=self.auth_type,
            retry_policy=self.retry_policy,
        ))
        return primary_smtp_address, protocol


def discover(email, credentials=None, auth_type=None, retry_policy=None, dns_client=None):
    return Autodiscovery(
        email=email, credentials=credentials, auth_type=auth_type, retry_policy=retry_policy, dns_client=dns_client,
    ).discover()
