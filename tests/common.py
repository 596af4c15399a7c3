from collections import namedtuple
import time
import unittest
import unittest.util

import requests_mock

from exchangews.account import Account
from exchangews.configuration import Configuration
from exchangews.credentials import DELEGATE
from exchangews.ewsdatetime import UTC
from exchangews.protocol import close_connections
from exchangews.transport import NOAUTH
from exchangews.version import Build, Version

EWS_URL = 'https://example.com/EWS/Exchange.asmx'
LEGACY_EWS_URL = 'https://legacy.example.com/EWS/Exchange.asmx'

SOAP_TEMPLATE = '''\
<?xml version="1.0" encoding="utf-8"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/">
  <s:Header>
    <h:ServerVersionInfo xmlns:h="http://schemas.microsoft.com/exchange/services/2006/types"
        MajorVersion="15" MinorVersion="1" MajorBuildNumber="2" MinorBuildNumber="3" Version="Exchange2016"/>
  </s:Header>
  <s:Body xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns:xsd="http://www.w3.org/2001/XMLSchema">
    %s
  </s:Body>
</s:Envelope>'''

RESPONSE_TEMPLATE = '''\
<m:%(service)sResponse xmlns:m="http://schemas.microsoft.com/exchange/services/2006/messages"
    xmlns:t="http://schemas.microsoft.com/exchange/services/2006/types">
  <m:ResponseMessages>
    %(messages)s
  </m:ResponseMessages>
</m:%(service)sResponse>'''

SUCCESS_MESSAGE = '''\
<m:%(service)sResponseMessage ResponseClass="Success">
  <m:ResponseCode>NoError</m:ResponseCode>
  %(content)s
</m:%(service)sResponseMessage>'''

ERROR_MESSAGE = '''\
<m:%(service)sResponseMessage ResponseClass="Error">
  <m:MessageText>%(text)s</m:MessageText>
  <m:ResponseCode>%(code)s</m:ResponseCode>
  <m:DescriptiveLinkKey>0</m:DescriptiveLinkKey>
</m:%(service)sResponseMessage>'''


def soap_envelope(body):
    return (SOAP_TEMPLATE % body).encode('utf-8')


def success_message(service, content=''):
    return SUCCESS_MESSAGE % dict(service=service, content=content)


def error_message(service, code, text='Something went wrong'):
    return ERROR_MESSAGE % dict(service=service, code=code, text=text)


def service_response(service, *messages):
    """The bytes of a full SOAP response for 'service' containing the given response messages"""
    return soap_envelope(RESPONSE_TEMPLATE % dict(service=service, messages='\n'.join(messages)))


def soap_fault(response_code, message='A fault occurred', extra=''):
    return soap_envelope('''\
<s:Fault>
  <faultcode xmlns:a="http://schemas.microsoft.com/exchange/services/2006/types">a:%(code)s</faultcode>
  <faultstring xml:lang="en-US">%(message)s</faultstring>
  <detail>
    <e:ResponseCode xmlns:e="http://schemas.microsoft.com/exchange/services/2006/errors">%(code)s</e:ResponseCode>
    <e:Message xmlns:e="http://schemas.microsoft.com/exchange/services/2006/errors">%(message)s</e:Message>
    %(extra)s
  </detail>
</s:Fault>''' % dict(code=response_code, message=message, extra=extra))


def get_mock_account(version=None, service_endpoint=EWS_URL):
    """An account on a fake server that needs no authentication. Requests must be mocked with requests_mock.

    Protocols are cached per endpoint, so an account on another server version needs its own 'service_endpoint'.
    """
    config = Configuration(
        service_endpoint=service_endpoint,
        auth_type=NOAUTH,
        version=version or Version(build=Build(15, 1, 2, 3)),
    )
    return Account(primary_smtp_address='john@example.com', access_type=DELEGATE, config=config, locale='en_US',
                   default_timezone=UTC)


class TimedTestCase(unittest.TestCase):
    SLOW_TEST_DURATION = 5  # Log tests that are slower than this value (in seconds)

    def setUp(self):
        self.maxDiff = None
        self.t1 = time.monotonic()

    def tearDown(self):
        t2 = time.monotonic() - self.t1
        if t2 > self.SLOW_TEST_DURATION:
            print("{:07.3f} : {}".format(t2, self.id()))


class MockedEWSTest(TimedTestCase):
    """Runs each test against a fake EWS endpoint. 'self.m' is the active requests_mock Mocker."""

    def setUp(self):
        super().setUp()
        self.m = requests_mock.Mocker()
        self.m.start()
        self.addCleanup(self.m.stop)
        self.account = get_mock_account()
        self.addCleanup(close_connections)

    def mock_response(self, content, status_code=200):
        self.m.post(EWS_URL, content=content, status_code=status_code)

    def mock_responses(self, *contents):
        self.m.post(EWS_URL, [dict(content=c, status_code=200) for c in contents])

    def request_xml(self, index=-1):
        """The body of a sent request as an lxml tree"""
        from exchangews.util import to_xml
        return to_xml(self.m.request_history[index].body).getroot()


def mock_post(url, status_code, headers, text=''):
    req = namedtuple('request', ['headers'])(headers={})
    c = text.encode('utf-8')
    return lambda **kwargs: namedtuple(
        'response', ['status_code', 'headers', 'text', 'content', 'request', 'history', 'url']
    )(status_code=status_code, headers=headers, text=text, content=c, request=req, history=None, url=url)


def mock_session_exception(exc_cls):
    def raise_exc(**kwargs):
        raise exc_cls()

    return raise_exc
