from collections import namedtuple

import requests
import requests_mock

from exchangews.credentials import Identity
from exchangews.errors import UnauthorizedError, TransportError
from exchangews.protocol import FailFast
from exchangews.transport import wrap, get_auth_method_from_response, get_auth_instance, get_service_authtype, \
    offered_auth_schemes, extra_headers, dummy_xml, BASIC, NOAUTH, NTLM, DIGEST, CBA
from exchangews.util import create_element, to_xml, SOAPNS, TNS, MNS

from .common import TimedTestCase

URL = 'https://example.com/EWS/Exchange.asmx'


class TransportTest(TimedTestCase):
    @requests_mock.mock()
    def test_get_auth_method_from_response(self, m):
        def auth_method(status_code, **headers):
            m.get(URL, status_code=status_code, headers=headers)
            return get_auth_method_from_response(requests.get(URL, allow_redirects=False))

        self.assertEqual(auth_method(200), NOAUTH)
        self.assertEqual(auth_method(401, **{'WWW-Authenticate': 'Basic'}), BASIC)
        self.assertEqual(auth_method(401, **{'WWW-Authenticate': 'Basic realm=""'}), BASIC)
        self.assertEqual(auth_method(401, **{'WWW-Authenticate': 'Basic realm="a realm, with a comma"'}), BASIC)
        self.assertEqual(auth_method(401, **{'WWW-Authenticate': 'NTLM'}), NTLM)
        self.assertEqual(auth_method(401, **{
            'WWW-Authenticate': 'Digest realm="foo@bar.com", qop="auth,auth-int", nonce="mumble", opaque="bumble"'
        }), DIGEST)
        # The most secure of several offered methods wins
        self.assertEqual(auth_method(401, **{'WWW-Authenticate': 'Basic realm="X1", NTLM, Digest realm="X2"'}), DIGEST)

        for status_code, headers in (
                (302, {'location': 'http://contoso.com'}),
                (501, {}),
                (401, {}),
                (401, {'WWW-Authenticate': 'FANCYAUTH'}),
        ):
            with self.assertRaises(UnauthorizedError):
                auth_method(status_code, **headers)

    def test_offered_auth_schemes(self):
        self.assertEqual(offered_auth_schemes('NTLM'), ['ntlm'])
        self.assertEqual(offered_auth_schemes('Negotiate, NTLM'), ['negotiate', 'ntlm'])
        self.assertEqual(offered_auth_schemes('Basic realm="ntlm, digest"'), ['basic'])
        self.assertEqual(offered_auth_schemes(''), [])

    @requests_mock.mock()
    def test_get_service_authtype(self, m):
        # The first API version is rejected, the second one gets a proper 401
        m.post(URL, [
            dict(status_code=400),
            dict(status_code=401, headers={'WWW-Authenticate': 'NTLM'}),
        ])
        self.assertEqual(
            get_service_authtype(URL, retry_policy=FailFast(), api_versions=['Exchange2019', 'Exchange2016']),
            (NTLM, 'Exchange2016')
        )

        m.post(URL, status_code=500)
        with self.assertRaises(TransportError):
            get_service_authtype(URL, retry_policy=FailFast(), api_versions=['Exchange2016'])

        m.post(URL, exc=requests.exceptions.ConnectionError('down'))
        with self.assertRaises(TransportError):
            get_service_authtype(URL, retry_policy=FailFast(), api_versions=['Exchange2016'])

    def test_wrap(self):
        MockTZ = namedtuple('EWSTimeZone', ['ms_id'])
        wrapped = wrap(content=create_element('AAA'), api_version='BBB', timezone=MockTZ('XXX'))
        self.assertTrue(wrapped.startswith(b"<?xml version='1.0' encoding='utf-8'?>"))
        root = to_xml(wrapped).getroot()
        self.assertEqual(root.tag, '{%s}Envelope' % SOAPNS)
        header = root.find('{%s}Header' % SOAPNS)
        self.assertEqual(header.find('{%s}RequestServerVersion' % TNS).get('Version'), 'BBB')
        self.assertIsNone(header.find('{%s}ExchangeImpersonation' % TNS))
        self.assertEqual(header.find('{%s}TimeZoneContext/{%s}TimeZoneDefinition' % (TNS, TNS)).get('Id'), 'XXX')
        self.assertEqual([e.tag for e in root.find('{%s}Body' % SOAPNS)], ['AAA'])

    def test_wrap_impersonation(self):
        def connecting_sid(identity):
            header = to_xml(wrap(content=create_element('AAA'), api_version='BBB',
                                 account_to_impersonate=identity)).getroot().find('{%s}Header' % SOAPNS)
            self.assertIsNone(header.find('{%s}TimeZoneContext' % TNS))
            elem = header.find('{%s}ExchangeImpersonation/{%s}ConnectingSID' % (TNS, TNS))
            return [(e.tag, e.text) for e in elem]

        # Only the most specific identifier is sent
        self.assertEqual(connecting_sid(Identity(primary_smtp_address='foo@example.com', upn='foo')),
                         [('{%s}PrincipalName' % TNS, 'foo')])
        self.assertEqual(connecting_sid(Identity(primary_smtp_address='foo@example.com')),
                         [('{%s}PrimarySmtpAddress' % TNS, 'foo@example.com')])

    def test_dummy_xml(self):
        body = to_xml(dummy_xml(api_version='Exchange2016')).getroot().find('{%s}Body' % SOAPNS)
        self.assertIsNotNone(body.find('{%s}GetFolder' % MNS))

    def test_get_auth_instance(self):
        self.assertIsNone(get_auth_instance(NOAUTH))
        self.assertIsNone(get_auth_instance(CBA))
        auth = get_auth_instance(BASIC, username='foo', password='bar')
        self.assertEqual((auth.username, auth.password), ('foo', 'bar'))

    def test_extra_headers(self):
        MockAccount = namedtuple('Account', ['primary_smtp_address'])
        self.assertIsNone(extra_headers(None))
        self.assertIsNone(extra_headers(MockAccount('')))
        self.assertEqual(extra_headers(MockAccount('foo@example.com')), {'X-AnchorMailbox': 'foo@example.com'})
