from exchangews.errors import InvalidOperation, ErrorInvalidPhoneCallId
from exchangews.fields import CONNECTING, DISCONNECTED
from exchangews.unified_messaging import PhoneCall, PhoneCallId
from exchangews.util import MNS, TNS

from .common import MockedEWSTest, soap_envelope

PLAY_ON_PHONE = soap_envelope('''\
<m:PlayOnPhoneResponse ResponseClass="Success" xmlns:m="%s">
  <m:ResponseCode>NoError</m:ResponseCode>
  <m:PhoneCallId Id="CALL1"/>
</m:PlayOnPhoneResponse>''' % MNS)

PHONE_CALL_INFORMATION = soap_envelope('''\
<m:GetPhoneCallInformationResponse ResponseClass="Success" xmlns:m="%s" xmlns:t="%s">
  <m:ResponseCode>NoError</m:ResponseCode>
  <m:PhoneCallInformation>
    <t:PhoneCallState>%%s</t:PhoneCallState>
    <t:ConnectionFailureCause>None</t:ConnectionFailureCause>
    <t:SIPResponseText>OK</t:SIPResponseText>
    <t:SIPResponseCode>200</t:SIPResponseCode>
  </m:PhoneCallInformation>
</m:GetPhoneCallInformationResponse>''' % (MNS, TNS))

DISCONNECT = soap_envelope('''\
<m:DisconnectPhoneCallResponse ResponseClass="Success" xmlns:m="%s">
  <m:ResponseCode>NoError</m:ResponseCode>
</m:DisconnectPhoneCallResponse>''' % MNS)

INVALID_CALL = soap_envelope('''\
<m:DisconnectPhoneCallResponse ResponseClass="Error" xmlns:m="%s">
  <m:MessageText>No such call</m:MessageText>
  <m:ResponseCode>ErrorInvalidPhoneCallId</m:ResponseCode>
</m:DisconnectPhoneCallResponse>''' % MNS)


class UnifiedMessagingTest(MockedEWSTest):
    def test_defaults(self):
        call = PhoneCall(account=self.account, phone_call_id=PhoneCallId('X'))
        self.assertEqual(call.state, CONNECTING)
        self.assertEqual(call.connection_failure_cause, 'None')
        self.assertEqual(call.sip_response_code, 200)
        self.assertEqual(call.sip_response_text, 'OK')

    def test_play_on_phone(self):
        self.mock_responses(PLAY_ON_PHONE, PHONE_CALL_INFORMATION % b'Alerted')
        call = self.account.play_on_phone(item_id=('VOICEMAIL', 'CK'), dial_string='+4512345678')
        self.assertEqual(call.phone_call_id.id, 'CALL1')
        self.assertEqual(call.state, 'Alerted')
        self.assertEqual(call.sip_response_code, 200)

        play_request = self.request_xml(0)
        payload = play_request.find('.//{%s}PlayOnPhone' % MNS)
        self.assertEqual(payload.find('{%s}ItemId' % MNS).get('Id'), 'VOICEMAIL')
        self.assertEqual(payload.find('{%s}DialString' % MNS).text, '+4512345678')
        info_request = self.request_xml(1)
        call_id = info_request.find('.//{%s}GetPhoneCallInformation/{%s}PhoneCallId' % (MNS, MNS))
        self.assertEqual(call_id.get('Id'), 'CALL1')

    def test_empty_dial_string(self):
        with self.assertRaises(ValueError):
            self.account.play_on_phone(item_id='VOICEMAIL', dial_string='')
        self.assertEqual(len(self.m.request_history), 0)

    def test_disconnect(self):
        self.mock_response(DISCONNECT)
        call = PhoneCall(account=self.account, phone_call_id=PhoneCallId('CALL1'), state='Connected')
        call.disconnect()
        self.assertEqual(call.state, DISCONNECTED)
        self.assertEqual(len(self.m.request_history), 1)
        # Disconnecting twice is a local error
        with self.assertRaises(InvalidOperation):
            call.disconnect()
        self.assertEqual(len(self.m.request_history), 1)

    def test_disconnect_error(self):
        self.mock_response(INVALID_CALL)
        call = PhoneCall(account=self.account, phone_call_id=PhoneCallId('CALL1'), state='Connected')
        with self.assertRaises(ErrorInvalidPhoneCallId):
            call.disconnect()
        self.assertEqual(call.state, 'Connected')
