import logging

from .errors import InvalidOperation
from .fields import TextField, IntegerField, ChoiceField, CONNECTING, DISCONNECTED, PHONE_CALL_STATES, \
    CONNECTION_FAILURE_CAUSES
from .properties import ComplexProperty

log = logging.getLogger(__name__)


class PhoneCallId(ComplexProperty):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/phonecallid"""
    ELEMENT_NAME = 'PhoneCallId'

    FIELDS = (
        TextField('id', field_uri='Id', is_attribute=True, is_required=True),
    )

    def __init__(self, *args, **kwargs):
        if args:
            kwargs['id'] = args[0]
        super().__init__(**kwargs)


class PhoneCall(ComplexProperty):
    """A phone call placed by the Unified Messaging server, e.g. to play a voice mail on a phone.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/phonecallinformation
    """
    ELEMENT_NAME = 'PhoneCallInformation'
    SUCCESSFUL_RESPONSE_TEXT = 'OK'
    SUCCESSFUL_RESPONSE_CODE = 200

    FIELDS = (
        ChoiceField('state', field_uri='PhoneCallState', choices=PHONE_CALL_STATES, default=CONNECTING),
        ChoiceField('connection_failure_cause', field_uri='ConnectionFailureCause', choices=CONNECTION_FAILURE_CAUSES,
                    default='None'),
        TextField('sip_response_text', field_uri='SIPResponseText', default=SUCCESSFUL_RESPONSE_TEXT),
        IntegerField('sip_response_code', field_uri='SIPResponseCode', default=SUCCESSFUL_RESPONSE_CODE),
    )

    def __init__(self, account=None, phone_call_id=None, **kwargs):
        self._set_quietly('account', account)
        self._set_quietly('phone_call_id', phone_call_id)
        super().__init__(**kwargs)

    def refresh(self):
        """Fetch the current state of the call from the server"""
        from .services import GetPhoneCallInformation
        phone_call = GetPhoneCallInformation(account=self.account).call(phone_call_id=self.phone_call_id)
        for f in self.FIELDS:
            self._set_quietly(f.name, getattr(phone_call, f.name))

    def disconnect(self):
        if self.state == DISCONNECTED:
            raise InvalidOperation('The phone call has already been disconnected')
        from .services import DisconnectPhoneCall
        DisconnectPhoneCall(account=self.account).call(phone_call_id=self.phone_call_id)
        self._set_quietly('state', DISCONNECTED)
