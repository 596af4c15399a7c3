"""
Unified Messaging services. These are not batched: the response element holds the result directly, without a
ResponseMessages wrapper.
"""
from ..util import MNS
from .common import EWSAccountService, single_result


class _PhoneCallService(EWSAccountService):
    @staticmethod
    def _get_elements_in_container(container):
        return [container]


class PlayOnPhone(_PhoneCallService):
    """Asks the server to call 'dial_string' and play the voice mail item on the phone. Returns a PhoneCallId.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/playonphone
    """
    SERVICE_NAME = 'PlayOnPhone'
    element_container_name = '{%s}PhoneCallId' % MNS

    def call(self, item_id, dial_string):
        from ..unified_messaging import PhoneCallId
        if not dial_string:
            raise ValueError("'dial_string' must not be empty")
        reader = single_result(self._to_reader(e) for e in self._get_elements(
            payload=self.get_payload(item_id=item_id, dial_string=dial_string)
        ))
        phone_call_id = PhoneCallId()
        phone_call_id.load_from_xml(reader)
        return phone_call_id

    def get_payload(self, item_id, dial_string):
        from ..properties import ItemId
        from .common import to_item_id
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        to_item_id(item_id, ItemId).write_to_xml(writer, namespace='m')
        writer.element('m:DialString', dial_string)
        writer.end()
        return writer.root


class GetPhoneCallInformation(_PhoneCallService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getphonecallinformation
    """
    SERVICE_NAME = 'GetPhoneCallInformation'
    element_container_name = '{%s}PhoneCallInformation' % MNS

    def call(self, phone_call_id):
        from ..unified_messaging import PhoneCall
        reader = single_result(self._to_reader(e) for e in self._get_elements(
            payload=self.get_payload(phone_call_id=phone_call_id)
        ))
        phone_call = PhoneCall(account=self.account, phone_call_id=phone_call_id)
        phone_call.load_from_xml(reader)
        return phone_call

    def get_payload(self, phone_call_id):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        phone_call_id.write_to_xml(writer, namespace='m')
        writer.end()
        return writer.root


class DisconnectPhoneCall(_PhoneCallService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/disconnectphonecall
    """
    SERVICE_NAME = 'DisconnectPhoneCall'
    element_container_name = None

    def call(self, phone_call_id):
        return single_result(self._get_elements(payload=self.get_payload(phone_call_id=phone_call_id)))

    def get_payload(self, phone_call_id):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        phone_call_id.write_to_xml(writer, namespace='m')
        writer.end()
        return writer.root
