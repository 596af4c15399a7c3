from .common import EWSAccountService, single_result


class Unsubscribe(EWSAccountService):
    """Unsubscribing is only valid for pull and streaming notifications.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/unsubscribe-operation
    """
    SERVICE_NAME = 'Unsubscribe'
    element_container_name = None

    def call(self, subscription_id):
        return single_result(self._get_elements(payload=self.get_payload(subscription_id=subscription_id)))

    def get_payload(self, subscription_id):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        writer.element('m:SubscriptionId', subscription_id)
        writer.end()
        return writer.root
