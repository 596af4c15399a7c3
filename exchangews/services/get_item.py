from ..util import MNS
from .common import EWSAccountService, write_item_ids


class GetItem(EWSAccountService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getitem
    """
    SERVICE_NAME = 'GetItem'
    element_container_name = '{%s}Items' % MNS

    def call(self, items, property_set):
        """
        Returns the items that correspond to a list of ID's, in stable order.

        :param items: a list of ItemId instances, (id, changekey) tuples or Item objects
        :param property_set: a PropertySet describing the fields to return
        :return: readers for the item elements, in stable order
        """
        property_set.validate(self.account.version)
        return self._chunked_get_elements(self.get_payload, items=items, property_set=property_set)

    def get_payload(self, items, property_set):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        property_set.write_to_xml(writer, shape_element='m:ItemShape')
        write_item_ids(writer, items)
        writer.end()
        return writer.root
