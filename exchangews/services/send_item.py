from collections import OrderedDict

from .common import EWSAccountService, write_item_ids, write_folder_ids


class SendItem(EWSAccountService):
    """Sends existing drafts. With 'save_copy' and no 'saved_item_folder', the server keeps a copy in Sent Items.

    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/senditem
    """
    SERVICE_NAME = 'SendItem'
    element_container_name = None  # SendItem doesn't return a response object, just status in XML attrs

    def call(self, items, save_copy, saved_item_folder=None):
        if saved_item_folder is not None and not save_copy:
            raise AttributeError("'save_copy' must be True when 'saved_item_folder' is set")
        return self._get_elements(payload=self.get_payload(items=items, save_copy=save_copy,
                                                           saved_item_folder=saved_item_folder))

    def get_payload(self, items, save_copy, saved_item_folder):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME, attrs=OrderedDict([('SaveItemToFolder', save_copy)]))
        write_item_ids(writer, items)
        if saved_item_folder is not None:
            write_folder_ids(writer, [saved_item_folder], tag='m:SavedItemFolderId')
        writer.end()
        return writer.root
