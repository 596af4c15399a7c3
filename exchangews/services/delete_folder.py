from collections import OrderedDict

from .common import EWSAccountService, write_folder_ids


class DeleteFolder(EWSAccountService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/deletefolder
    """
    SERVICE_NAME = 'DeleteFolder'
    element_container_name = None  # DeleteFolder doesn't return a response object, just status in XML attrs

    def call(self, folders, delete_type):
        from ..items import DELETE_TYPE_CHOICES
        if delete_type not in DELETE_TYPE_CHOICES:
            raise ValueError("'delete_type' %s must be one of %s" % (delete_type, DELETE_TYPE_CHOICES))
        return self._chunked_get_elements(self.get_payload, items=folders, delete_type=delete_type)

    def get_payload(self, folders, delete_type):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME, attrs=OrderedDict([('DeleteType', delete_type)]))
        write_folder_ids(writer, folders, tag='m:FolderIds')
        writer.end()
        return writer.root
