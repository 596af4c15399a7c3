from ..util import MNS
from .common import EWSAccountService, write_folder_ids


class GetFolder(EWSAccountService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/getfolder
    """
    SERVICE_NAME = 'GetFolder'
    element_container_name = '{%s}Folders' % MNS

    def call(self, folders, property_set):
        """
        Takes a list of folder ids and returns the matching folder elements, in stable order.

        :param folders: a list of FolderId or DistinguishedFolderId instances, or Folder objects
        :param property_set: a PropertySet describing the fields to return
        :return: readers for the folder elements
        """
        property_set.validate(self.account.version)
        return self._chunked_get_elements(self.get_payload, items=folders, property_set=property_set)

    def get_payload(self, folders, property_set):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        property_set.write_to_xml(writer, shape_element='m:FolderShape')
        write_folder_ids(writer, folders, tag='m:FolderIds')
        writer.end()
        return writer.root
