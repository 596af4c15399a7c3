from ..util import MNS
from .common import EWSAccountService, write_folder_ids


class CreateFolder(EWSAccountService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/createfolder
    """
    SERVICE_NAME = 'CreateFolder'
    element_container_name = '{%s}Folders' % MNS

    def call(self, parent_folder, folders):
        return self._chunked_get_elements(self.get_payload, items=folders, parent_folder=parent_folder)

    def get_payload(self, folders, parent_folder):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        write_folder_ids(writer, [parent_folder], tag='m:ParentFolderId')
        writer.start('m:Folders')
        for folder in folders:
            folder.write_to_xml(writer)
        writer.end()
        writer.end()
        return writer.root
