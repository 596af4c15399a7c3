from ..util import MNS
from .common import EWSAccountService


class UpdateFolder(EWSAccountService):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/updatefolder
    """
    SERVICE_NAME = 'UpdateFolder'
    element_container_name = '{%s}Folders' % MNS

    def call(self, folders):
        return self._chunked_get_elements(self.get_payload, items=folders)

    def get_payload(self, folders):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        writer.start('m:FolderChanges')
        for folder in folders:
            folder.write_to_xml_for_update(writer)
        writer.end()
        writer.end()
        return writer.root
