from ..search_filters import write_restriction
from ..util import TNS
from .common import EWSAccountService, PagingEWSMixIn, write_folder_ids, write_indexed_page_view, SHALLOW, \
    SOFT_DELETED, ASSOCIATED

TRAVERSAL_CHOICES = (SHALLOW, SOFT_DELETED, ASSOCIATED)


class FindItem(EWSAccountService, PagingEWSMixIn):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/finditem
    """
    SERVICE_NAME = 'FindItem'
    element_container_name = '{%s}Items' % TNS

    def call(self, folders, property_set, restriction=None, traversal=SHALLOW, max_items=None, offset=0):
        """
        Find items in one or more folders.

        :param folders: the folders to search, as Folder objects, FolderId instances or well-known folder names
        :param property_set: a PropertySet describing the fields to return
        :param restriction: a SearchFilter that the items must match, or None to return all items
        :param traversal: one of 'Shallow', 'SoftDeleted' or 'Associated'
        :param max_items: the max number of items to return
        :param offset: the offset of the first item to return
        :return: readers for the matching item elements
        """
        if traversal not in TRAVERSAL_CHOICES:
            raise ValueError("'traversal' %r must be one of %s" % (traversal, TRAVERSAL_CHOICES))
        if max_items is not None and max_items < 1:
            raise ValueError("'max_items' must be a positive number")
        folders = list(folders)
        property_set.validate(self.account.version)
        if restriction is not None:
            restriction.validate()
        return self._paged_call(
            payload_func=self.get_payload,
            max_items=max_items,
            expected_message_count=len(folders),
            folders=folders,
            property_set=property_set,
            restriction=restriction,
            traversal=traversal,
            page_size=self.chunk_size,
            offset=offset,
        )

    def get_payload(self, folders, property_set, restriction, traversal, page_size, offset=0):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME, attrs=dict(Traversal=traversal))
        property_set.write_to_xml(writer, shape_element='m:ItemShape')
        write_indexed_page_view(writer, 'm:IndexedPageItemView', page_size=page_size, offset=offset)
        if restriction is not None:
            write_restriction(writer, restriction)
        write_folder_ids(writer, folders, tag='m:ParentFolderIds')
        writer.end()
        return writer.root
