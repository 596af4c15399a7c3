import logging

from ..fields import BooleanField, TextField, ChoiceField, DateTimeField, TextListField, EWSElementField
from ..properties import CompleteName
from ..version import EXCHANGE_2010, EXCHANGE_2013
from .base import register_item_class
from .item import Item

log = logging.getLogger(__name__)

FILE_AS_MAPPING_CHOICES = (
    'None', 'LastCommaFirst', 'FirstSpaceLast', 'Company', 'LastCommaFirstCompany', 'CompanyLastFirst', 'LastFirst',
    'LastFirstCompany', 'CompanyLastCommaFirst', 'LastFirstSuffix', 'LastSpaceFirstCompany', 'CompanyLastSpaceFirst',
    'LastSpaceFirst', 'DisplayName', 'FirstName', 'LastFirstMiddleSuffix', 'LastName', 'Empty',
)
CONTACT_SOURCE_CHOICES = ('Store', 'ActiveDirectory')
POSTAL_ADDRESS_INDEX_CHOICES = ('Business', 'Home', 'Other', 'None')


@register_item_class
class Contact(Item):
    """
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/contact
    """
    ELEMENT_NAME = 'Contact'

    # Fields are in the order the server expects them in CreateItem requests
    FIELDS = Item.FIELDS + (
        TextField('file_as', field_uri='contacts:FileAs'),
        ChoiceField('file_as_mapping', field_uri='contacts:FileAsMapping', choices=FILE_AS_MAPPING_CHOICES),
        TextField('display_name', field_uri='contacts:DisplayName'),
        TextField('given_name', field_uri='contacts:GivenName'),
        TextField('initials', field_uri='contacts:Initials'),
        TextField('middle_name', field_uri='contacts:MiddleName'),
        TextField('nickname', field_uri='contacts:Nickname'),
        EWSElementField('complete_name', field_uri='contacts:CompleteName', value_cls=CompleteName,
                        is_read_only=True),
        TextField('company_name', field_uri='contacts:CompanyName'),
        TextField('assistant_name', field_uri='contacts:AssistantName'),
        DateTimeField('birthday', field_uri='contacts:Birthday'),
        TextField('business_homepage', field_uri='contacts:BusinessHomePage'),
        TextListField('children', field_uri='contacts:Children'),
        TextListField('companies', field_uri='contacts:Companies'),
        ChoiceField('contact_source', field_uri='contacts:ContactSource', choices=CONTACT_SOURCE_CHOICES,
                    is_read_only=True),
        TextField('department', field_uri='contacts:Department'),
        TextField('generation', field_uri='contacts:Generation'),
        TextField('job_title', field_uri='contacts:JobTitle'),
        TextField('manager', field_uri='contacts:Manager'),
        TextField('mileage', field_uri='contacts:Mileage'),
        TextField('office', field_uri='contacts:OfficeLocation'),
        ChoiceField('postal_address_index', field_uri='contacts:PostalAddressIndex',
                    choices=POSTAL_ADDRESS_INDEX_CHOICES),
        TextField('profession', field_uri='contacts:Profession'),
        TextField('spouse_name', field_uri='contacts:SpouseName'),
        TextField('surname', field_uri='contacts:Surname'),
        DateTimeField('wedding_anniversary', field_uri='contacts:WeddingAnniversary'),
        BooleanField('has_picture', field_uri='contacts:HasPicture', supported_from=EXCHANGE_2010, is_read_only=True),
        TextField('phonetic_full_name', field_uri='contacts:PhoneticFullName', supported_from=EXCHANGE_2013,
                  is_read_only=True),
        TextField('phonetic_first_name', field_uri='contacts:PhoneticFirstName', supported_from=EXCHANGE_2013,
                  is_read_only=True),
        TextField('phonetic_last_name', field_uri='contacts:PhoneticLastName', supported_from=EXCHANGE_2013,
                  is_read_only=True),
        TextField('alias', field_uri='contacts:Alias', supported_from=EXCHANGE_2013, is_read_only=True),
        # 'notes' is documented in MSDN but writing to it raises ErrorInvalidPropertyRequest
        TextField('notes', field_uri='contacts:Notes', supported_from=EXCHANGE_2013, is_read_only=True),
        TextField('directory_id', field_uri='contacts:DirectoryId', supported_from=EXCHANGE_2013, is_read_only=True),
    )
