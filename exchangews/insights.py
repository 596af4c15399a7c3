"""
People insights, as returned by GetPeopleInsights. Insight values are polymorphic: the concrete type of an <t:Item>
or <t:Content> element is given by its xsi:type attribute, not by its element name.
"""
import logging

from .fields import TextField, IntegerField, DecimalField, EWSElementField, DateTimeField
from .properties import ComplexProperty, ComplexPropertyCollection, values_are_same

log = logging.getLogger(__name__)


class InsightValue(ComplexProperty):
    """Base class for all insight values"""
    ELEMENT_NAME = 'Item'
    XSI_TYPE = None

    FIELDS = (
        TextField('insight_source', field_uri='InsightSource'),
        IntegerField('updated_utc_ticks', field_uri='UpdatedUtcTicks'),
    )

    def write_attributes_to_xml(self, writer):
        super().write_attributes_to_xml(writer)
        writer.attribute('xsi:type', 't:%s' % self.XSI_TYPE)


class StringInsightValue(InsightValue):
    XSI_TYPE = 'StringInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('data', field_uri='Data'),
    )


class UserProfilePicture(InsightValue):
    XSI_TYPE = 'UserProfilePicture'
    FIELDS = InsightValue.FIELDS + (
        TextField('blob', field_uri='Blob'),
        TextField('photo_size', field_uri='PhotoSize'),
        TextField('url', field_uri='Url'),
        TextField('image_type', field_uri='ImageType'),
    )


class ProfileInsightValue(InsightValue):
    XSI_TYPE = 'ProfileInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('full_name', field_uri='FullName'),
        TextField('first_name', field_uri='FirstName'),
        TextField('last_name', field_uri='LastName'),
        TextField('email_address', field_uri='EmailAddress'),
        TextField('avatar', field_uri='Avatar'),
        IntegerField('joined_utc_ticks', field_uri='JoinedUtcTicks'),
        EWSElementField('profile_picture', field_uri='ProfilePicture', value_cls=UserProfilePicture),
        TextField('title', field_uri='Title'),
    )


class JobInsightValue(InsightValue):
    XSI_TYPE = 'JobInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('company', field_uri='Company'),
        TextField('title', field_uri='Title'),
        IntegerField('start_utc_ticks', field_uri='StartUtcTicks'),
        IntegerField('end_utc_ticks', field_uri='EndUtcTicks'),
    )


class EducationInsightValue(InsightValue):
    XSI_TYPE = 'EducationInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('institute', field_uri='Institute'),
        TextField('degree', field_uri='Degree'),
        IntegerField('start_utc_ticks', field_uri='StartUtcTicks'),
        IntegerField('end_utc_ticks', field_uri='EndUtcTicks'),
    )


class SkillInsightValue(InsightValue):
    XSI_TYPE = 'SkillInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('name', field_uri='Name'),
        TextField('strength', field_uri='Strength'),
    )


class ComputedInsightValueProperty(ComplexProperty):
    ELEMENT_NAME = 'Property'
    FIELDS = (
        TextField('key', field_uri='Key'),
        TextField('value', field_uri='Value'),
    )


class ComputedInsightValue(InsightValue):
    XSI_TYPE = 'ComputedInsightValue'

    def __init__(self, properties=None, **kwargs):
        self._set_quietly('properties', list(properties or ()))
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Properties':
            for child in reader.findall('Property'):
                prop = ComputedInsightValueProperty()
                prop.load_from_xml(child)
                self.properties.append(prop)
            return True
        return super().try_read_element_from_xml(reader)

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.properties, other.properties)


class MeetingInsightValue(InsightValue):
    XSI_TYPE = 'MeetingInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('id', field_uri='Id'),
        TextField('subject', field_uri='Subject'),
        IntegerField('start_utc_ticks', field_uri='StartUtcTicks'),
        IntegerField('end_utc_ticks', field_uri='EndUtcTicks'),
        TextField('location', field_uri='Location'),
        EWSElementField('organizer', field_uri='Organizer', value_cls=ProfileInsightValue),
    )

    def __init__(self, attendees=None, **kwargs):
        self._set_quietly('attendees', list(attendees or ()))
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Attendees':
            for child in reader.findall('Item'):
                attendee = ProfileInsightValue()
                attendee.load_from_xml(child)
                self.attendees.append(attendee)
            return True
        return super().try_read_element_from_xml(reader)

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.attendees, other.attendees)


class EmailInsightValue(InsightValue):
    XSI_TYPE = 'EmailInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('id', field_uri='Id'),
        TextField('thread_id', field_uri='ThreadId'),
        TextField('subject', field_uri='Subject'),
        IntegerField('last_email_date_utc_ticks', field_uri='LastEmailDateUtcTicks'),
        TextField('body', field_uri='Body'),
        EWSElementField('last_email_sender', field_uri='LastEmailSender', value_cls=ProfileInsightValue),
        IntegerField('emails_count', field_uri='EmailsCount'),
    )


class DelveDocument(InsightValue):
    XSI_TYPE = 'DelveDocument'
    FIELDS = InsightValue.FIELDS + (
        DecimalField('rank', field_uri='Rank'),
        TextField('author', field_uri='Author'),
        TextField('created', field_uri='Created'),
        IntegerField('last_modified_time', field_uri='LastModifiedTime'),
        TextField('default_encoding_url', field_uri='DefaultEncodingURL'),
        TextField('file_type', field_uri='FileType'),
        TextField('title', field_uri='Title'),
        TextField('document_id', field_uri='DocumentId'),
        TextField('preview_url', field_uri='PreviewURL'),
        TextField('last_editor', field_uri='LastEditor'),
    )


class CompanyInsightValue(InsightValue):
    XSI_TYPE = 'CompanyInsightValue'
    FIELDS = InsightValue.FIELDS + (
        TextField('name', field_uri='Name'),
        TextField('satori_id', field_uri='SatoriId'),
        TextField('description', field_uri='Description'),
        TextField('description_attribution', field_uri='DescriptionAttribution'),
        TextField('image_url', field_uri='ImageUrl'),
        TextField('image_url_attribution', field_uri='ImageUrlAttribution'),
        TextField('year_found', field_uri='YearFound'),
        TextField('finance_symbol', field_uri='FinanceSymbol'),
        TextField('website_url', field_uri='WebsiteUrl'),
    )


class OutOfOfficeInsightValue(InsightValue):
    XSI_TYPE = 'OutOfOfficeInsightValue'
    FIELDS = InsightValue.FIELDS + (
        DateTimeField('start_time', field_uri='StartTime'),
        DateTimeField('end_time', field_uri='EndTime'),
        TextField('culture', field_uri='Culture'),
        TextField('message', field_uri='Message'),
    )


INSIGHT_VALUE_CLASSES = {cls.XSI_TYPE: cls for cls in (
    StringInsightValue, ProfileInsightValue, JobInsightValue, UserProfilePicture, EducationInsightValue,
    SkillInsightValue, ComputedInsightValue, MeetingInsightValue, EmailInsightValue, DelveDocument,
    CompanyInsightValue, OutOfOfficeInsightValue,
)}


def create_from_xml(reader):
    """Returns the insight value that 'reader' points to, or None if the xsi:type is unknown"""
    xsi_type = reader.read_xsi_type()
    cls = INSIGHT_VALUE_CLASSES.get(xsi_type)
    if cls is None:
        log.debug('Unknown insight value type %r', xsi_type)
        return None
    value = cls()
    value.load_from_xml(reader)
    return value


def _read_items(reader):
    items = []
    for child in reader.findall('Item'):
        value = create_from_xml(child)
        if value is not None:
            items.append(value)
    return items


class SingleValueInsightContent(ComplexProperty):
    ELEMENT_NAME = 'Content'
    XSI_TYPE = 'SingleValueInsightContent'

    def __init__(self, item=None, **kwargs):
        self._set_quietly('item', item)
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        value = create_from_xml(reader)
        if value is None:
            return False
        self._set_quietly('item', value)
        return True

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.item, other.item)


class MultiValueInsightContent(ComplexProperty):
    ELEMENT_NAME = 'Content'
    XSI_TYPE = 'MultiValueInsightContent'

    def __init__(self, items=None, **kwargs):
        self._set_quietly('items', list(items or ()))
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'ItemList':
            self.items.extend(_read_items(reader))
            return True
        return False

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.items, other.items)


CONTENT_CLASSES = {cls.XSI_TYPE: cls for cls in (SingleValueInsightContent, MultiValueInsightContent)}


class PersonInsight(ComplexProperty):
    ELEMENT_NAME = 'PersonInsight'

    FIELDS = (
        TextField('insight_type', field_uri='InsightType'),
        DecimalField('rank', field_uri='Rank'),
    )

    def __init__(self, content=None, item_list=None, **kwargs):
        self._set_quietly('content', content)
        self._set_quietly('item_list', list(item_list or ()))
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Content':
            cls = CONTENT_CLASSES.get(reader.read_xsi_type())
            if cls is None:
                return False
            content = cls()
            content.load_from_xml(reader)
            self._set_quietly('content', content)
            return True
        if reader.local_name == 'ItemList':
            self.item_list.extend(_read_items(reader))
            return True
        return super().try_read_element_from_xml(reader)

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.content, other.content) \
            and values_are_same(self.item_list, other.item_list)


class PersonInsightCollection(ComplexPropertyCollection):
    def __init__(self):
        super().__init__(item_cls=PersonInsight)


class Person(ComplexProperty):
    """A person and the insights the server has about them, as returned by GetPeopleInsights"""
    ELEMENT_NAME = 'Person'

    FIELDS = (
        TextField('email_address', field_uri='EmailAddress'),
        TextField('display_name', field_uri='DisplayName'),
    )

    def __init__(self, insights=None, **kwargs):
        collection = PersonInsightCollection()
        for insight in insights or ():
            collection.add(insight)
        self._set_quietly('insights', collection)
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Insights':
            self.insights.load_from_xml(reader)
            return True
        return super().try_read_element_from_xml(reader)

    def is_same(self, other):
        return super().is_same(other) and values_are_same(self.insights, other.insights)
