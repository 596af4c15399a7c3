from lxml.etree import QName

from exchangews.errors import ServiceValidationException
from exchangews.items import Item, Task
from exchangews.schema import schema_for
from exchangews.search_filters import Exists, ContainsSubstring, ExcludesBitmask, IsEqualTo, IsGreaterThan, \
    IsLessThanOrEqualTo, Not, SearchFilterCollection, create_from_xml, write_restriction, OR
from exchangews.util import to_xml, TNS, MNS
from exchangews.xml_rw import EwsXmlReader, EwsXmlWriter

from .common import TimedTestCase

SUBJECT = schema_for(Item).get_by_name('subject')
IMPORTANCE = schema_for(Item).get_by_name('importance')
PERCENT_COMPLETE = schema_for(Task).get_by_name('percent_complete')
ACTUAL_WORK = schema_for(Task).get_by_name('actual_work')


def write(search_filter):
    writer = EwsXmlWriter()
    search_filter.write_to_xml(writer)
    return writer.root


def parse(xml):
    root = to_xml(('<t:Root xmlns:t="%s">%s</t:Root>' % (TNS, xml)).encode('utf-8')).getroot()
    return create_from_xml(next(EwsXmlReader(root).children()))


class SearchFilterTest(TimedTestCase):
    def test_write_relational(self):
        elem = write(IsEqualTo(SUBJECT, value='Hello'))
        self.assertEqual(elem.tag, '{%s}IsEqualTo' % TNS)
        self.assertEqual([QName(e).localname for e in elem], ['FieldURI', 'FieldURIOrConstant'])
        self.assertEqual(elem.find('{%s}FieldURI' % TNS).get('FieldURI'), 'item:Subject')
        constant = elem.find('{%(ns)s}FieldURIOrConstant/{%(ns)s}Constant' % dict(ns=TNS))
        self.assertEqual(constant.get('Value'), 'Hello')
        # Compare with another property instead of a constant
        elem = write(IsGreaterThan(ACTUAL_WORK, other_field=PERCENT_COMPLETE))
        other = elem.find('{%(ns)s}FieldURIOrConstant/{%(ns)s}FieldURI' % dict(ns=TNS))
        self.assertEqual(other.get('FieldURI'), 'task:PercentComplete')

    def test_write_contains(self):
        elem = write(ContainsSubstring(SUBJECT, value='foo', containment_mode='Prefixed'))
        self.assertEqual(elem.tag, '{%s}Contains' % TNS)
        self.assertEqual(elem.get('ContainmentMode'), 'Prefixed')
        self.assertEqual(elem.get('ContainmentComparison'), 'IgnoreCase')
        self.assertEqual(elem.find('{%s}Constant' % TNS).get('Value'), 'foo')

    def test_write_collection(self):
        search_filter = SearchFilterCollection(OR, [
            Exists(SUBJECT),
            Not(ExcludesBitmask(IMPORTANCE, bitmask=16)),
        ])
        elem = write(search_filter)
        self.assertEqual(elem.tag, '{%s}Or' % TNS)
        self.assertEqual([QName(e).localname for e in elem], ['Exists', 'Not'])
        bitmask = elem.find('{%(ns)s}Not/{%(ns)s}Excludes/{%(ns)s}Bitmask' % dict(ns=TNS))
        self.assertEqual(bitmask.get('Value'), '16')
        # A collection of one filter is written as that filter
        elem = write(SearchFilterCollection(search_filters=[Exists(SUBJECT)]))
        self.assertEqual(elem.tag, '{%s}Exists' % TNS)

    def test_write_restriction(self):
        writer = EwsXmlWriter()
        writer.start('m:FindItem')
        write_restriction(writer, IsLessThanOrEqualTo(PERCENT_COMPLETE, value=50))
        restriction = writer.root.find('{%s}Restriction' % MNS)
        self.assertEqual([QName(e).localname for e in restriction], ['IsLessThanOrEqualTo'])
        writer = EwsXmlWriter()
        writer.start('m:FindItem')
        with self.assertRaises(ServiceValidationException):
            write_restriction(writer, IsEqualTo(SUBJECT))

    def test_parse(self):
        search_filter = parse('''\
<t:And>
  <t:Exists><t:FieldURI FieldURI="item:Subject"/></t:Exists>
  <t:Contains ContainmentMode="FullString">
    <t:FieldURI FieldURI="item:Subject"/>
    <t:Constant Value="Hello"/>
  </t:Contains>
  <t:Not>
    <t:Excludes><t:FieldURI FieldURI="item:Importance"/><t:Bitmask Value="0x10"/></t:Excludes>
  </t:Not>
  <t:IsGreaterThan>
    <t:FieldURI FieldURI="task:ActualWork"/>
    <t:FieldURIOrConstant><t:FieldURI FieldURI="task:PercentComplete"/></t:FieldURIOrConstant>
  </t:IsGreaterThan>
</t:And>''')
        self.assertIsInstance(search_filter, SearchFilterCollection)
        self.assertEqual(search_filter.logical_operator, 'And')
        self.assertEqual(len(search_filter), 4)
        exists, contains, not_filter, greater = search_filter
        self.assertIs(exists.field, SUBJECT)
        self.assertEqual(contains.value, 'Hello')
        self.assertEqual(contains.containment_mode, 'FullString')
        # A missing comparison is read as the most lenient mode
        self.assertEqual(contains.containment_comparison, 'IgnoreCaseAndNonSpacingCharacters')
        self.assertIsInstance(not_filter.search_filter, ExcludesBitmask)
        self.assertEqual(not_filter.search_filter.bitmask, 16)
        self.assertIs(greater.field, ACTUAL_WORK)
        self.assertIs(greater.other_field, PERCENT_COMPLETE)
        self.assertIsNone(greater.value)
        self.assertTrue(search_filter.is_same(SearchFilterCollection(search_filters=[
            Exists(SUBJECT),
            ContainsSubstring(SUBJECT, value='Hello', containment_mode='FullString',
                              containment_comparison='IgnoreCaseAndNonSpacingCharacters'),
            Not(ExcludesBitmask(IMPORTANCE, bitmask=16)),
            IsGreaterThan(ACTUAL_WORK, other_field=PERCENT_COMPLETE),
        ])))

    def test_parse_unknown(self):
        self.assertIsNone(parse('<t:IsSimilarTo/>'))
        # Unknown FieldURIs are kept as strings and written back unchanged
        search_filter = parse('<t:Exists><t:FieldURI FieldURI="item:Unknown"/></t:Exists>')
        self.assertEqual(search_filter.field, 'item:Unknown')
        self.assertEqual(write(search_filter).find('{%s}FieldURI' % TNS).get('FieldURI'), 'item:Unknown')

    def test_validation(self):
        with self.assertRaises(ServiceValidationException):
            Exists().validate()
        with self.assertRaises(ServiceValidationException):
            IsEqualTo(SUBJECT).validate()
        with self.assertRaises(ServiceValidationException):
            ContainsSubstring(SUBJECT).validate()
        with self.assertRaises(ServiceValidationException):
            Not().validate()
        with self.assertRaises(ServiceValidationException) as e:
            SearchFilterCollection(search_filters=[Exists(SUBJECT), IsEqualTo(SUBJECT)]).validate()
        self.assertIn('index 1', str(e.exception))
        with self.assertRaises(ValueError):
            SearchFilterCollection(logical_operator='Xor')
        with self.assertRaises(TypeError):
            SearchFilterCollection(search_filters=['foo'])

    def test_change_notification(self):
        changes = []
        child = IsEqualTo(SUBJECT, value='a')
        collection = SearchFilterCollection(search_filters=[child])
        collection.set_owner(changes.append)
        child.value = 'b'
        self.assertEqual(changes, [collection])
        collection.add(Exists(SUBJECT))
        self.assertEqual(len(changes), 2)
        collection.remove(child)
        child.value = 'c'  # No longer part of the collection
        self.assertEqual(len(changes), 3)
        not_filter = Not(Exists(SUBJECT))
        not_filter.set_owner(changes.append)
        not_filter.search_filter.field = IMPORTANCE
        self.assertEqual(changes[-1], not_filter)
