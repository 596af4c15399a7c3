"""
Search filters are the restriction language of FindItem and FindFolder, and the filter of search folders. A filter
tree is built from SearchFilter subclasses and serialized into a <m:Restriction> element. Server responses containing
a filter (e.g. the SearchParameters of a search folder) are parsed back with create_from_xml().
"""
import logging

from .errors import ServiceValidationException
from .fields import Field, ChoiceField
from .properties import ComplexProperty, values_are_same
from .schema import find_property_definition

log = logging.getLogger(__name__)

CONTAINMENT_MODES = ('FullString', 'Prefixed', 'Substring', 'PrefixOnWords', 'ExactPhrase')
CONTAINMENT_COMPARISONS = ('Exact', 'IgnoreCase', 'IgnoreNonSpacingCharacters', 'Loose',
                           'IgnoreCaseAndNonSpacingCharacters', 'LooseAndIgnoreCase', 'LooseAndIgnoreNonSpace',
                           'LooseAndIgnoreCaseAndIgnoreNonSpace')
AND = 'And'
OR = 'Or'
LOGICAL_OPERATORS = (AND, OR)


def _read_field_uri(reader):
    uri = reader.read_attribute('FieldURI')
    try:
        return find_property_definition(uri)
    except KeyError:
        # Keep the raw URI so the filter can still be written back unchanged
        log.debug('No field registered for FieldURI %r', uri)
        return uri


def _write_field_uri(writer, field):
    if isinstance(field, Field):
        field.write_uri(writer)
    else:
        writer.element('t:FieldURI', attrs={'FieldURI': field})


class SearchFilter(ComplexProperty):
    """Base class for all search filters. Each concrete filter is written as the element named by ELEMENT_NAME."""
    COMPARE_ATTRS = ()

    def is_same(self, other):
        if not super().is_same(other):
            return False
        return all(values_are_same(getattr(self, a), getattr(other, a)) for a in self.COMPARE_ATTRS)

    def __repr__(self):
        return self.__class__.__name__ + '(%s)' % ', '.join(
            '%s=%r' % (a, getattr(self, a)) for a in self.COMPARE_ATTRS + tuple(f.name for f in self.FIELDS)
        )


class PropertyBasedFilter(SearchFilter):
    """A filter on the value of one property"""
    COMPARE_ATTRS = ('field',)

    def __init__(self, field=None, **kwargs):
        self._set_quietly('field', field)
        super().__init__(**kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'FieldURI':
            self._set_quietly('field', _read_field_uri(reader))
            return True
        return super().try_read_element_from_xml(reader)

    def write_elements_to_xml(self, writer):
        _write_field_uri(writer, self.field)

    def internal_validate(self):
        super().internal_validate()
        if self.field is None:
            raise ServiceValidationException('The property must be set on %s filters' % self.__class__.__name__)


class Exists(PropertyBasedFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/exists"""
    ELEMENT_NAME = 'Exists'


class ContainsSubstring(PropertyBasedFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/contains"""
    ELEMENT_NAME = 'Contains'
    COMPARE_ATTRS = PropertyBasedFilter.COMPARE_ATTRS + ('value',)

    FIELDS = (
        ChoiceField('containment_mode', field_uri='ContainmentMode', is_attribute=True, choices=CONTAINMENT_MODES,
                    default='Substring'),
        ChoiceField('containment_comparison', field_uri='ContainmentComparison', is_attribute=True,
                    choices=CONTAINMENT_COMPARISONS, default='IgnoreCase'),
    )

    def __init__(self, field=None, value=None, **kwargs):
        self._set_quietly('value', value)
        super().__init__(field=field, **kwargs)

    def read_attributes_from_xml(self, reader):
        super().read_attributes_from_xml(reader)
        if self.containment_comparison is None:
            # The server may return comparison values we don't know. Treat them as the most lenient known mode.
            self._set_quietly('containment_comparison', 'IgnoreCaseAndNonSpacingCharacters')

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Constant':
            self._set_quietly('value', reader.read_attribute('Value'))
            return True
        return super().try_read_element_from_xml(reader)

    def write_elements_to_xml(self, writer):
        super().write_elements_to_xml(writer)
        writer.element('t:Constant', attrs={'Value': self.value})

    def internal_validate(self):
        super().internal_validate()
        if not self.value:
            raise ServiceValidationException('The Value property must be set')


class ExcludesBitmask(PropertyBasedFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/excludes"""
    ELEMENT_NAME = 'Excludes'
    COMPARE_ATTRS = PropertyBasedFilter.COMPARE_ATTRS + ('bitmask',)

    def __init__(self, field=None, bitmask=0, **kwargs):
        self._set_quietly('bitmask', bitmask)
        super().__init__(field=field, **kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'Bitmask':
            # The value may be a decimal or a hex string, e.g. '0x10'
            self._set_quietly('bitmask', int(reader.read_attribute('Value'), 0))
            return True
        return super().try_read_element_from_xml(reader)

    def write_elements_to_xml(self, writer):
        super().write_elements_to_xml(writer)
        writer.element('t:Bitmask', attrs={'Value': self.bitmask})


class RelationalFilter(PropertyBasedFilter):
    """Compares a property with either a constant value or another property"""
    COMPARE_ATTRS = PropertyBasedFilter.COMPARE_ATTRS + ('value', 'other_field')

    def __init__(self, field=None, value=None, other_field=None, **kwargs):
        self._set_quietly('value', value)
        self._set_quietly('other_field', other_field)
        super().__init__(field=field, **kwargs)

    def try_read_element_from_xml(self, reader):
        if reader.local_name == 'FieldURIOrConstant':
            for child in reader.children():
                if child.local_name == 'Constant':
                    self._set_quietly('value', child.read_attribute('Value'))
                elif child.local_name == 'FieldURI':
                    self._set_quietly('other_field', _read_field_uri(child))
            return True
        return super().try_read_element_from_xml(reader)

    def write_elements_to_xml(self, writer):
        super().write_elements_to_xml(writer)
        writer.start('t:FieldURIOrConstant')
        if self.other_field is not None:
            _write_field_uri(writer, self.other_field)
        else:
            writer.element('t:Constant', attrs={'Value': self.value})
        writer.end()

    def internal_validate(self):
        super().internal_validate()
        if self.other_field is None and self.value is None:
            raise ServiceValidationException('Either the value or the other property must be set on %s filters'
                                             % self.__class__.__name__)


class IsEqualTo(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/isequalto"""
    ELEMENT_NAME = 'IsEqualTo'


class IsNotEqualTo(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/isnotequalto"""
    ELEMENT_NAME = 'IsNotEqualTo'


class IsGreaterThan(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/isgreaterthan"""
    ELEMENT_NAME = 'IsGreaterThan'


class IsGreaterThanOrEqualTo(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/isgreaterthanorequalto"""
    ELEMENT_NAME = 'IsGreaterThanOrEqualTo'


class IsLessThan(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/islessthan"""
    ELEMENT_NAME = 'IsLessThan'


class IsLessThanOrEqualTo(RelationalFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/islessthanorequalto"""
    ELEMENT_NAME = 'IsLessThanOrEqualTo'


class Not(SearchFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/not"""
    ELEMENT_NAME = 'Not'
    COMPARE_ATTRS = ('search_filter',)

    def __init__(self, search_filter=None, **kwargs):
        self._set_quietly('search_filter', None)
        super().__init__(**kwargs)
        if search_filter is not None:
            self._set_filter(search_filter)

    def _set_filter(self, search_filter):
        old = self.search_filter
        if old is not None:
            old.set_owner(None)
        self._set_quietly('search_filter', search_filter)
        if search_filter is not None:
            search_filter.set_owner(self._filter_changed)

    def __setattr__(self, key, value):
        if key == 'search_filter':
            self._set_filter(value)
            self.changed()
            return
        super().__setattr__(key, value)

    def _filter_changed(self, search_filter):
        self.changed()

    def try_read_element_from_xml(self, reader):
        search_filter = create_from_xml(reader)
        if search_filter is None:
            return False
        self._set_filter(search_filter)
        return True

    def write_elements_to_xml(self, writer):
        self.search_filter.write_to_xml(writer)

    def internal_validate(self):
        super().internal_validate()
        if self.search_filter is None:
            raise ServiceValidationException('The search filter of a Not filter must be set')
        self.search_filter.validate()


class SearchFilterCollection(SearchFilter):
    """MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/and
    MSDN: https://docs.microsoft.com/en-us/exchange/client-developer/web-service-reference/or

    The element name is the logical operator. A collection holding a single filter is written as just that filter.
    """
    COMPARE_ATTRS = ('logical_operator', 'search_filters')

    def __init__(self, logical_operator=AND, search_filters=None, **kwargs):
        if logical_operator not in LOGICAL_OPERATORS:
            raise ValueError("'logical_operator' %r must be one of %s" % (logical_operator, LOGICAL_OPERATORS))
        self._set_quietly('logical_operator', logical_operator)
        self._set_quietly('search_filters', [])
        super().__init__(**kwargs)
        for f in search_filters or ():
            self._add(f)

    @property
    def ELEMENT_NAME(self):
        return self.logical_operator

    def _add(self, search_filter):
        if not isinstance(search_filter, SearchFilter):
            raise TypeError('%r must be a SearchFilter instance' % search_filter)
        search_filter.set_owner(self._filter_changed)
        self.search_filters.append(search_filter)

    def _filter_changed(self, search_filter):
        self.changed()

    def add(self, search_filter):
        self._add(search_filter)
        self.changed()

    def remove(self, search_filter):
        self.search_filters.remove(search_filter)
        search_filter.set_owner(None)
        self.changed()

    def clear(self):
        for f in self.search_filters:
            f.set_owner(None)
        self.search_filters[:] = []
        self.changed()

    def __len__(self):
        return len(self.search_filters)

    def __iter__(self):
        return iter(self.search_filters)

    def try_read_element_from_xml(self, reader):
        search_filter = create_from_xml(reader)
        if search_filter is None:
            return False
        self._add(search_filter)
        return True

    def write_to_xml(self, writer, element_name=None, namespace=None):
        if len(self.search_filters) == 1:
            self.search_filters[0].write_to_xml(writer)
            return
        super().write_to_xml(writer, element_name=element_name, namespace=namespace)

    def write_elements_to_xml(self, writer):
        for f in self.search_filters:
            f.write_to_xml(writer)

    def internal_validate(self):
        super().internal_validate()
        for i, f in enumerate(self.search_filters):
            try:
                f.validate()
            except ServiceValidationException as e:
                raise ServiceValidationException('The search filter at index %s is invalid: %s' % (i, e.value))


FILTER_CLASSES = {cls.ELEMENT_NAME: cls for cls in (
    Exists, ContainsSubstring, ExcludesBitmask, Not, IsEqualTo, IsNotEqualTo, IsGreaterThan, IsGreaterThanOrEqualTo,
    IsLessThan, IsLessThanOrEqualTo,
)}


def create_from_xml(reader):
    """Returns the search filter that 'reader' points to, or None if the element is not a search filter"""
    local_name = reader.local_name
    if local_name in LOGICAL_OPERATORS:
        search_filter = SearchFilterCollection(logical_operator=local_name)
    else:
        cls = FILTER_CLASSES.get(local_name)
        if cls is None:
            log.debug('Unknown search filter element %s', local_name)
            return None
        search_filter = cls()
    search_filter.load_from_xml(reader)
    return search_filter


def write_restriction(writer, search_filter):
    """Writes the <m:Restriction> element used by FindItem and FindFolder"""
    search_filter.validate()
    writer.start('m:Restriction')
    search_filter.write_to_xml(writer)
    writer.end()
