from ..errors import ServiceVersionException
from ..insights import Person
from ..util import MNS
from ..version import EXCHANGE_2016
from .common import EWSAccountService


class GetPeopleInsights(EWSAccountService):
    """Fetches what the server knows about a list of people, e.g. their skills, recent meetings and documents"""
    SERVICE_NAME = 'GetPeopleInsights'
    element_container_name = '{%s}People' % MNS

    def call(self, email_addresses):
        """
        :param email_addresses: the SMTP addresses of the people to look up
        :return: a Person for each person the server returned, with a PersonInsightCollection in 'insights'
        """
        if self.account.version.build < EXCHANGE_2016:
            raise ServiceVersionException('%s is only supported from Exchange 2016' % self.SERVICE_NAME)
        email_addresses = list(email_addresses)
        if not email_addresses:
            raise ValueError("'email_addresses' must not be empty")
        return self._get_people(email_addresses)

    def _get_people(self, email_addresses):
        for reader in self._chunked_get_elements(self.get_payload, items=email_addresses):
            if isinstance(reader, Exception):
                yield reader
                continue
            person = Person()
            person.load_from_xml(reader)
            yield person

    def get_payload(self, email_addresses):
        writer = self._writer()
        writer.start('m:%s' % self.SERVICE_NAME)
        writer.start('m:EmailAddresses')
        for email_address in email_addresses:
            writer.element('t:String', email_address)
        writer.end()
        writer.end()
        return writer.root
