import pytest

from reference_data import ALL_COUNTRIES, BCR, FRANCE, NO_HQ_ORG_ID, ORG_ID, OTHER_ORG_ID, SCC, USA
from transferguard.models.recipient import (
    ExternalOrganization,
    Organization,
    ProcessingLocation,
    Recipient,
    RecipientType,
)
from transferguard.storage import InMemoryRecipientStore


@pytest.fixture
def store():
    s = InMemoryRecipientStore()
    for country in ALL_COUNTRIES:
        s.add_country(country)
    s.add_transfer_mechanism(SCC)
    s.add_transfer_mechanism(BCR)

    s.add_organization(Organization(id=ORG_ID, name="Acme SAS", headquarters_country_id=FRANCE.id))
    s.add_organization(Organization(id=OTHER_ORG_ID, name="Globex Ltd", headquarters_country_id=USA.id))
    s.add_organization(Organization(id=NO_HQ_ORG_ID, name="Initech"))

    s.add_external_organization(ExternalOrganization(id="ext-1", organization_id=ORG_ID, legal_name="Mailer Inc."))
    s.add_external_organization(ExternalOrganization(id="ext-2", organization_id=OTHER_ORG_ID, legal_name="Other Corp"))
    return s


@pytest.fixture
def add_recipient(store):
    """Factory that writes a recipient straight into the store (no validation)."""

    def _add(recipient_id, recipient_type, parent=None, organization_id=ORG_ID,
             external_organization_id="ext-1", name=None, is_active=True):
        if recipient_type == RecipientType.INTERNAL_DEPARTMENT:
            external_organization_id = None
        return store.save_recipient(Recipient(
            id=recipient_id,
            organization_id=organization_id,
            name=name or recipient_id,
            type=recipient_type,
            parent_recipient_id=parent,
            external_organization_id=external_organization_id,
            is_active=is_active,
        ))

    return _add


@pytest.fixture
def add_location(store):
    counter = {"n": 0}

    def _add(recipient_id, country, mechanism=None, organization_id=ORG_ID, is_active=True):
        counter["n"] += 1
        return store.add_processing_location(ProcessingLocation(
            id=f"loc-{counter['n']}",
            organization_id=organization_id,
            recipient_id=recipient_id,
            country_id=country.id,
            service=f"Service {counter['n']}",
            transfer_mechanism_id=mechanism.id if mechanism else None,
            is_active=is_active,
        ))

    return _add


@pytest.fixture
def processor_chain(add_recipient):
    """A(PROCESSOR) <- B(SUB_PROCESSOR) <- C(SUB_PROCESSOR)"""
    a = add_recipient("A", RecipientType.PROCESSOR)
    b = add_recipient("B", RecipientType.SUB_PROCESSOR, parent="A")
    c = add_recipient("C", RecipientType.SUB_PROCESSOR, parent="B")
    return a, b, c
