from transferguard.models.recipient import Country, JurisdictionTag

EU_EEA = (JurisdictionTag.EU, JurisdictionTag.EEA)


def is_eu_eea(country: Country) -> bool:
    return country.has_tag(*EU_EEA)


def is_same_jurisdiction(a: Country, b: Country) -> bool:
    """
    Both inside the EU/EEA, or both covered by an adequacy decision.
    """
    if is_eu_eea(a) and is_eu_eea(b):
        return True

    return a.has_tag(JurisdictionTag.ADEQUATE) and b.has_tag(JurisdictionTag.ADEQUATE)


def is_third_country(country: Country) -> bool:
    # Untagged countries count as third countries.
    return not country.has_tag(JurisdictionTag.EU, JurisdictionTag.EEA, JurisdictionTag.ADEQUATE)


def requires_safeguards(origin: Country, destination: Country) -> bool:
    """
    GDPR Art. 44-46: an EU/EEA exporter sending to a third country.
    """
    return is_eu_eea(origin) and is_third_country(destination)
