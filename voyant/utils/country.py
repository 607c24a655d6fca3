import pycountry
from typing import Optional


def iso2_to_country_name(code: str) -> Optional[str]:
    """
    Convert ISO-2 country code (e.g. 'JP') to country name ('Japan')
    """
    if not code:
        return None

    country = pycountry.countries.get(alpha_2=code.upper())
    return country.name if country else None


def lookup_country(name: str) -> Optional[dict]:
    """
    Resolve a free-text country name ('france', 'Viet Nam', 'GB') to
    {name, alpha_2, alpha_3}, or None when pycountry doesn't know it.
    """
    if not name or len(name.strip()) < 2:
        return None
    try:
        country = pycountry.countries.lookup(name.strip())
    except LookupError:
        return None
    return {"name": country.name, "alpha_2": country.alpha_2, "alpha_3": country.alpha_3}
