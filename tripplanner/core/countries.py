"""
Supported countries and their arrival airports, used as trip origins.
"""

from pydantic import BaseModel

from tripplanner.core.exceptions import InvalidTripRequestError
from tripplanner.core.schemas import Coordinate


class Airport(BaseModel):
    name: str
    code: str
    latitude: float
    longitude: float


class CountryConfig(BaseModel):
    key: str
    name: str
    code: str
    currency: str
    min_budget_per_day: float
    airports: list[Airport]


COUNTRIES: dict[str, CountryConfig] = {
    "lebanon": CountryConfig(
        key="lebanon",
        name="Lebanon",
        code="LB",
        currency="USD",
        min_budget_per_day=50,
        airports=[
            Airport(
                name="Beirut-Rafic Hariri International Airport",
                code="BEY",
                latitude=33.8208,
                longitude=35.4883,
            )
        ],
    ),
    "italy": CountryConfig(
        key="italy",
        name="Italy",
        code="IT",
        currency="EUR",
        min_budget_per_day=80,
        airports=[
            Airport(name="Rome Fiumicino Airport", code="FCO", latitude=41.8003, longitude=12.2389),
            Airport(name="Milan Malpensa Airport", code="MXP", latitude=45.6306, longitude=8.7281),
            Airport(name="Venice Marco Polo Airport", code="VCE", latitude=45.5053, longitude=12.3519),
            Airport(name="Naples International Airport", code="NAP", latitude=40.8860, longitude=14.2908),
        ],
    ),
    "turkey": CountryConfig(
        key="turkey",
        name="Turkey",
        code="TR",
        currency="TRY",
        min_budget_per_day=40,
        airports=[
            Airport(name="Istanbul Airport", code="IST", latitude=41.2608, longitude=28.7418),
            Airport(name="Antalya Airport", code="AYT", latitude=36.8987, longitude=30.8006),
        ],
    ),
    "thailand": CountryConfig(
        key="thailand",
        name="Thailand",
        code="TH",
        currency="THB",
        min_budget_per_day=35,
        airports=[
            Airport(name="Suvarnabhumi Airport (Bangkok)", code="BKK", latitude=13.6900, longitude=100.7501),
            Airport(name="Phuket International Airport", code="HKT", latitude=8.1132, longitude=98.3169),
            Airport(name="Chiang Mai International Airport", code="CNX", latitude=18.7668, longitude=98.9625),
        ],
    ),
    "uae": CountryConfig(
        key="uae",
        name="United Arab Emirates",
        code="AE",
        currency="AED",
        min_budget_per_day=100,
        airports=[
            Airport(name="Dubai International Airport", code="DXB", latitude=25.2532, longitude=55.3657),
            Airport(name="Abu Dhabi International Airport", code="AUH", latitude=24.4330, longitude=54.6511),
        ],
    ),
}

# Aliases that users commonly type instead of the key
_COUNTRY_ALIASES = {
    "united arab emirates": "uae",
    "türkiye": "turkey",
    "turkiye": "turkey",
}


def get_country(name: str) -> CountryConfig | None:
    key = name.strip().lower()
    key = _COUNTRY_ALIASES.get(key, key)
    if key in COUNTRIES:
        return COUNTRIES[key]
    for config in COUNTRIES.values():
        if config.name.lower() == key or config.code.lower() == key:
            return config
    return None


def resolve_origin(country: str, origin: Coordinate | None = None) -> Coordinate:
    """
    Pick the trip origin: the explicit coordinate if given, else the country's main airport.

    Raises:
        InvalidTripRequestError: unknown country and no explicit origin
    """
    if origin is not None:
        return origin

    config = get_country(country)
    if config is None or not config.airports:
        raise InvalidTripRequestError(
            f"No arrival airport known for {country!r}; an explicit origin is required"
        )

    airport = config.airports[0]
    return Coordinate(lat=airport.latitude, lng=airport.longitude)
