"""
Pydantic models for validating the records returned by the MaxMind reader.

These models serve as a strict contract for the raw dictionaries decoded from
the database, ensuring that any deviation from this structure is caught at the
infrastructure layer before being passed to the application core.
"""

from typing import List, Optional

from pydantic import BaseModel


class Names(BaseModel):
    """Localized names; only English is mapped to the domain."""

    en: Optional[str] = None


class Country(BaseModel):
    iso_code: Optional[str] = None
    names: Names = Names()


class Subdivision(BaseModel):
    iso_code: Optional[str] = None
    names: Names = Names()


class City(BaseModel):
    names: Names = Names()


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    time_zone: Optional[str] = None


class GeoRecord(BaseModel):
    """
    Represents one record of a GeoLite2/GeoIP2 City or Country database.

    Every section is optional: Country editions carry no city, subdivision
    or location data, and City records for anycast or satellite ranges often
    lack some of them. Unknown keys (postal, continent, traits, ...) are
    ignored.
    """

    country: Optional[Country] = None
    subdivisions: List[Subdivision] = []
    city: Optional[City] = None
    location: Optional[Location] = None
