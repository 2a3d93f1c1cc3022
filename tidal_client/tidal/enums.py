"""
Enumerations shared by TIDAL requests and responses.

Every member's value is the exact string TIDAL puts on the wire.
"""

from enum import Enum


class DeviceType(str, Enum):
    """Device type reported with every catalog request."""
    BROWSER = "BROWSER"


class AudioQuality(str, Enum):
    """
    Audio quality tiers.

    TIDAL spells the top tier HI_RES_LOSSLESS on the stream and playback
    endpoints; HIRES_LOSSLESS is still accepted when parsing responses.
    """
    LOW = "LOW"
    HIGH = "HIGH"
    LOSSLESS = "LOSSLESS"
    HI_RES_LOSSLESS = "HI_RES_LOSSLESS"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.upper() == "HIRES_LOSSLESS":
            return cls.HI_RES_LOSSLESS
        return None

    @property
    def rank(self) -> int:
        """Position of this tier, lowest first."""
        return list(AudioQuality).index(self)


class Order(str, Enum):
    """Sort key for favorites listings."""
    DATE = "DATE"


class OrderDirection(str, Enum):
    """Sort direction for favorites listings."""
    ASC = "ASC"
    DESC = "DESC"


class AlbumType(str, Enum):
    """Release types, also used as the artist albums filter."""
    ALBUM = "ALBUM"
    LP = "LP"
    EP = "EP"
    SINGLE = "SINGLE"
    EPS_AND_SINGLES = "EPSANDSINGLES"
    COMPILATIONS = "COMPILATIONS"


class ResourceType(str, Enum):
    """
    Kinds of catalog resources.

    Search takes the plural spelling ("TRACKS") while top hits report
    either form, so parse() accepts both.
    """
    ARTIST = "ARTIST"
    ALBUM = "ALBUM"
    TRACK = "TRACK"
    VIDEO = "VIDEO"
    PLAYLIST = "PLAYLIST"
    USER_PROFILE = "USER_PROFILE"

    @property
    def plural(self) -> str:
        """Plural spelling used by the search 'types' parameter."""
        return f"{self.value}S"

    @classmethod
    def parse(cls, value: str) -> "ResourceType":
        """
        Parse a singular or plural resource type name.

        Raises:
            ValueError: If the name is not a known resource type.
        """
        name = value.upper()
        for member in cls:
            if name in (member.value, member.plural):
                return member
        raise ValueError(f"Unknown resource type: {value}")
