"""
Filter-set models for the Marketplace Watcher system.

A filter set is a tagged union of per-platform frozen dataclasses. Each
variant declares its vocabulary as ``FilterField`` entries mapping the short
tokens used in chat callbacks (``dep:m``, ``sort:a``) to stored values
(``masculino``, ``price_asc``).

Fields equal to the platform default are normalised to unset, so a set with
nothing but defaults is indistinguishable from no filters at all and
serialises to ``None``.
"""

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

FLAG = "flag"
CHOICE = "choice"
TEXT = "text"

CLEAR_KEY = "clr"
CALLBACK_PREFIX = "f"


@dataclass
class FilterField:
    """Vocabulary of one filter field."""

    name: str
    kind: str
    tokens: Dict[str, str] = field(default_factory=dict)
    default: Optional[str] = None

    def resolve(self, token: str) -> Optional[str]:
        """Map a callback token (or an already-stored value) to a stored value."""
        if token in self.tokens:
            return self.tokens[token]
        if token in self.tokens.values():
            return token
        return None

    def token_for(self, value: str) -> Optional[str]:
        for token, stored in self.tokens.items():
            if stored == value:
                return token
        return None


def _normalize_text(value: Any) -> Optional[str]:
    """Free-text price fields hold digits only."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or not value.isdigit():
        return None
    return value


@dataclass(frozen=True)
class BaseFilterSet:
    """Common behaviour of every platform filter set."""

    platform: ClassVar[str] = ""
    FIELDS: ClassVar[Tuple[FilterField, ...]] = ()

    @classmethod
    def field_spec(cls, key: str) -> Optional[FilterField]:
        for spec in cls.FIELDS:
            if spec.name == key:
                return spec
        return None

    def effective(self, key: str) -> Any:
        """Value of a field with the platform default applied."""
        spec = self.field_spec(key)
        if spec is None:
            raise KeyError(key)
        value = getattr(self, key)
        if spec.kind == FLAG:
            return bool(value)
        return value if value is not None else spec.default

    def is_active(self, key: str, token: str) -> bool:
        """Whether the option ``key:token`` is currently in effect."""
        spec = self.field_spec(key)
        if spec is None:
            return False
        if spec.kind == FLAG:
            return bool(getattr(self, key))
        if spec.kind == TEXT:
            return getattr(self, key) is not None and getattr(self, key) == token
        value = spec.resolve(token)
        return value is not None and self.effective(key) == value

    def toggled(self, key: str, token: str) -> "BaseFilterSet":
        """
        Return a copy with ``key:token`` toggled.

        Flags flip. Enumerated and free-text fields use select-again-to-clear.
        Selecting a field's default value, an unknown key or an unknown value
        leaves the set unchanged.
        """
        spec = self.field_spec(key)
        if spec is None:
            return self

        current = getattr(self, key)

        if spec.kind == FLAG:
            return dataclasses.replace(self, **{key: not current})

        if spec.kind == TEXT:
            value = _normalize_text(token)
        else:
            value = spec.resolve(token)

        if value is None or value == spec.default:
            return self

        new_value = None if current == value else value
        return dataclasses.replace(self, **{key: new_value})

    def callback_token(self, key: str, token: str) -> str:
        """
        Token an option button should send to bring ``key:token`` into effect.

        Selecting a default value is a no-op, so the default option of a field
        holding another value sends that value instead, which clears it.
        """
        spec = self.field_spec(key)
        if spec is None or spec.kind != CHOICE:
            return token
        current = getattr(self, key)
        if current is None or spec.resolve(token) != spec.default:
            return token
        return spec.token_for(current) or current

    def is_default(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        """Non-default fields only."""
        data: Dict[str, Any] = {}
        for spec in self.FIELDS:
            value = getattr(self, spec.name)
            if spec.kind == FLAG:
                if value:
                    data[spec.name] = True
            elif value is not None and value != spec.default:
                data[spec.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseFilterSet":
        """Build a filter set, dropping unknown keys and invalid values."""
        values: Dict[str, Any] = {}
        for spec in cls.FIELDS:
            if spec.name not in data:
                continue
            raw = data[spec.name]
            if spec.kind == FLAG:
                if raw is True:
                    values[spec.name] = True
            elif spec.kind == TEXT:
                text = _normalize_text(raw)
                if text is not None:
                    values[spec.name] = text
            elif isinstance(raw, str) and raw in spec.tokens.values():
                if raw != spec.default:
                    values[spec.name] = raw
        return cls(**values)


@dataclass(frozen=True)
class EnjoeiFilters(BaseFilterSet):
    """Enjoei search filters."""

    platform: ClassVar[str] = "enjoei"
    FIELDS: ClassVar[Tuple[FilterField, ...]] = (
        FilterField(
            "lp",
            CHOICE,
            {"24h": "24h", "7d": "7d", "14d": "14d", "30d": "30d"},
            default="24h",
        ),
        FilterField("used", FLAG),
        FilterField("dep", CHOICE, {"m": "masculino", "f": "feminino"}),
        FilterField(
            "sz", CHOICE, {"pp": "pp", "p": "p", "m": "m", "g": "g", "gg": "gg"}
        ),
        FilterField("sr", CHOICE, {"near": "near_regions", "country": "same_country"}),
        FilterField("sort", CHOICE, {"a": "price_asc", "d": "price_desc"}),
    )

    lp: Optional[str] = None
    used: bool = False
    dep: Optional[str] = None
    sz: Optional[str] = None
    sr: Optional[str] = None
    sort: Optional[str] = None


@dataclass(frozen=True)
class MercadoLivreFilters(BaseFilterSet):
    """Mercado Livre search filters."""

    platform: ClassVar[str] = "ml"
    FIELDS: ClassVar[Tuple[FilterField, ...]] = (
        FilterField("cond", CHOICE, {"novo": "novo", "usado": "usado"}),
        FilterField("sort", CHOICE, {"a": "price_asc", "d": "price_desc"}),
        FilterField("ship", FLAG),
    )

    cond: Optional[str] = None
    sort: Optional[str] = None
    ship: bool = False


@dataclass(frozen=True)
class OlxFilters(BaseFilterSet):
    """OLX search filters. Results are sorted by date unless chosen otherwise."""

    platform: ClassVar[str] = "olx"
    FIELDS: ClassVar[Tuple[FilterField, ...]] = (
        FilterField(
            "sort",
            CHOICE,
            {"rel": "relevance", "date": "date", "a": "price_asc", "d": "price_desc"},
            default="date",
        ),
        FilterField("ps", TEXT),
        FilterField("pe", TEXT),
    )

    sort: Optional[str] = None
    ps: Optional[str] = None
    pe: Optional[str] = None


FilterSet = Union[EnjoeiFilters, MercadoLivreFilters, OlxFilters]

_FILTER_TYPES: Dict[str, Type[BaseFilterSet]] = {
    EnjoeiFilters.platform: EnjoeiFilters,
    MercadoLivreFilters.platform: MercadoLivreFilters,
    OlxFilters.platform: OlxFilters,
}


def filters_for_platform(platform: str) -> Type[BaseFilterSet]:
    """Return the filter-set variant for a platform id."""
    try:
        return _FILTER_TYPES[platform]
    except KeyError:
        raise ValueError(f"No filter set defined for platform '{platform}'") from None


def serialize_filters(filters: Optional[BaseFilterSet]) -> Optional[str]:
    """
    Serialize a filter set to compact JSON with sorted keys.

    Returns None when there is nothing non-default to store.
    """
    if filters is None:
        return None
    data = filters.to_dict()
    if not data:
        return None
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def deserialize_filters(platform: str, blob: Optional[str]) -> Optional[BaseFilterSet]:
    """
    Rebuild a filter set from its stored blob.

    Malformed or non-object JSON is treated as absent and unknown values are
    dropped. Never raises for bad input data.
    """
    if not blob:
        return None

    filter_type = _FILTER_TYPES.get(platform)
    if filter_type is None:
        return None

    try:
        data = json.loads(blob)
    except (TypeError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    filters = filter_type.from_dict(data)
    return None if filters.is_default() else filters


@dataclass
class FilterOption:
    """One togglable option of a filter view."""

    label: str
    key: str
    value: str
    active: bool = False

    @property
    def display_text(self) -> str:
        if self.key == CLEAR_KEY:
            return self.label
        marker = "✅" if self.active else "⬜"
        return f"{marker} {self.label}"

    def callback_data(self, watch_id: int) -> str:
        return f"{CALLBACK_PREFIX}:{watch_id}:{self.key}:{self.value}"


@dataclass
class FilterView:
    """Presentation-ready description of a watch's filter options."""

    watch_id: int
    keyword: str
    platform_name: str
    rows: List[List[FilterOption]]
    summary: str = ""

    @property
    def title(self) -> str:
        return f'Filtros para "{self.keyword}" ({self.platform_name})'

    def active_options(self) -> List[FilterOption]:
        return [
            option
            for row in self.rows
            for option in row
            if option.active and option.key != CLEAR_KEY
        ]

    def to_inline_keyboard(self) -> Dict[str, List[List[Dict[str, str]]]]:
        """Render as a Telegram ``reply_markup`` inline keyboard."""
        return {
            "inline_keyboard": [
                [
                    {
                        "text": option.display_text,
                        "callback_data": option.callback_data(self.watch_id),
                    }
                    for option in row
                ]
                for row in self.rows
            ]
        }


def parse_callback_data(data: str) -> Optional[Tuple[int, str, str]]:
    """
    Split ``f:<watch_id>:<key>:<value>`` callback data.

    Returns None for anything that is not a filter callback.
    """
    parts = data.split(":", 3)
    if len(parts) != 4 or parts[0] != CALLBACK_PREFIX:
        return None
    try:
        watch_id = int(parts[1])
    except ValueError:
        return None
    return watch_id, parts[2], parts[3]
