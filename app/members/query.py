"""
Search, sort and paginate member lists, and resolve GDI guide names.

Everything here works on already-fetched sequences of members (model
instances or any object with the same attributes) and never touches the
database, so it can be called from views, admin actions or tests alike.
"""

import datetime
import unicodedata
from dataclasses import dataclass, field

from django.core.paginator import EmptyPage, Paginator
from django.utils.dateparse import parse_date

from .models import Member

UNASSIGNED = "unassigned"
GROUP_NOT_FOUND = "group not found"
GUIDE_NOT_FOUND = "guide not found"

SORT_ASC = 'asc'
SORT_DESC = 'desc'
SORT_ORDERS = (SORT_ASC, SORT_DESC)

PAGE_SIZE_OPTIONS = (10, 25, 50, 100)
DEFAULT_SORT_KEY = 'full_name'

ROLE_LABELS = dict(Member.ROLE_CHOICES)


def _collation_key(value):
    """Accent- and case-insensitive ordering key, exact text as tie breaker."""
    text = '' if value is None else str(value)
    decomposed = unicodedata.normalize('NFKD', text)
    base = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), text)


def _date_ordinal(value):
    """Missing or unparsable dates sort as the earliest possible value."""
    if isinstance(value, datetime.datetime):
        return value.date().toordinal()
    if isinstance(value, datetime.date):
        return value.toordinal()
    if isinstance(value, str) and value:
        try:
            parsed = parse_date(value.strip()[:10])
        except ValueError:
            parsed = None
        if parsed:
            return parsed.toordinal()
    return 0


def _number(value):
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0


def _text_field(name):
    return lambda member: _collation_key(getattr(member, name, None))


def _date_field(name):
    return lambda member: _date_ordinal(getattr(member, name, None))


def _full_name(member):
    return _collation_key(f"{member.first_name or ''} {member.last_name or ''}")


# Relational and multi-valued fields (email, GDI, areas, avatar, flags,
# baptism date, roles) are deliberately not sortable.
SORT_KEYS = {
    'full_name': _full_name,
    'first_name': _text_field('first_name'),
    'last_name': _text_field('last_name'),
    'phone': _text_field('phone'),
    'status': _text_field('status'),
    'id': lambda member: _number(member.pk),
    'birth_date': _date_field('birth_date'),
    'church_join_date': _date_field('church_join_date'),
}


def _role_terms(member):
    for role in getattr(member, 'roles', None) or []:
        yield role
        yield ROLE_LABELS.get(role, role)


def _search_values(member):
    first = member.first_name or ''
    last = member.last_name or ''
    yield first
    yield last
    yield f"{first} {last}"
    yield member.email or ''
    yield from _role_terms(member)


# Documented so the search box help text and the tests agree.
SEARCH_FIELDS = ('first_name', 'last_name', 'full_name', 'email', 'roles')


def search_members(members, term):
    """Members matching ``term`` in any of SEARCH_FIELDS, in input order."""
    needle = (term or '').strip().casefold()
    if not needle:
        return list(members)
    return [
        member for member in members
        if any(needle in value.casefold() for value in _search_values(member))
    ]


def sort_members(members, sort_key=DEFAULT_SORT_KEY, sort_order=SORT_ASC):
    """Stable sort by one of SORT_KEYS."""
    try:
        key = SORT_KEYS[sort_key]
    except KeyError:
        raise ValueError(f"Unknown sort key: {sort_key!r}") from None
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {sort_order!r}")
    # reverse=True keeps equal elements in their original order.
    return sorted(members, key=key, reverse=sort_order == SORT_DESC)


@dataclass
class MemberPage:
    items: list
    total_count: int
    page: int
    page_size: int
    sort_key: str = DEFAULT_SORT_KEY
    sort_order: str = SORT_ASC
    search: str = ''

    @property
    def total_pages(self):
        return -(-self.total_count // self.page_size)

    @property
    def start_index(self):
        """1-based index of the first item on this page, 0 for an empty page."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_index(self):
        if not self.items:
            return 0
        return self.start_index + len(self.items) - 1

    @property
    def has_previous(self):
        return self.page > 1

    @property
    def has_next(self):
        return self.page < self.total_pages


def query_members(members, search=None, sort_key=DEFAULT_SORT_KEY, sort_order=SORT_ASC, page=1, page_size=PAGE_SIZE_OPTIONS[0]):
    """
    Filter, sort and slice ``members`` for a list page.

    ``total_count`` is the number of members matching ``search`` before
    slicing. A page number outside 1..total_pages gives an empty page.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")

    matches = sort_members(search_members(members, search), sort_key, sort_order)
    paginator = Paginator(matches, page_size)
    try:
        items = list(paginator.page(page).object_list)
    except EmptyPage:
        items = []

    return MemberPage(
        items=items,
        total_count=len(matches),
        page=page,
        page_size=page_size,
        sort_key=sort_key,
        sort_order=sort_order,
        search=(search or '').strip(),
    )


@dataclass
class GuideNameResolver:
    """Index the GDI and member rosters once, then resolve many members."""
    gdis: list
    members: list
    _gdis_by_id: dict = field(init=False, repr=False)
    _members_by_id: dict = field(init=False, repr=False)

    def __post_init__(self):
        self._gdis_by_id = {gdi.pk: gdi for gdi in self.gdis}
        self._members_by_id = {member.pk: member for member in self.members}

    def __call__(self, member):
        gdi_id = getattr(member, 'assigned_gdi_id', None)
        if not gdi_id:
            return UNASSIGNED
        gdi = self._gdis_by_id.get(gdi_id)
        if gdi is None:
            return GROUP_NOT_FOUND
        guide = self._members_by_id.get(gdi.guide_id)
        if guide is None:
            return GUIDE_NOT_FOUND
        return f"{guide.first_name} {guide.last_name}"


def resolve_guide_name(member, gdis, members):
    """
    Display name of the guide of ``member``'s GDI.

    Returns UNASSIGNED, GROUP_NOT_FOUND or GUIDE_NOT_FOUND instead of
    raising when a reference can't be followed.
    """
    return GuideNameResolver(list(gdis), list(members))(member)
