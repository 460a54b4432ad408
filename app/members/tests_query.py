import datetime

from django.test import SimpleTestCase

from .models import GDI, Member
from .query import (
    GROUP_NOT_FOUND, GUIDE_NOT_FOUND, UNASSIGNED, GuideNameResolver, query_members, resolve_guide_name,
    search_members, sort_members,
)


def make_member(pk, first_name, last_name='Member', **kwargs):
    return Member(pk=pk, first_name=first_name, last_name=last_name, **kwargs)


class PaginationTests(SimpleTestCase):
    def setUp(self):
        self.members = [make_member(i, f"Member{i:02d}") for i in range(1, 26)]

    def test_page_counts(self):
        page = query_members(self.members, page=1, page_size=10)
        self.assertEqual(page.total_count, 25)
        self.assertEqual(page.total_pages, 3)
        self.assertEqual(len(page.items), 10)
        self.assertFalse(page.has_previous)
        self.assertTrue(page.has_next)

    def test_last_page_is_partial(self):
        page = query_members(self.members, page=3, page_size=10)
        self.assertEqual([m.pk for m in page.items], [21, 22, 23, 24, 25])
        self.assertEqual((page.start_index, page.end_index), (21, 25))
        self.assertFalse(page.has_next)

    def test_page_beyond_last_is_empty(self):
        page = query_members(self.members, page=4, page_size=10)
        self.assertEqual(page.items, [])
        self.assertEqual(page.total_count, 25)
        self.assertEqual((page.start_index, page.end_index), (0, 0))

    def test_page_zero_is_empty(self):
        self.assertEqual(query_members(self.members, page=0, page_size=10).items, [])

    def test_page_size_must_be_positive(self):
        with self.assertRaises(ValueError):
            query_members(self.members, page_size=0)

    def test_no_members(self):
        page = query_members([], page=1, page_size=10)
        self.assertEqual(page.items, [])
        self.assertEqual(page.total_pages, 0)
        self.assertFalse(page.has_next)

    def test_total_count_is_after_search(self):
        page = query_members(self.members, search='member1', page=1, page_size=5)
        # Member10 .. Member19
        self.assertEqual(page.total_count, 10)
        self.assertEqual(page.total_pages, 2)
        self.assertEqual(page.search, 'member1')

    def test_input_is_not_modified(self):
        members = list(reversed(self.members))
        query_members(members, page=1, page_size=10)
        self.assertEqual(members[0].pk, 25)


class SortTests(SimpleTestCase):
    def test_names_ignore_accents_and_case(self):
        members = [
            make_member(1, 'bruno', 'Silva'),
            make_member(2, 'Álvaro', 'Diaz'),
            make_member(3, 'Ana', 'Lopez'),
            make_member(4, 'Émile', 'Roux'),
        ]
        self.assertEqual([m.pk for m in sort_members(members, 'full_name')], [2, 3, 1, 4])
        self.assertEqual([m.pk for m in sort_members(members, 'full_name', 'desc')], [4, 1, 3, 2])

    def test_full_name_uses_last_name_after_first(self):
        members = [make_member(1, 'Ana', 'Torres'), make_member(2, 'Ana', 'Benitez')]
        self.assertEqual([m.pk for m in sort_members(members, 'full_name')], [2, 1])

    def test_ties_keep_input_order(self):
        members = [
            make_member(1, 'Carla', status='Active'),
            make_member(2, 'Ana', status='New'),
            make_member(3, 'Bea', status='Active'),
            make_member(4, 'Dora', status='New'),
        ]
        self.assertEqual([m.pk for m in sort_members(members, 'status')], [1, 3, 2, 4])
        self.assertEqual([m.pk for m in sort_members(members, 'status', 'desc')], [2, 4, 1, 3])

    def test_missing_dates_sort_first(self):
        members = [
            make_member(1, 'A', church_join_date=datetime.date(2021, 5, 1)),
            make_member(2, 'B', church_join_date=None),
            make_member(3, 'C', church_join_date=datetime.date(2019, 1, 1)),
        ]
        self.assertEqual([m.pk for m in sort_members(members, 'church_join_date')], [2, 3, 1])
        self.assertEqual([m.pk for m in sort_members(members, 'church_join_date', 'desc')], [1, 3, 2])

    def test_date_strings_are_parsed(self):
        members = [
            make_member(1, 'A', birth_date='1990-04-02'),
            make_member(2, 'B', birth_date='not a date'),
            make_member(3, 'C', birth_date=datetime.date(1985, 1, 1)),
        ]
        self.assertEqual([m.pk for m in sort_members(members, 'birth_date')], [2, 3, 1])

    def test_sort_by_id(self):
        members = [make_member(3, 'A'), make_member(1, 'B'), make_member(2, 'C')]
        self.assertEqual([m.pk for m in sort_members(members, 'id', 'desc')], [3, 2, 1])

    def test_unknown_sort_key(self):
        with self.assertRaises(ValueError):
            sort_members([make_member(1, 'A')], 'roles')

    def test_unknown_sort_order(self):
        with self.assertRaises(ValueError):
            sort_members([make_member(1, 'A')], 'full_name', 'sideways')

    def test_query_applies_sort_before_paging(self):
        members = [make_member(i, name) for i, name in enumerate(['Eva', 'Dan', 'Cid', 'Bob', 'Abe'], start=1)]
        page = query_members(members, sort_key='first_name', page=1, page_size=2)
        self.assertEqual([m.first_name for m in page.items], ['Abe', 'Bob'])


class SearchTests(SimpleTestCase):
    def setUp(self):
        self.ana = make_member(1, 'Ana', 'Lopez', email='ana@example.com', roles=['Leader'])
        self.ben = make_member(2, 'Ben', 'Ruiz', email='ben.ruiz@church.org', roles=['GeneralAttendee'])
        self.carla = make_member(3, 'Carla', 'Anaya', email='', roles=[])
        self.members = [self.ana, self.ben, self.carla]

    def test_blank_term_returns_everyone(self):
        self.assertEqual(search_members(self.members, '  '), self.members)
        self.assertEqual(search_members(self.members, None), self.members)

    def test_matches_names_case_insensitively(self):
        self.assertEqual(search_members(self.members, 'ANA'), [self.ana, self.carla])

    def test_matches_full_name(self):
        self.assertEqual(search_members(self.members, 'ben ruiz'), [self.ben])

    def test_matches_email(self):
        self.assertEqual(search_members(self.members, 'church.org'), [self.ben])

    def test_matches_role_value_and_label(self):
        self.assertEqual(search_members(self.members, 'leader'), [self.ana])
        self.assertEqual(search_members(self.members, 'GeneralAttendee'), [self.ben])
        self.assertEqual(search_members(self.members, 'general attendee'), [self.ben])

    def test_phone_is_not_searched(self):
        self.ana.phone = '5551234567'
        self.assertEqual(search_members(self.members, '555'), [])


class GuideNameTests(SimpleTestCase):
    def setUp(self):
        self.guide = make_member(1, 'Pedro', 'Gomez')
        self.gdi = GDI(pk=10, name='Central', guide_id=self.guide.pk)
        self.orphan_gdi = GDI(pk=11, name='North', guide_id=99)
        self.guideless_gdi = GDI(pk=12, name='South', guide_id=None)
        self.gdis = [self.gdi, self.orphan_gdi, self.guideless_gdi]
        self.members = [self.guide]

    def test_guide_name(self):
        member = make_member(2, 'Ana', assigned_gdi_id=10)
        self.assertEqual(resolve_guide_name(member, self.gdis, self.members), 'Pedro Gomez')

    def test_unassigned(self):
        member = make_member(2, 'Ana')
        self.assertEqual(resolve_guide_name(member, self.gdis, self.members), UNASSIGNED)

    def test_group_not_found(self):
        member = make_member(2, 'Ana', assigned_gdi_id=404)
        self.assertEqual(resolve_guide_name(member, self.gdis, self.members), GROUP_NOT_FOUND)

    def test_guide_not_found(self):
        member = make_member(2, 'Ana', assigned_gdi_id=11)
        self.assertEqual(resolve_guide_name(member, self.gdis, self.members), GUIDE_NOT_FOUND)

    def test_group_without_guide(self):
        member = make_member(2, 'Ana', assigned_gdi_id=12)
        self.assertEqual(resolve_guide_name(member, self.gdis, self.members), GUIDE_NOT_FOUND)

    def test_resolver_reuses_index(self):
        resolve = GuideNameResolver(self.gdis, self.members)
        names = [resolve(make_member(i, 'X', assigned_gdi_id=gdi_id)) for i, gdi_id in enumerate([10, None, 11], start=2)]
        self.assertEqual(names, ['Pedro Gomez', UNASSIGNED, GUIDE_NOT_FOUND])
