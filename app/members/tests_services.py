from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase

from .models import GDI, Member, MinistryArea
from .services import (
    RosterMismatch, RosterUpdateError, bulk_add_members, deactivate_member, repair_rosters,
    roster_inconsistencies, save_member, set_area_roster, set_gdi_roster,
)


class RosterTestCase(TestCase):
    def setUp(self):
        self.guide = Member.objects.create(first_name='Pedro', last_name='Gomez', status=Member.STATUS_ACTIVE)
        self.ana = Member.objects.create(first_name='Ana', last_name='Lopez')
        self.ben = Member.objects.create(first_name='Ben', last_name='Ruiz')
        self.central = GDI.objects.create(name='Central', guide=self.guide)
        self.north = GDI.objects.create(name='North', guide=self.guide)
        self.worship = MinistryArea.objects.create(name='Worship', description='Music and singing', leader=self.guide)
        self.ushers = MinistryArea.objects.create(name='Ushers', description='Welcome at the door', leader=self.guide)


class SaveMemberTests(RosterTestCase):
    def test_new_member_joins_rosters(self):
        member = Member(first_name='Carla', last_name='Diaz')
        save_member(member, gdi=self.central, areas=[self.worship])
        self.assertIsNotNone(member.pk)
        self.assertEqual(member.assigned_gdi, self.central)
        self.assertIn(member, self.central.members.all())
        self.assertIn(member, self.worship.members.all())
        self.assertEqual(list(member.assigned_areas.all()), [self.worship])
        self.assertEqual(roster_inconsistencies(), [])

    def test_moving_gdi_updates_both_rosters(self):
        save_member(self.ana, gdi=self.central)
        save_member(self.ana, gdi=self.north)
        self.assertNotIn(self.ana, self.central.members.all())
        self.assertIn(self.ana, self.north.members.all())
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.north)
        self.assertEqual(roster_inconsistencies(), [])

    def test_clearing_gdi(self):
        save_member(self.ana, gdi=self.central)
        save_member(self.ana, gdi=None)
        self.assertFalse(self.central.members.exists())
        self.assertIsNone(Member.objects.get(pk=self.ana.pk).assigned_gdi)

    def test_changing_areas(self):
        save_member(self.ana, areas=[self.worship])
        save_member(self.ana, areas=[self.ushers])
        self.assertFalse(self.worship.members.exists())
        self.assertEqual(list(self.ushers.members.all()), [self.ana])
        self.assertEqual(list(self.ana.assigned_areas.all()), [self.ushers])
        self.assertEqual(roster_inconsistencies(), [])

    def test_logs_save(self):
        with self.assertLogs('members.services', level='INFO') as logs:
            save_member(self.ana, gdi=self.central)
        self.assertIn(f'Saved member {self.ana.pk}', logs.output[0])


class SetGDIRosterTests(RosterTestCase):
    def test_roster_sets_back_references(self):
        set_gdi_roster(self.central, [self.ana, self.ben])
        self.assertEqual(set(self.central.members.all()), {self.ana, self.ben})
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.central)
        self.assertEqual(Member.objects.get(pk=self.ben.pk).assigned_gdi, self.central)

    def test_joining_member_leaves_previous_gdi(self):
        save_member(self.ana, gdi=self.north)
        set_gdi_roster(self.central, [self.ana])
        self.assertFalse(self.north.members.exists())
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.central)
        self.assertEqual(roster_inconsistencies(), [])

    def test_dropped_member_is_unassigned(self):
        set_gdi_roster(self.central, [self.ana, self.ben])
        set_gdi_roster(self.central, [self.ben])
        self.assertIsNone(Member.objects.get(pk=self.ana.pk).assigned_gdi)
        self.assertEqual(list(self.central.members.all()), [self.ben])
        self.assertEqual(roster_inconsistencies(), [])

    def test_empty_roster(self):
        set_gdi_roster(self.central, [self.ana])
        set_gdi_roster(self.central, [])
        self.assertFalse(self.central.members.exists())
        self.assertFalse(Member.objects.filter(assigned_gdi=self.central).exists())


class SetAreaRosterTests(RosterTestCase):
    def test_roster_sets_back_references(self):
        set_area_roster(self.worship, [self.ana, self.ben])
        self.assertEqual(set(self.worship.members.all()), {self.ana, self.ben})
        self.assertIn(self.worship, self.ana.assigned_areas.all())
        self.assertEqual(roster_inconsistencies(), [])

    def test_member_can_serve_in_several_areas(self):
        set_area_roster(self.worship, [self.ana])
        set_area_roster(self.ushers, [self.ana])
        self.assertEqual(set(self.ana.assigned_areas.all()), {self.worship, self.ushers})

    def test_dropped_member_loses_area(self):
        set_area_roster(self.worship, [self.ana, self.ben])
        set_area_roster(self.worship, [self.ben])
        self.assertNotIn(self.worship, self.ana.assigned_areas.all())
        self.assertEqual(roster_inconsistencies(), [])


class RosterRollbackTests(RosterTestCase):
    """A failure part way through a roster write leaves both directions as they were"""

    def fail_writes_to(self, through):
        # Related managers write link rows through the join model's default manager
        return mock.patch.object(through._default_manager, 'using', side_effect=DatabaseError("disk full"))

    def test_save_member_rolls_back_gdi_move(self):
        save_member(self.ana, gdi=self.central)
        with self.fail_writes_to(GDI.members.through):
            with self.assertLogs('members.services', level='ERROR') as logs:
                with self.assertRaises(RosterUpdateError):
                    save_member(self.ana, gdi=self.north)
        self.assertIn('save member', logs.output[0])
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.central)
        self.assertEqual(list(self.central.members.all()), [self.ana])
        self.assertFalse(self.north.members.exists())
        self.assertEqual(roster_inconsistencies(), [])

    def test_set_gdi_roster_rolls_back(self):
        set_gdi_roster(self.central, [self.ana])
        with self.fail_writes_to(GDI.members.through):
            with self.assertLogs('members.services', level='ERROR'):
                with self.assertRaises(RosterUpdateError):
                    set_gdi_roster(self.north, [self.ana, self.ben])
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.central)
        self.assertIsNone(Member.objects.get(pk=self.ben.pk).assigned_gdi)
        self.assertEqual(list(self.central.members.all()), [self.ana])
        self.assertFalse(self.north.members.exists())
        self.assertEqual(roster_inconsistencies(), [])

    def test_set_area_roster_rolls_back(self):
        set_area_roster(self.worship, [self.ana])
        with self.fail_writes_to(Member.assigned_areas.through):
            with self.assertLogs('members.services', level='ERROR'):
                with self.assertRaises(RosterUpdateError):
                    set_area_roster(self.worship, [self.ben])
        self.assertEqual(list(self.worship.members.all()), [self.ana])
        self.assertEqual(list(self.ana.assigned_areas.all()), [self.worship])
        self.assertFalse(self.ben.assigned_areas.exists())
        self.assertEqual(roster_inconsistencies(), [])


class DeactivateMemberTests(RosterTestCase):
    def test_deactivate(self):
        self.assertTrue(deactivate_member(self.ana))
        self.ana.refresh_from_db()
        self.assertEqual(self.ana.status, Member.STATUS_INACTIVE)
        self.assertFalse(self.ana.is_active)

    def test_deactivate_twice(self):
        deactivate_member(self.ana)
        self.assertFalse(deactivate_member(self.ana))

    def test_rosters_are_kept(self):
        save_member(self.ana, gdi=self.central)
        deactivate_member(self.ana)
        self.assertIn(self.ana, self.central.members.all())


class BulkAddMembersTests(TestCase):
    ROWS = [
        {'first_name': 'Ana', 'last_name': 'Lopez', 'email': 'ana@example.com', 'phone': '5551234567'},
        {'first_name': 'Ben', 'last_name': 'Ruiz', 'email': 'ben@example.com', 'phone': '5557654321'},
    ]

    def test_creates_members_with_status(self):
        created = bulk_add_members(self.ROWS, status=Member.STATUS_ACTIVE)
        self.assertEqual(len(created), 2)
        self.assertEqual(set(Member.objects.values_list('status', flat=True)), {Member.STATUS_ACTIVE})

    def test_default_status_is_new(self):
        bulk_add_members(self.ROWS[:1])
        self.assertEqual(Member.objects.get().status, Member.STATUS_NEW)

    def test_failure_rolls_back_everything(self):
        real_create = Member.objects.create
        created = []

        def create_then_fail(**kwargs):
            if created:
                raise DatabaseError("disk full")
            created.append(real_create(**kwargs))
            return created[-1]

        with mock.patch.object(Member.objects, 'create', side_effect=create_then_fail):
            with self.assertLogs('members.services', level='ERROR'):
                with self.assertRaises(RosterUpdateError):
                    bulk_add_members(self.ROWS)
        self.assertEqual(Member.objects.count(), 0)


class RosterConsistencyTests(RosterTestCase):
    def make_inconsistent(self):
        # Roster entry without back reference, and back reference without roster entry
        self.central.members.add(self.ana)
        Member.objects.filter(pk=self.ben.pk).update(assigned_gdi=self.north)
        self.worship.members.add(self.ben)
        self.ana.assigned_areas.add(self.ushers)

    def test_consistent_when_written_through_services(self):
        save_member(self.ana, gdi=self.central, areas=[self.worship])
        set_gdi_roster(self.north, [self.ben])
        self.assertEqual(roster_inconsistencies(), [])

    def test_reports_each_direction(self):
        self.make_inconsistent()
        self.assertEqual(roster_inconsistencies(), [
            RosterMismatch('gdi_roster_only', self.ana.pk, self.central.pk),
            RosterMismatch('gdi_reference_only', self.ben.pk, self.north.pk),
            RosterMismatch('area_roster_only', self.ben.pk, self.worship.pk),
            RosterMismatch('area_reference_only', self.ana.pk, self.ushers.pk),
        ])

    def test_repair_follows_back_references(self):
        self.make_inconsistent()
        repaired = repair_rosters()
        self.assertEqual(len(repaired), 4)
        self.assertEqual(roster_inconsistencies(), [])
        self.assertFalse(self.central.members.exists())
        self.assertEqual(list(self.north.members.all()), [self.ben])
        self.assertFalse(self.worship.members.exists())
        self.assertEqual(list(self.ushers.members.all()), [self.ana])

    def test_check_rosters_command_reports(self):
        self.make_inconsistent()
        out = StringIO()
        call_command('check_rosters', stdout=out)
        self.assertIn(f'gdi_roster_only: member {self.ana.pk}, group {self.central.pk}', out.getvalue())
        self.assertIn('Found 4 mismatches', out.getvalue())
        self.assertEqual(len(roster_inconsistencies()), 4)

    def test_check_rosters_command_repairs(self):
        self.make_inconsistent()
        out = StringIO()
        call_command('check_rosters', '--repair', stdout=out)
        self.assertIn('Repaired 4 mismatches', out.getvalue())
        self.assertEqual(roster_inconsistencies(), [])

    def test_check_rosters_command_consistent(self):
        out = StringIO()
        call_command('check_rosters', stdout=out)
        self.assertIn('Rosters are consistent.', out.getvalue())
