"""
Write-side operations that keep member back references and group rosters
in step.

``Member.assigned_gdi`` / ``GDI.members`` and ``Member.assigned_areas`` /
``MinistryArea.members`` are stored independently. Every function here
updates both directions inside one transaction so a failure leaves neither
side changed.
"""

import functools
import logging
from typing import NamedTuple

from django.db import DatabaseError, transaction

from .models import GDI, Member, MinistryArea

logger = logging.getLogger(__name__)


class RosterUpdateError(Exception):
    """A roster write failed and was rolled back."""


class RosterMismatch(NamedTuple):
    kind: str
    member_id: int
    group_id: int


def _atomic_roster_write(description):
    """Run the wrapped write in a transaction, translating database failures."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except DatabaseError as exc:
                logger.exception("Roster update failed (%s); rolled back", description)
                raise RosterUpdateError(f"Could not {description}") from exc
        return wrapper
    return decorator


@_atomic_roster_write("save member")
def save_member(member, gdi=None, areas=()):
    """Save ``member`` and move it between GDI and ministry-area rosters."""
    previous_gdi_id = None
    previous_area_ids = set()
    if member.pk:
        current = Member.objects.select_for_update().filter(pk=member.pk).first()
        if current is not None:
            previous_gdi_id = current.assigned_gdi_id
            previous_area_ids = set(current.assigned_areas.values_list('pk', flat=True))

    member.assigned_gdi = gdi
    member.save()

    new_gdi_id = gdi.pk if gdi else None
    if previous_gdi_id and previous_gdi_id != new_gdi_id:
        for old_gdi in GDI.objects.filter(pk=previous_gdi_id):
            old_gdi.members.remove(member)
    if gdi is not None:
        gdi.members.add(member)

    new_area_ids = {area.pk for area in areas}
    member.assigned_areas.set(new_area_ids)
    for area in MinistryArea.objects.filter(pk__in=previous_area_ids - new_area_ids):
        area.members.remove(member)
    for area in MinistryArea.objects.filter(pk__in=new_area_ids - previous_area_ids):
        area.members.add(member)

    logger.info(
        "Saved member %s (gdi %s -> %s, areas %s -> %s)",
        member.pk, previous_gdi_id, new_gdi_id, sorted(previous_area_ids), sorted(new_area_ids),
    )
    return member


@_atomic_roster_write("update GDI roster")
def set_gdi_roster(gdi, members):
    """
    Make ``members`` the roster of ``gdi``.

    A member can only be in one GDI: joining members leave the roster of
    the GDI they were assigned to before.
    """
    new_ids = {member.pk for member in members}
    old_ids = set(gdi.members.values_list('pk', flat=True))
    # Members listed on this roster without pointing back at it.
    old_ids |= set(Member.objects.filter(assigned_gdi=gdi).values_list('pk', flat=True))

    for member in Member.objects.select_for_update().filter(pk__in=new_ids).exclude(assigned_gdi=gdi):
        if member.assigned_gdi_id:
            GDI.members.through.objects.filter(gdi_id=member.assigned_gdi_id, member_id=member.pk).delete()
        member.assigned_gdi = gdi
        member.save(update_fields=['assigned_gdi', 'updated_at'])

    dropped = old_ids - new_ids
    Member.objects.filter(pk__in=dropped, assigned_gdi=gdi).update(assigned_gdi=None)
    gdi.members.set(new_ids)

    logger.info("GDI %s roster set to %d members (%d dropped)", gdi.pk, len(new_ids), len(dropped))
    return gdi


@_atomic_roster_write("update ministry area roster")
def set_area_roster(area, members):
    """Make ``members`` the roster of ``area`` and update their back references."""
    new_ids = {member.pk for member in members}
    old_ids = set(area.members.values_list('pk', flat=True))
    old_ids |= set(area.assigned_members.values_list('pk', flat=True))

    area.members.set(new_ids)
    for member in Member.objects.filter(pk__in=new_ids):
        member.assigned_areas.add(area)
    for member in Member.objects.filter(pk__in=old_ids - new_ids):
        member.assigned_areas.remove(area)

    logger.info("Ministry area %s roster set to %d members", area.pk, len(new_ids))
    return area


def deactivate_member(member):
    """Members are never deleted; they become inactive."""
    if member.status == Member.STATUS_INACTIVE:
        return False
    member.status = Member.STATUS_INACTIVE
    member.save(update_fields=['status', 'updated_at'])
    logger.info("Member %s deactivated", member.pk)
    return True


@_atomic_roster_write("add members")
def bulk_add_members(rows, status=Member.STATUS_NEW):
    """Create one member per row dict; all or nothing."""
    created = [Member.objects.create(status=status, **row) for row in rows]
    logger.info("Bulk-added %d members", len(created))
    return created


def roster_inconsistencies():
    """Every place where a roster and a member back reference disagree."""
    mismatches = []

    gdi_roster = set(GDI.members.through.objects.values_list('member_id', 'gdi_id'))
    gdi_refs = set(Member.objects.filter(assigned_gdi__isnull=False).values_list('pk', 'assigned_gdi_id'))
    mismatches += [RosterMismatch('gdi_roster_only', m, g) for m, g in sorted(gdi_roster - gdi_refs)]
    mismatches += [RosterMismatch('gdi_reference_only', m, g) for m, g in sorted(gdi_refs - gdi_roster)]

    area_roster = set(MinistryArea.members.through.objects.values_list('member_id', 'ministryarea_id'))
    area_refs = set(Member.assigned_areas.through.objects.values_list('member_id', 'ministryarea_id'))
    mismatches += [RosterMismatch('area_roster_only', m, a) for m, a in sorted(area_roster - area_refs)]
    mismatches += [RosterMismatch('area_reference_only', m, a) for m, a in sorted(area_refs - area_roster)]

    return mismatches


@_atomic_roster_write("repair rosters")
def repair_rosters():
    """Make rosters follow the member back references, which are authoritative."""
    mismatches = roster_inconsistencies()
    for mismatch in mismatches:
        if mismatch.kind == 'gdi_roster_only':
            GDI.members.through.objects.filter(member_id=mismatch.member_id, gdi_id=mismatch.group_id).delete()
        elif mismatch.kind == 'gdi_reference_only':
            GDI.members.through.objects.create(member_id=mismatch.member_id, gdi_id=mismatch.group_id)
        elif mismatch.kind == 'area_roster_only':
            MinistryArea.members.through.objects.filter(member_id=mismatch.member_id, ministryarea_id=mismatch.group_id).delete()
        elif mismatch.kind == 'area_reference_only':
            MinistryArea.members.through.objects.create(member_id=mismatch.member_id, ministryarea_id=mismatch.group_id)
    logger.info("Repaired %d roster mismatches", len(mismatches))
    return mismatches
