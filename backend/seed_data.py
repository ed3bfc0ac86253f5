"""Seed database with demo data."""
from community_watch.database import SessionLocal
from community_watch.models import (
    AidsProgram, AidsProgramZone, Household, Issue, Permission,
    Profile, ProgramAssignment, Staff, StaffPermission, Village, Zone
)
from community_watch.use_cases.aid_distribution import recompute_program_totals


def seed():
    """Seed database with demo data."""
    db = SessionLocal()

    try:
        # Zones and villages
        zones = [
            Zone(name="Zon Bukit Indah", description="Northern zone"),
            Zone(name="Zon Taman Sentosa", description="Southern zone"),
        ]
        db.add_all(zones)
        db.flush()

        villages = [
            Village(zone_id=zones[0].id, name="Kampung Baru"),
            Village(zone_id=zones[0].id, name="Kampung Seri"),
            Village(zone_id=zones[1].id, name="Kampung Damai"),
        ]
        db.add_all(villages)
        db.flush()

        # Staff
        staff_data = [
            {'name': 'Pentadbir Sistem', 'email': 'admin@community-watch.local', 'role': 'super_admin'},
            {'name': 'YB Ahmad', 'email': 'adun@community-watch.local', 'role': 'adun'},
            {'name': 'Siti Aminah', 'email': 'siti@community-watch.local', 'role': 'zone_leader',
             'zone_id': zones[0].id},
            {'name': 'Rahman Ali', 'ic_number': '800101015555', 'role': 'ketua_cawangan',
             'zone_id': zones[0].id},
            {'name': 'Lim Wei', 'email': 'lim@community-watch.local', 'role': 'staff',
             'zone_id': zones[1].id},
        ]
        staff = [Staff(**data) for data in staff_data]
        db.add_all(staff)
        db.flush()

        permission = Permission(code='issues.assign', name='Assign issues', category='issues')
        db.add(permission)
        db.flush()
        db.add(StaffPermission(staff_id=staff[4].id, permission_id=permission.id, granted_by=staff[0].id))

        # Community profile
        resident = Profile(
            full_name='Nurul Huda',
            email='nurul@example.com',
            village_id=villages[0].id,
            zone_id=zones[0].id,
            verification_status='verified',
        )
        db.add(resident)
        db.flush()

        # Households
        households_data = [
            ('Abu Bakar', 'No. 1, Jalan Mawar', zones[0].id),
            ('Chong Mei Ling', 'No. 5, Jalan Mawar', zones[0].id),
            ('Muthu Samy', 'No. 9, Jalan Melur', zones[0].id),
            ('Fatimah Zahra', 'No. 2, Jalan Kenanga', zones[1].id),
        ]
        for head_name, address, zone_id in households_data:
            db.add(Household(head_name=head_name, address=address, zone_id=zone_id))
        db.flush()

        # Issues: one community report, one entered by staff
        db.add(Issue(
            reporter_id=resident.id,
            zone_id=zones[0].id,
            title='Lampu jalan rosak',
            description='Street light out near the surau',
            category='infrastructure',
        ))
        db.add(Issue(
            zone_id=zones[0].id,
            assigned_staff_id=staff[2].id,
            title='Longkang tersumbat',
            description='Logged during zone walkabout',
            category='drainage',
        ))

        # Aid program covering zone 1, with a ketua cawangan assigned
        program = AidsProgram(
            name='Bantuan Makanan 2026',
            aid_type='food_basket',
            status='active',
            created_by=staff[0].id,
        )
        db.add(program)
        db.flush()
        db.add(AidsProgramZone(program_id=program.id, zone_id=zones[0].id))
        db.add(ProgramAssignment(
            program_id=program.id,
            zone_id=zones[0].id,
            assigned_to=staff[3].id,
            assigned_by=staff[2].id,
            assignment_type='ketua_cawangan',
        ))
        db.flush()
        recompute_program_totals(db, program)

        db.commit()
        print("✅ Database seeded successfully!")
        print("\nDemo logins:")
        print("  admin@community-watch.local (Super admin)")
        print("  adun@community-watch.local (ADUN)")
        print("  siti@community-watch.local (Zone leader)")
        print("  800101015555@staff.local (Ketua cawangan)")
        print("  nurul@example.com (Community)")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
