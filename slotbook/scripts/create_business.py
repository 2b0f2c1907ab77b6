#!/usr/bin/env python3
"""
Script to create a business with services and weekly hours
Usage: python -m slotbook.scripts.create_business [slug]
"""
import sys
from sqlalchemy.orm import Session

from slotbook.config.database import SessionLocal
from slotbook.core.errors import DomainError
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.business.business_service import BusinessService
from slotbook.services.business.catalog_service import CatalogService
from slotbook.utils.my_logging import setup_logging

DAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def create_business_with_hours(slug: str = "barberia-centro"):
    """Create a demo barbershop: owner, one extra barber, services and weekday hours"""
    db: Session = SessionLocal()

    try:
        business = BusinessService.create_business(
            db,
            business_name="Barberia Centro",
            owner_name="Martina Lopez",
            owner_email=f"owner@{slug}.example.com",
            slug=slug,
            timezone_name="America/Argentina/Buenos_Aires",
            country_code="AR",
        )
        print(f"\nCreated business: {business.name}")
        print(f"   Tenant ID: {business.tenant_id}")
        print(f"   Slug: {business.slug}")

        barber = BusinessService.create_staff(db, business.tenant_id, "Julian Perez")
        print(f"   Staff: {barber.user.full_name} ({barber.user.email})")

        services = [
            {"name": "Corte clasico", "duration_min": 30, "buffer_after_min": 5, "price_amount_cents": 800000},
            {"name": "Corte y barba", "duration_min": 45, "buffer_before_min": 5, "buffer_after_min": 10,
             "price_amount_cents": 1200000},
            {"name": "Perfilado de barba", "duration_min": 20, "price_amount_cents": 500000},
        ]
        for data in services:
            service = CatalogService.create_service(db, business.tenant_id, data)
            print(f"   Service: {service.name} ({service.duration_min} min)")

        # Sunday=0 ... Saturday=6
        hours = [
            {"day_of_week": 2, "start_local": "09:00", "end_local": "13:00"},
            {"day_of_week": 2, "start_local": "14:00", "end_local": "20:00"},
            {"day_of_week": 3, "start_local": "09:00", "end_local": "20:00"},
            {"day_of_week": 4, "start_local": "09:00", "end_local": "20:00"},
            {"day_of_week": 5, "start_local": "09:00", "end_local": "20:00"},
            {"day_of_week": 6, "start_local": "10:00", "end_local": "16:00", "slot_step_min": 30},
        ]
        for rule_data in hours:
            AvailabilityService.create_rule(db, business.tenant_id, **rule_data)

        print(f"\nCreated {len(hours)} availability rules:")
        for rule_data in hours:
            print(f"  {DAYS[rule_data['day_of_week']]}: {rule_data['start_local']} - {rule_data['end_local']}")

        print(f"\nPublic booking page: /api/v1/public/b/{business.slug}/config")
        return str(business.tenant_id)

    except DomainError as e:
        print(f"\nError creating business: {e.code}: {e.message}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging(verbose=False)
    create_business_with_hours(*sys.argv[1:2])
