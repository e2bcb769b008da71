"""
Quick script for generating a trip against the real MongoDB and Google Places.

Usage: python scripts/generate_sample_trip.py [country] [days] [city]
"""

import asyncio
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tripplanner.core.places_service import PlacesService
from tripplanner.core.polish_service import ItineraryPolisher
from tripplanner.core.repository import MongoPlaceRepository
from tripplanner.core.schemas import TripRequest
from tripplanner.core.settings import get_settings
from tripplanner.core.trip_planner import TripPlanner


async def generate_sample_trip(country: str, days: int, city: str | None):
    settings = get_settings()
    print(f"Generating a {days}-day trip to {city or country}...")
    print(f"Google Places configured: {bool(settings.google_maps_api_key)}")
    print(f"LLM polish model: {settings.aisuite_model or 'disabled'}")

    planner = TripPlanner(
        MongoPlaceRepository(settings=settings),
        poi_search=PlacesService(settings=settings),
        settings=settings,
        polisher=ItineraryPolisher.from_settings(settings),
    )
    plan = await planner.generate(TripRequest(country=country, city=city, number_of_days=days))

    print(f"\nSeed: {plan.seed}")
    print(f"Total distance: {plan.total_distance_km} km, travel: {plan.total_travel_minutes} min")
    print(f"Estimated cost: ${plan.estimated_cost_usd:.0f}")

    for day in plan.days:
        print(f"\n--- Day {day.day_number} ({day.total_distance_km} km) ---")
        for block in day.blocks:
            print(f"  {block.start_time}-{block.end_time}  {block.place.name}")
        for slot in ("breakfast", "lunch", "dinner"):
            meal = getattr(day.meals, slot)
            print(f"  {slot.capitalize()}: {meal.name if meal else 'N/A'}")
        print(f"  Hotel: {day.lodging.name if day.lodging else 'N/A'}")

    if plan.local_tips:
        print("\nLocal tips:")
        for tip in plan.local_tips:
            print(f"  - {tip}")
    for trap in plan.tourist_traps:
        print(f"  Avoid {trap.name}: {trap.reason}")
    if plan.checklist:
        print("\nChecklist:")
        for item in plan.checklist:
            print(f"  [{item.category.value}] {item.item}")

    if plan.warnings:
        print("\nWarnings:")
        for warning in plan.warnings:
            day_label = f" (day {warning.day_number})" if warning.day_number else ""
            print(f"  [{warning.code.value}] {warning.stage}{day_label}: {warning.message}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    country = sys.argv[1] if len(sys.argv) > 1 else "Lebanon"
    days = int(sys.argv[2]) if len(sys.argv) > 2 else 3
    city = sys.argv[3] if len(sys.argv) > 3 else None
    asyncio.run(generate_sample_trip(country, days, city))
