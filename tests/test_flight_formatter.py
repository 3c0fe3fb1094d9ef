"""Agent-facing flight summaries."""

from services.amadeus_service import FlightOption
from services.flight_formatter import (
    NO_FLIGHTS_MESSAGE,
    format_flight_dates_for_display,
    format_flights_for_display,
)


def test_empty_results():
    assert format_flights_for_display([]) == NO_FLIGHTS_MESSAGE
    assert format_flight_dates_for_display([]) == NO_FLIGHTS_MESSAGE


def test_destinations():
    flights = [
        FlightOption("PAR", "LIS", "2026-07-01", "89.00", "EUR", returnDate="2026-07-08"),
        FlightOption("PAR", "BCN", "2026-07-02", "59.00", "EUR"),
    ]
    text = format_flights_for_display(flights)

    assert text.startswith("Voici les destinations disponibles depuis votre ville:\n\n")
    assert "📍 **LIS**\n💰 Prix: 89.00 EUR\n🗓️ Date de départ: 2026-07-01\n🔄 Date de retour: 2026-07-08\n" in text
    assert "📍 **BCN**\n💰 Prix: 59.00 EUR\n🗓️ Date de départ: 2026-07-02\n\n" in text


def test_dates():
    flights = [
        FlightOption("PAR", "LIS", "2026-07-01", "89.00", "EUR", returnDate="2026-07-08"),
        FlightOption("PAR", "LIS", "2026-07-03", "95.00", "EUR"),
    ]
    text = format_flight_dates_for_display(flights)

    assert text.startswith("Voici les dates les moins chères pour votre itinéraire:\n\n")
    assert "🗓️ **2026-07-01 à 2026-07-08**\n💰 Prix: 89.00 EUR\n" in text
    assert "🗓️ **2026-07-03**\n💰 Prix: 95.00 EUR\n" in text
