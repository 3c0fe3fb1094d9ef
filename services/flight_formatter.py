"""
Formats flight search results as French text fed back to the chat agent.
"""
from typing import List
from services.amadeus_service import FlightOption

NO_FLIGHTS_MESSAGE = "Aucun vol trouvé correspondant à vos critères."


def format_flights_for_display(flights: List[FlightOption]) -> str:
    if not flights:
        return NO_FLIGHTS_MESSAGE

    lines = ["Voici les destinations disponibles depuis votre ville:\n\n"]
    for flight in flights:
        lines.append(f"📍 **{flight.destination}**\n")
        lines.append(f"💰 Prix: {flight.price} {flight.currency}\n")
        lines.append(f"🗓️ Date de départ: {flight.departureDate}\n")
        if flight.returnDate:
            lines.append(f"🔄 Date de retour: {flight.returnDate}\n")
        lines.append("\n")
    return "".join(lines)


def format_flight_dates_for_display(flights: List[FlightOption]) -> str:
    if not flights:
        return NO_FLIGHTS_MESSAGE

    lines = ["Voici les dates les moins chères pour votre itinéraire:\n\n"]
    for flight in flights:
        if flight.returnDate:
            lines.append(f"🗓️ **{flight.departureDate} à {flight.returnDate}**\n")
        else:
            lines.append(f"🗓️ **{flight.departureDate}**\n")
        lines.append(f"💰 Prix: {flight.price} {flight.currency}\n")
        lines.append("\n")
    return "".join(lines)
