from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.config import settings
from app.crud import ticket_sequence as crud_sequence

logger = logging.getLogger(__name__)


class TicketAllocator:
    """
        Issues human-readable inquiry tickets of the form INQ-{year}-{NNN}.

        Workflow:
        1. Bump the year's counter row with a single UPDATE ... RETURNING, inside the
           caller's transaction, so the number is taken atomically with the insert.
        2. If the year has no counter row yet, seed it from the number of tickets already
           issued with that year's prefix, plus one.

        Numbers are strictly increasing per year and are never handed out again, even
        after the inquiry holding them is deleted. Two requests racing to seed a new year
        collide on the counter primary key or on inquiries.ticket_number; the inquiry
        create loop retries the whole transaction in that case.
    """

    @staticmethod
    def format_ticket(year: int, number: int) -> str:
        return f"{settings.TICKET_PREFIX}-{year}-{number:03d}"

    @staticmethod
    async def next_ticket(db: AsyncSession, year: int) -> str:
        number = await crud_sequence.increment_sequence(db, year)
        if number is None:
            issued = await crud_sequence.count_tickets_with_prefix(db, f"{settings.TICKET_PREFIX}-{year}-")
            number = issued + 1
            await crud_sequence.create_sequence(db, year, number)
            logger.info("Started ticket sequence for %s at %s", year, number)
        return TicketAllocator.format_ticket(year, number)
