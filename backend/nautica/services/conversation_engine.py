from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from nautica.core.exceptions import NauticaError, NotFound, Unauthenticated, UpstreamError
from nautica.integrations.llm import CompletionClient
from nautica.models import Boat, BoatType
from nautica.services.availability import AvailabilityCalculator, utc_today
from nautica.services.booking_service import BookingLifecycleManager
from nautica.services.db_service import DBService
from nautica.services.escrow import PaymentEscrowManager
from nautica.services.intent_detector import DetectedIntent, IntentExtractor

logger = logging.getLogger(__name__)


BOAT_TYPE_LABELS = {
    BoatType.LEISURE_BOAT: "barco de passeio",
    BoatType.JET_SKI: "jet ski",
    BoatType.YACHT: "iate",
    BoatType.SAILBOAT: "veleiro",
    BoatType.SPEEDBOAT: "lancha",
    BoatType.FISHING_BOAT: "barco de pesca",
    BoatType.PONTOON: "pontão",
    BoatType.CATAMARAN: "catamarã",
}

LOGIN_ACTIONS = [{"label": "Entrar", "action": "login", "variant": "primary"}]
FALLBACK_ACTIONS = [
    {"label": "Ver lanchas", "action": "Quero ver lanchas", "variant": "outline"},
    {"label": "Ver iates", "action": "Quero ver iates", "variant": "outline"},
    {"label": "Falar com atendimento", "action": "Preciso de ajuda", "variant": "secondary"},
]


@dataclass
class ChatReply:
    content: str
    rich_type: Optional[str] = None
    rich_data: Optional[dict[str, Any]] = None

    def as_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.rich_type:
            message["richContent"] = {"type": self.rich_type, "data": self.rich_data or {}}
        return {"message": message}


def format_brl(amount: Any) -> str:
    text = f"{float(amount):,.2f}"
    return "R$ " + text.replace(",", "X").replace(".", ",").replace("X", ".")


def boat_summary(boat: Boat) -> dict[str, Any]:
    """Boat card data: primary photo first, owner marina details."""
    owner = boat.owner
    return {
        "id": str(boat.id),
        "name": boat.name,
        "type": boat.type,
        "description": boat.description,
        "capacity": boat.capacity,
        "base_price": float(boat.base_price),
        "length_meters": float(boat.length_meters) if boat.length_meters is not None else None,
        "has_crew": bool(boat.has_crew),
        "photos": [{"url": p.url, "is_primary": bool(p.is_primary)} for p in boat.photos],
        "owner": {
            "marina_name": owner.marina_name,
            "city": owner.city,
            "state": owner.state,
        } if owner is not None else None,
    }


def latest_user_text(messages: list[dict[str, str]]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user":
            return message.get("content") or ""
    return ""


class ConversationOrchestrator:
    """One chat turn: extract intent, run the matching action, frame the reply.

    Structured results (prices, dates, links) are computed here and never
    delegated to the completion backend, which only writes free-form prose.
    """

    def __init__(
        self,
        db: DBService,
        bookings: BookingLifecycleManager,
        escrow: PaymentEscrowManager,
        availability: AvailabilityCalculator,
        extractor: IntentExtractor,
        ai: CompletionClient,
        today: Callable[[], date] = utc_today,
    ):
        self.db = db
        self.bookings = bookings
        self.escrow = escrow
        self.availability = availability
        self.extractor = extractor
        self.ai = ai
        self.today = today

    async def respond(
        self,
        messages: list[dict[str, str]],
        owner_scope_id: Optional[str] = None,
        subject_id: Optional[str] = None,
    ) -> dict[str, Any]:
        intent = self.extractor.extract(latest_user_text(messages))
        logger.debug(
            "Chat intent",
            extra={
                "entity_id": intent.entity_id,
                "requested_date": str(intent.requested_date) if intent.requested_date else None,
                "confirm": intent.wants_confirmation,
                "pay": intent.wants_payment,
                "category": intent.category,
            },
        )

        try:
            reply = await self._dispatch(intent, messages, owner_scope_id, subject_id)
        except Unauthenticated as e:
            reply = ChatReply(e.message, "quick_actions", {"actions": LOGIN_ACTIONS})
        except NauticaError as e:
            reply = ChatReply(e.message, "quick_actions", {"actions": FALLBACK_ACTIONS})
        except SQLAlchemyError as e:
            logger.error(f"❌ Data store failure during chat turn: {type(e).__name__}")
            reply = ChatReply(UpstreamError().message, "quick_actions", {"actions": FALLBACK_ACTIONS})
        return reply.as_message()

    async def _dispatch(
        self,
        intent: DetectedIntent,
        messages: list[dict[str, str]],
        owner_scope_id: Optional[str],
        subject_id: Optional[str],
    ) -> ChatReply:
        if intent.entity_id and intent.wants_payment:
            return await self._payment_link(intent.entity_id, subject_id)
        if intent.entity_id and intent.requested_date and intent.wants_confirmation:
            return await self._confirm_booking(intent, owner_scope_id, subject_id)
        if intent.entity_id and intent.requested_date:
            return await self._price_quote(intent, owner_scope_id, subject_id)
        if intent.entity_id:
            return await self._calendar(intent.entity_id, owner_scope_id)
        if intent.category:
            return await self._search(intent.category, messages, owner_scope_id)

        content = await self.ai.get_reply(messages, owner_scope_id=owner_scope_id)
        return ChatReply(content)

    async def _scoped_boat(self, boat_id: str, owner_scope_id: Optional[str]) -> Boat:
        boat = await self.bookings.get_bookable_boat(boat_id)
        if owner_scope_id and str(boat.owner_id) != str(owner_scope_id).lower():
            raise NotFound("Embarcação não encontrada.")
        return boat

    async def _search(
        self,
        category: str,
        messages: list[dict[str, str]],
        owner_scope_id: Optional[str],
    ) -> ChatReply:
        boats = await self.db.search_boats(boat_type=category, owner_id=owner_scope_id)
        label = BOAT_TYPE_LABELS.get(category, category)

        if not boats:
            content = f"No momento não encontrei opções de {label} disponíveis. Posso sugerir outro tipo de embarcação?"
            return ChatReply(content, "quick_actions", {"actions": FALLBACK_ACTIONS})

        context = "\n".join(
            f"- {b.name} ({label}), até {b.capacity} pessoas, diária {format_brl(b.base_price)}"
            for b in boats
        )
        content = await self.ai.get_reply(messages, owner_scope_id=owner_scope_id, context=context)

        if len(boats) == 1:
            return ChatReply(content, "boat_card", {"boat": boat_summary(boats[0])})
        return ChatReply(
            content,
            "boat_carousel",
            {"title": f"Opções de {label}", "boats": [boat_summary(b) for b in boats]},
        )

    async def _calendar(self, boat_id: str, owner_scope_id: Optional[str]) -> ChatReply:
        boat = await self._scoped_boat(boat_id, owner_scope_id)
        window = await self.availability.for_boat(boat, start=self.today())
        data = {"boatId": str(boat.id), "boatName": boat.name, **window.as_iso()}
        content = f"Estas são as datas disponíveis para {boat.name}. Escolha um dia para ver o preço."
        return ChatReply(content, "booking_calendar", data)

    def _summary_data(self, boat: Boat, target: date, passengers: int, quote) -> dict[str, Any]:
        deposit = boat.deposit_amount
        booking: dict[str, Any] = {
            "boatId": str(boat.id),
            "boatName": boat.name,
            "date": target.isoformat(),
            "passengers": passengers,
            "basePrice": float(quote.price_before_discount),
            "discountAmount": float(quote.discount_amount),
            "totalPrice": float(quote.total_price),
        }
        if deposit is not None and deposit > 0:
            booking["depositAmount"] = float(deposit)
        return {"booking": booking}

    async def _price_quote(
        self,
        intent: DetectedIntent,
        owner_scope_id: Optional[str],
        subject_id: Optional[str],
    ) -> ChatReply:
        boat = await self._scoped_boat(intent.entity_id, owner_scope_id)
        passengers = intent.passengers or 1
        quote = await self.bookings.quote(boat, intent.requested_date, subject_id)

        content = (
            f"{boat.name} em {intent.requested_date.strftime('%d/%m/%Y')}: "
            f"total de {format_brl(quote.total_price)}."
        )
        if quote.discount_amount > 0:
            content += f" Inclui desconto de fidelidade de {format_brl(quote.discount_amount)}."
        content += " Para reservar, diga \"confirmar reserva\" com o id da embarcação e a data."
        return ChatReply(content, "booking_summary", self._summary_data(boat, intent.requested_date, passengers, quote))

    async def _confirm_booking(
        self,
        intent: DetectedIntent,
        owner_scope_id: Optional[str],
        subject_id: Optional[str],
    ) -> ChatReply:
        if not subject_id:
            raise Unauthenticated()

        boat = await self._scoped_boat(intent.entity_id, owner_scope_id)
        passengers = intent.passengers or 1
        result = await self.bookings.create_booking(
            subject_id, boat.id, intent.requested_date, passengers, today=self.today()
        )
        booking = result.booking

        if result.duplicate:
            content = "Você já tem uma reserva ativa para esta embarcação nesta data."
        else:
            content = "Reserva criada! Ela fica pendente até a confirmação do pagamento."
        content += f" Para pagar, envie \"pagar {result.booking_id}\"."

        data = {
            "booking": {
                "bookingId": result.booking_id,
                "status": booking.status,
                "boatId": str(boat.id),
                "boatName": boat.name,
                "date": booking.booking_date.isoformat(),
                "passengers": booking.passengers,
                "basePrice": float(booking.base_price),
                "discountAmount": float(booking.discount_amount or 0),
                "totalPrice": float(booking.total_price),
            }
        }
        if booking.deposit_amount:
            data["booking"]["depositAmount"] = float(booking.deposit_amount)
        return ChatReply(content, "booking_summary", data)

    async def _payment_link(self, booking_id: str, subject_id: Optional[str]) -> ChatReply:
        if not subject_id:
            raise Unauthenticated()

        booking = await self.db.get_user_booking(booking_id, subject_id)
        if booking is None:
            raise NotFound("Reserva não encontrada.")
        boat = await self.db.get_boat(booking.boat_id)

        link = await self.escrow.create_checkout_session(booking, boat.name if boat else None)
        note = "Valor do sinal" if booking.deposit_amount and booking.deposit_amount > 0 else None
        content = (
            f"Pronto! Use o link para pagar {format_brl(link.amount)}. "
            "O valor fica retido e só é cobrado no check-in."
        )
        data: dict[str, Any] = {"bookingId": link.booking_id, "url": link.url, "amount": float(link.amount)}
        if note:
            data["note"] = note
        return ChatReply(content, "payment_link", data)
