"""Error taxonomy shared by the booking, escrow and webhook paths.

Every error carries a message that is safe to show to an end user and the
HTTP status the routers translate it to. Upstream (processor / store)
details are logged at the call site and never placed in ``message``.
"""


class NauticaError(Exception):
    status_code = 500
    default_message = "Erro inesperado. Tente novamente."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(NauticaError):
    status_code = 401
    default_message = "Faça login para continuar."


class NotFound(NauticaError):
    status_code = 404
    default_message = "Recurso não encontrado."


class BoatInactive(NotFound):
    default_message = "Esta embarcação não está disponível para reservas."


class InvalidState(NauticaError):
    status_code = 400
    default_message = "Esta ação não é permitida no estado atual da reserva."


class PaymentNotReady(InvalidState):
    default_message = "Pagamento ainda não está retido/confirmado. Conclua o pagamento primeiro."


class ConfigurationError(NauticaError):
    status_code = 500
    default_message = "Serviço temporariamente indisponível."


class UpstreamError(NauticaError):
    status_code = 500
    default_message = "Falha temporária ao processar o pagamento. Tente novamente em instantes."


class SignatureInvalid(NauticaError):
    status_code = 400
    default_message = "Invalid signature"


class InvalidPayload(NauticaError):
    status_code = 400
    default_message = "Invalid payload"
