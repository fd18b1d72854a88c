"""Typed payload variants keyed by the ``tipo`` discriminator."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import DeserializationError

DISCRIMINATOR = "tipo"


class BasePayload(BaseModel):
    """Common base: unknown keys are kept so no data is lost on parsing."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tipo: str | None = None
    timestamp: str | None = None


class NotificationPayload(BasePayload):
    tipo: Literal["notificacao"] = "notificacao"
    categoria: str | None = None
    destinatario: str | None = None
    titulo: str | None = None
    mensagem: str | None = None
    severidade: str | None = None


class OrderItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    produto: str
    quantidade: int = 1
    preco: float = 0.0


class OrderPayload(BasePayload):
    tipo: Literal["pedido"] = "pedido"
    pedido_id: str = Field(alias="pedidoId")
    status: str
    cliente: dict[str, Any] | None = None
    itens: list[OrderItem] = Field(default_factory=list)
    total: float | None = None


class LogPayload(BasePayload):
    tipo: Literal["log"] = "log"
    level: str
    servico: str | None = None
    mensagem: str | None = None
    hostname: str | None = None


class EventPayload(BasePayload):
    tipo: Literal["evento"] = "evento"
    categoria: str | None = None
    acao: str | None = None
    usuario: str | None = None


class UserPayload(BasePayload):
    tipo: Literal["usuario"] = "usuario"
    acao: str
    dados: dict[str, Any] = Field(default_factory=dict)


class ChatPayload(BasePayload):
    tipo: Literal["chat"] = "chat"
    sala: str
    usuario: str
    mensagem: str


class MetricPayload(BasePayload):
    tipo: Literal["metricas"] = "metricas"
    metrica: str
    valor: float
    servidor: str | None = None


class UnknownPayload(BasePayload):
    """Fallback for unregistered or missing ``tipo`` values."""

    tipo: Any = None
    timestamp: Any = None


class PayloadRegistry:
    """Registry for mapping ``tipo`` tags to payload models.

    Usage::

        registry = PayloadRegistry.default()
        registry.register("fatura", InvoicePayload)
        payload = registry.parse({"tipo": "log", "level": "INFO"})
    """

    def __init__(self) -> None:
        self._registry: dict[str, type[BasePayload]] = {}

    @classmethod
    def default(cls) -> PayloadRegistry:
        """Registry pre-loaded with the built-in variants."""
        registry = cls()
        for model in (
            NotificationPayload,
            OrderPayload,
            LogPayload,
            EventPayload,
            UserPayload,
            ChatPayload,
            MetricPayload,
        ):
            registry.register(model.model_fields[DISCRIMINATOR].default, model)
        return registry

    def register(self, tipo: str, model: type[BasePayload]) -> None:
        """Register *model* under *tipo*."""
        self._registry[tipo] = model

    def get(self, tipo: str) -> type[BasePayload] | None:
        return self._registry.get(tipo)

    def has(self, tipo: str) -> bool:
        return tipo in self._registry

    def list_registered(self) -> list[str]:
        return list(self._registry.keys())

    def parse(self, data: dict[str, Any]) -> BasePayload:
        """Validate *data* against the model registered for its tag.

        Unregistered tags yield :class:`UnknownPayload`. A registered tag whose
        data fails validation raises :class:`DeserializationError`.
        """
        tipo = data.get(DISCRIMINATOR)
        model = self.get(tipo) if isinstance(tipo, str) else None
        if model is None:
            model = UnknownPayload
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise DeserializationError(
                f"Invalid payload for tipo={tipo!r}: {e}"
            ) from e


_default_registry = PayloadRegistry.default()


def parse_payload(
    data: dict[str, Any], registry: PayloadRegistry | None = None
) -> BasePayload:
    """Parse *data* into its typed variant using *registry* (default built-ins)."""
    return (registry or _default_registry).parse(data)
