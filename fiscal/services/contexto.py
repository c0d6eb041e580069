# fiscal/services/contexto.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from django.db import models

from fiscal.exceptions import ContextoFiscalInvalidoError
from fiscal.uf import uf_valida


class OperationDirection(models.TextChoices):
    INBOUND = "INBOUND", "Entrada"
    OUTBOUND = "OUTBOUND", "Saída"


class CounterpartyTaxStatus(models.TextChoices):
    # Equivalem ao indIEDest da NF-e: 1, 2 e 9
    TAXPAYER = "TAXPAYER", "Contribuinte ICMS"
    EXEMPT = "EXEMPT", "Contribuinte isento de inscrição"
    NON_TAXPAYER = "NON_TAXPAYER", "Não contribuinte"


class TaxRegime(models.TextChoices):
    # CRT da NF-e: 1, 2 e 3
    SIMPLIFIED = "SIMPLIFIED", "Simples Nacional"
    SIMPLIFIED_EXCESS = "SIMPLIFIED_EXCESS", "Simples Nacional - excesso de sublimite"
    NORMAL = "NORMAL", "Regime normal"


_NCM_RE = re.compile(r"^\d{8}$")


def _coagir_enum(enum_cls, valor, campo: str):
    try:
        return enum_cls(valor)
    except ValueError:
        raise ContextoFiscalInvalidoError(
            f"Valor inválido para {campo}: {valor!r}.", campo=campo
        ) from None


@dataclass(frozen=True)
class TransactionContext:
    """
    Contexto de uma operação, usado para escolher a regra da matriz fiscal.

    Contexto malformado é erro do chamador e estoura na construção,
    não na resolução.
    """

    operation_direction: OperationDirection
    origin_state: str
    destination_state: str
    counterparty_tax_status: CounterpartyTaxStatus
    product_ncm: str
    tax_regime: TaxRegime
    is_final_consumer: bool
    operation_nature: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self,
            "operation_direction",
            _coagir_enum(OperationDirection, self.operation_direction, "operation_direction"),
        )
        object.__setattr__(
            self,
            "counterparty_tax_status",
            _coagir_enum(
                CounterpartyTaxStatus, self.counterparty_tax_status, "counterparty_tax_status"
            ),
        )
        object.__setattr__(
            self, "tax_regime", _coagir_enum(TaxRegime, self.tax_regime, "tax_regime")
        )

        for campo in ("origin_state", "destination_state"):
            if not uf_valida(getattr(self, campo)):
                raise ContextoFiscalInvalidoError(
                    f"{campo} deve ser uma UF válida com 2 letras, recebido {getattr(self, campo)!r}.",
                    campo=campo,
                )

        if not isinstance(self.product_ncm, str) or not _NCM_RE.match(self.product_ncm):
            raise ContextoFiscalInvalidoError(
                f"product_ncm deve ter 8 dígitos, recebido {self.product_ncm!r}.",
                campo="product_ncm",
            )

        if not isinstance(self.is_final_consumer, bool):
            raise ContextoFiscalInvalidoError(
                "is_final_consumer deve ser booleano.", campo="is_final_consumer"
            )

        if self.operation_nature is not None and (
            not isinstance(self.operation_nature, str) or not self.operation_nature.strip()
        ):
            raise ContextoFiscalInvalidoError(
                "operation_nature, quando informada, não pode ser vazia.",
                campo="operation_nature",
            )

    @property
    def interestadual(self) -> bool:
        return self.origin_state != self.destination_state


def montar_contexto(
    emitente,
    *,
    contraparte_uf: str,
    contraparte_status: CounterpartyTaxStatus,
    ncm: str,
    consumidor_final: bool,
    direcao: OperationDirection = OperationDirection.OUTBOUND,
    natureza_operacao: Optional[str] = None,
) -> TransactionContext:
    """
    Monta o contexto a partir do emitente informado.

    - Saída: origem = UF do emitente, destino = UF da contraparte.
    - Entrada: origem = UF da contraparte, destino = UF do emitente.
    - Regime tributário vem sempre do emitente.
    """
    if direcao == OperationDirection.OUTBOUND:
        origem, destino = emitente.uf, contraparte_uf
    else:
        origem, destino = contraparte_uf, emitente.uf

    return TransactionContext(
        operation_direction=direcao,
        origin_state=origem,
        destination_state=destino,
        counterparty_tax_status=contraparte_status,
        product_ncm=ncm,
        tax_regime=emitente.regime_tributario,
        is_final_consumer=consumidor_final,
        operation_nature=natureza_operacao,
    )
