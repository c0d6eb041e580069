# fiscal/services/nfe_state_machine.py

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple

from django.db import models
from django.utils import timezone

from fiscal.catalogo import TaxCodeCatalog
from fiscal.conf import justificativa_min_caracteres
from fiscal.exceptions import TransicaoInvalidaError
from fiscal.sefaz_clients import RejeicaoSefaz, TransmissorProtocol
from fiscal.services.emitente import Emitente
from fiscal.services.nfe_documento import (
    CancelamentoNfe,
    NfeDocument,
    NfeStatus,
    RegistroHistorico,
)
from fiscal.services.validacao_service import (
    ValidationResult,
    Violacao,
    validate_for_review,
    validate_for_transmission,
)

logger = logging.getLogger("nfe.fiscal")


class NfeEvento(models.TextChoices):
    SUBMIT_FOR_REVIEW = "SUBMIT_FOR_REVIEW", "Enviar para revisão"
    RETURN_TO_DRAFT = "RETURN_TO_DRAFT", "Voltar para rascunho"
    APPROVE_FOR_TRANSMISSION = "APPROVE_FOR_TRANSMISSION", "Aprovar para transmissão"
    AUTHORIZE = "AUTHORIZE", "Autorizar na SEFAZ"
    RESUBMIT = "RESUBMIT", "Reenviar após rejeição"
    CANCEL = "CANCEL", "Cancelar NF-e"


# Matriz de transições permitidas: status atual -> evento -> destinos possíveis.
# AUTHORIZE é o único evento com dois destinos (depende da resposta da SEFAZ).
TRANSICOES_VALIDAS: dict[str, dict[str, set[str]]] = {
    NfeStatus.DRAFT: {
        NfeEvento.SUBMIT_FOR_REVIEW: {NfeStatus.PENDING_REVIEW},
    },
    NfeStatus.PENDING_REVIEW: {
        NfeEvento.APPROVE_FOR_TRANSMISSION: {NfeStatus.PENDING_TRANSMISSION},
        NfeEvento.RETURN_TO_DRAFT: {NfeStatus.DRAFT},
    },
    NfeStatus.PENDING_TRANSMISSION: {
        NfeEvento.AUTHORIZE: {NfeStatus.AUTHORIZED, NfeStatus.REJECTED},
    },
    NfeStatus.REJECTED: {
        NfeEvento.RESUBMIT: {NfeStatus.PENDING_TRANSMISSION},
        NfeEvento.RETURN_TO_DRAFT: {NfeStatus.DRAFT},
    },
    NfeStatus.AUTHORIZED: {
        NfeEvento.CANCEL: {NfeStatus.CANCELLED},
    },
    # Estado terminal: não sai para lugar nenhum
    NfeStatus.CANCELLED: {},
}


def eventos_permitidos(status: str) -> set[str]:
    return set(TRANSICOES_VALIDAS.get(status, {}))


@dataclass(frozen=True)
class TransitionFailure:
    """
    Transição recusada por regra de negócio. O documento fica como estava.

    - violacoes: lista completa das validações que falharam.
    - rejeicao: resposta da SEFAZ quando o cancelamento é recusado.
    """

    documento_id: str
    status: str
    evento: str
    violacoes: Tuple[Violacao, ...] = ()
    rejeicao: Optional[RejeicaoSefaz] = None

    ok = False

    @property
    def regras(self) -> list[str]:
        return [v.regra for v in self.violacoes]


class NfeLifecycle:
    """
    ÚNICO ponto autorizado a trocar o status de uma NF-e.

    Recebe o snapshot atual e devolve um NOVO snapshot ou TransitionFailure;
    nunca altera o documento recebido. Evento não previsto para o status
    atual é erro de programação (TransicaoInvalidaError).
    """

    def __init__(
        self,
        *,
        catalog: Optional[TaxCodeCatalog] = None,
        emitente: Optional[Emitente] = None,
        transmitter: Optional[TransmissorProtocol] = None,
    ):
        self.catalog = catalog
        self.emitente = emitente
        self.transmitter = transmitter

    def transition(self, documento: NfeDocument, evento: str, payload: Optional[Mapping[str, Any]] = None):
        try:
            evento = NfeEvento(evento)
        except ValueError:
            raise TransicaoInvalidaError(
                f"Evento desconhecido: {evento!r}.", status_atual=documento.status, evento=evento
            ) from None

        status_atual = documento.status
        if evento not in TRANSICOES_VALIDAS.get(status_atual, {}):
            raise TransicaoInvalidaError(
                f"Evento {evento} não é permitido para a NF-e {documento.id} em {status_atual}.",
                status_atual=status_atual,
                evento=evento,
            )

        handler = getattr(self, f"_on_{evento.lower()}")
        return handler(documento, evento, payload or {})

    # --- handlers ------------------------------------------------------------

    def _on_submit_for_review(self, documento, evento, payload):
        resultado = validate_for_review(
            documento,
            catalog=self._exigir("catalog", evento),
            emitente=self._exigir("emitente", evento),
        )
        if not resultado.ok:
            return self._recusar(documento, evento, resultado)
        return self._mover(documento, evento, NfeStatus.PENDING_REVIEW)

    def _on_return_to_draft(self, documento, evento, payload):
        return self._mover(documento, evento, NfeStatus.DRAFT, detalhe=payload.get("motivo", ""))

    def _on_approve_for_transmission(self, documento, evento, payload):
        resultado = validate_for_transmission(documento, emitente=self._exigir("emitente", evento))
        if not resultado.ok:
            return self._recusar(documento, evento, resultado)
        return self._mover(documento, evento, NfeStatus.PENDING_TRANSMISSION)

    def _on_resubmit(self, documento, evento, payload):
        estrutural = validate_for_review(
            documento,
            catalog=self._exigir("catalog", evento),
            emitente=self._exigir("emitente", evento),
        )
        fiscal = validate_for_transmission(documento, emitente=self.emitente)
        resultado = ValidationResult(violacoes=estrutural.violacoes + fiscal.violacoes)
        if not resultado.ok:
            return self._recusar(documento, evento, resultado)
        return self._mover(documento, evento, NfeStatus.PENDING_TRANSMISSION)

    def _on_authorize(self, documento, evento, payload):
        if documento.autorizacao is not None:
            raise TransicaoInvalidaError(
                f"NF-e {documento.id} já possui protocolo de autorização.",
                status_atual=documento.status,
                evento=evento,
            )

        resposta = self._exigir("transmitter", evento).autorizar(documento)

        if isinstance(resposta, RejeicaoSefaz):
            return self._mover(
                documento,
                evento,
                NfeStatus.REJECTED,
                detalhe=f"{resposta.codigo} - {resposta.motivo}",
                rejeicao=resposta,
            )

        return self._mover(
            documento,
            evento,
            NfeStatus.AUTHORIZED,
            detalhe=f"Protocolo {resposta.protocolo}",
            autorizacao=resposta,
        )

    def _on_cancel(self, documento, evento, payload):
        justificativa = (payload.get("justificativa") or "").strip()
        minimo = justificativa_min_caracteres()
        if len(justificativa) < minimo:
            return self._recusar(
                documento,
                evento,
                ValidationResult(
                    violacoes=(
                        Violacao(
                            campo="justificativa",
                            regra="JUSTIFICATIVA_CURTA",
                            mensagem=f"Justificativa deve ter ao menos {minimo} caracteres.",
                        ),
                    )
                ),
            )

        resposta = self._exigir("transmitter", evento).cancelar(documento, justificativa)

        if isinstance(resposta, RejeicaoSefaz):
            falha = TransitionFailure(
                documento_id=documento.id,
                status=documento.status,
                evento=evento,
                rejeicao=resposta,
            )
            logger.warning(
                "nfe_cancelamento_rejeitado",
                extra={
                    "event": "nfe_cancelamento_rejeitado",
                    "documento_id": documento.id,
                    "codigo": resposta.codigo,
                    "motivo": resposta.motivo,
                },
            )
            return falha

        cancelamento = CancelamentoNfe(
            protocolo=resposta.protocolo,
            justificativa=justificativa,
            cancelado_em=resposta.cancelado_em,
        )
        return self._mover(
            documento,
            evento,
            NfeStatus.CANCELLED,
            detalhe=justificativa,
            cancelamento=cancelamento,
        )

    # --- helpers -------------------------------------------------------------

    def _exigir(self, nome: str, evento: str):
        valor = getattr(self, nome)
        if valor is None:
            raise ValueError(f"Evento {evento} exige o colaborador '{nome}'.")
        return valor

    def _recusar(self, documento: NfeDocument, evento: str, resultado: ValidationResult) -> TransitionFailure:
        logger.info(
            "nfe_transicao_recusada",
            extra={
                "event": "nfe_transicao_recusada",
                "documento_id": documento.id,
                "status_atual": documento.status,
                "evento": evento,
                "violacoes": [v.regra for v in resultado.violacoes],
            },
        )
        return TransitionFailure(
            documento_id=documento.id,
            status=documento.status,
            evento=evento,
            violacoes=resultado.violacoes,
        )

    def _mover(
        self,
        documento: NfeDocument,
        evento: str,
        novo_status: str,
        *,
        detalhe: str = "",
        **alteracoes,
    ) -> NfeDocument:
        status_atual = documento.status
        registro = RegistroHistorico(
            status_anterior=status_atual,
            status_novo=novo_status,
            evento=evento,
            em=timezone.now(),
            detalhe=detalhe,
        )
        novo = replace(
            documento,
            status=novo_status,
            historico=documento.historico + (registro,),
            **alteracoes,
        )

        logger.info(
            "nfe_status_transicao",
            extra={
                "event": "nfe_status_transicao",
                "documento_id": documento.id,
                "status_anterior": status_atual,
                "status_novo": novo_status,
                "evento": evento,
                "detalhe": detalhe,
            },
        )
        return novo


def transition(
    document: NfeDocument,
    event: str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    catalog: Optional[TaxCodeCatalog] = None,
    emitente: Optional[Emitente] = None,
    transmitter: Optional[TransmissorProtocol] = None,
):
    """
    Atalho funcional para NfeLifecycle(...).transition(...).

    Retorna o novo NfeDocument ou TransitionFailure.
    """
    return NfeLifecycle(catalog=catalog, emitente=emitente, transmitter=transmitter).transition(
        document, event, payload
    )
