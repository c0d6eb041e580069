# fiscal/services/nfe_transicao_service.py

import logging
import uuid
from typing import Any, Mapping, Optional, Union

from django.db import transaction

from fiscal.catalogo import TaxCodeCatalog
from fiscal.conf import catalogo_padrao
from fiscal.models import MatrizFiscal, NfeAuditoria
from fiscal.sefaz_clients import SefazTechnicalError, TransmissorProtocol
from fiscal.sefaz_factory import get_transmissor_para_emitente
from fiscal.services.emitente import Emitente
from fiscal.services.nfe_documento import NfeDocument, NfeStatus
from fiscal.services.nfe_repositorio import carregar, salvar
from fiscal.services.nfe_state_machine import TransitionFailure, transition

logger = logging.getLogger("nfe.fiscal")


def _detalhe_falha(falha: TransitionFailure) -> dict:
    detalhe = {
        "violacoes": [
            {"campo": v.campo, "regra": v.regra, "mensagem": v.mensagem} for v in falha.violacoes
        ]
    }
    if falha.rejeicao is not None:
        detalhe["rejeicao"] = {"codigo": falha.rejeicao.codigo, "motivo": falha.rejeicao.motivo}
    return detalhe


def _detalhe_sucesso(documento: NfeDocument) -> dict:
    detalhe = {}
    if documento.historico:
        detalhe["detalhe"] = documento.historico[-1].detalhe
    if documento.status == NfeStatus.AUTHORIZED and documento.autorizacao:
        detalhe["protocolo"] = documento.autorizacao.protocolo
        detalhe["chave_acesso"] = documento.autorizacao.chave_acesso
    if documento.status == NfeStatus.REJECTED and documento.rejeicao:
        detalhe["rejeicao"] = {"codigo": documento.rejeicao.codigo, "motivo": documento.rejeicao.motivo}
    return detalhe


def _marcar_regras_referenciadas(documento: NfeDocument) -> int:
    ids = set()
    for item in documento.itens:
        try:
            ids.add(uuid.UUID(str(item.regra_fiscal_id)))
        except ValueError:
            # regra fora da matriz persistida (ex.: regras em memória)
            continue
    if not ids:
        return 0
    return MatrizFiscal.objects.filter(pk__in=ids, referenciada=False).update(referenciada=True)


@transaction.atomic
def executar_transicao(
    *,
    documento_id: str,
    evento: str,
    emitente: Emitente,
    payload: Optional[Mapping[str, Any]] = None,
    transmissor: Optional[TransmissorProtocol] = None,
    catalogo: Optional[TaxCodeCatalog] = None,
) -> Union[NfeDocument, TransitionFailure]:
    """
    Carrega o snapshot, aplica a transição e grava com compare-and-swap.

    Regras principais:
      - Transição aceita: grava o novo snapshot (versão + 1) e registra
        auditoria. Em AUTHORIZED, as regras da matriz usadas nos itens
        ficam marcadas como referenciadas.
      - Transição recusada: snapshot não muda; só a auditoria é gravada.
      - Falha técnica da SEFAZ: nada é gravado e a exceção sobe intacta.
      - Versão alterada por outro processo: ConcorrenciaError e rollback.
    """
    atual = carregar(documento_id)

    try:
        resultado = transition(
            atual.documento,
            evento,
            payload,
            catalog=catalogo or catalogo_padrao(),
            emitente=emitente,
            transmitter=transmissor or get_transmissor_para_emitente(emitente),
        )
    except SefazTechnicalError as exc:
        logger.error(
            "nfe_sefaz_falha_tecnica",
            extra={
                "event": "nfe_sefaz_falha_tecnica",
                "documento_id": documento_id,
                "evento": str(evento),
                "codigo": exc.codigo,
            },
        )
        raise

    if isinstance(resultado, TransitionFailure):
        NfeAuditoria.objects.create(
            documento_id=documento_id,
            evento=resultado.evento,
            status_anterior=atual.documento.status,
            status_novo=atual.documento.status,
            sucesso=False,
            versao=atual.versao,
            detalhe=_detalhe_falha(resultado),
        )
        return resultado

    gravado = salvar(resultado, atual.versao)

    if resultado.status == NfeStatus.AUTHORIZED:
        _marcar_regras_referenciadas(resultado)

    NfeAuditoria.objects.create(
        documento_id=documento_id,
        evento=resultado.historico[-1].evento,
        status_anterior=atual.documento.status,
        status_novo=resultado.status,
        sucesso=True,
        versao=gravado.versao,
        detalhe=_detalhe_sucesso(resultado),
    )

    logger.info(
        "nfe_transicao_gravada",
        extra={
            "event": "nfe_transicao_gravada",
            "documento_id": documento_id,
            "status_novo": resultado.status,
            "versao": gravado.versao,
        },
    )
    return resultado
