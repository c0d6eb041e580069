# fiscal/services/nfe_repositorio.py
"""
Persistência dos snapshots de NF-e com controle otimista de concorrência.

salvar() faz compare-and-swap na coluna `versao`:

    UPDATE nfe_documento SET ..., versao = versao + 1
     WHERE id = :id AND versao = :versao_esperada

Se nenhuma linha for afetada, outro processo já gravou uma transição
sobre a mesma versão e a gravação atual é recusada (ConcorrenciaError).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from fiscal.exceptions import ConcorrenciaError, DocumentoNaoEncontradoError
from fiscal.models import NfeDocumentoRegistro
from fiscal.services.nfe_documento import NfeDocument
from fiscal.services.nfe_snapshot import documento_de_dict, documento_para_dict

logger = logging.getLogger("nfe.fiscal")


@dataclass(frozen=True)
class DocumentoVersionado:
    documento: NfeDocument
    versao: int


def _colunas(documento: NfeDocument) -> dict:
    autorizacao = documento.autorizacao
    cancelamento = documento.cancelamento
    return {
        "status": documento.status,
        "snapshot": documento_para_dict(documento),
        "serie": documento.cabecalho.serie,
        "numero": documento.cabecalho.numero,
        "protocolo": autorizacao.protocolo if autorizacao else None,
        "chave_acesso": autorizacao.chave_acesso if autorizacao else None,
        "autorizado_em": autorizacao.autorizado_em if autorizacao else None,
        "cancelado_em": cancelamento.cancelado_em if cancelamento else None,
    }


def registrar(documento: NfeDocument) -> DocumentoVersionado:
    """
    Grava um documento novo (versão 1).
    """
    try:
        with transaction.atomic():
            NfeDocumentoRegistro.objects.create(id=documento.id, versao=1, **_colunas(documento))
    except IntegrityError as exc:
        raise ConcorrenciaError(documento.id, 0) from exc

    logger.info(
        "nfe_documento_registrado",
        extra={"event": "nfe_documento_registrado", "documento_id": documento.id},
    )
    return DocumentoVersionado(documento=documento, versao=1)


def carregar(documento_id: str) -> DocumentoVersionado:
    registro = NfeDocumentoRegistro.objects.filter(pk=documento_id).first()
    if registro is None:
        raise DocumentoNaoEncontradoError(documento_id)
    return DocumentoVersionado(documento=documento_de_dict(registro.snapshot), versao=registro.versao)


def salvar(documento: NfeDocument, versao_esperada: int) -> DocumentoVersionado:
    """
    Compare-and-swap do snapshot. Retorna a nova versão gravada.
    """
    try:
        with transaction.atomic():
            afetados = NfeDocumentoRegistro.objects.filter(
                pk=documento.id,
                versao=versao_esperada,
            ).update(
                versao=F("versao") + 1,
                updated_at=timezone.now(),
                **_colunas(documento),
            )
    except IntegrityError as exc:
        # protocolo/chave únicos: já atribuídos a outro documento
        raise ConcorrenciaError(documento.id, versao_esperada) from exc

    if afetados == 0:
        if not NfeDocumentoRegistro.objects.filter(pk=documento.id).exists():
            raise DocumentoNaoEncontradoError(documento.id)

        logger.warning(
            "nfe_versao_desatualizada",
            extra={
                "event": "nfe_versao_desatualizada",
                "documento_id": documento.id,
                "versao_esperada": versao_esperada,
            },
        )
        raise ConcorrenciaError(documento.id, versao_esperada)

    return DocumentoVersionado(documento=documento, versao=versao_esperada + 1)
