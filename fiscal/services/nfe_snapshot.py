# fiscal/services/nfe_snapshot.py
"""
Conversão NfeDocument <-> dict JSON-safe.

Decimal vira string (sem perder casas), datetime vira ISO 8601 com fuso.
O formato é guardado em NfeDocumentoRegistro.snapshot.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from django.utils.dateparse import parse_datetime

from fiscal.sefaz_clients import AutorizacaoSefaz, RejeicaoSefaz
from fiscal.services.nfe_documento import (
    BlocoIcmsSt,
    BlocoTributo,
    CancelamentoNfe,
    DadosCartao,
    Destinatario,
    NfeCabecalho,
    NfeDocument,
    NfeLineItem,
    Pagamento,
    RegistroHistorico,
)

FORMATO_SNAPSHOT = 1


def _jsonable(valor: Any) -> Any:
    if isinstance(valor, dict):
        return {k: _jsonable(v) for k, v in valor.items()}
    if isinstance(valor, (list, tuple)):
        return [_jsonable(v) for v in valor]
    if isinstance(valor, Decimal):
        return str(valor)
    if isinstance(valor, datetime):
        return valor.isoformat()
    if isinstance(valor, uuid.UUID):
        return str(valor)
    if isinstance(valor, str):
        # TextChoices viram o valor puro
        return str(valor)
    return valor


def _dt(valor: Optional[str]) -> Optional[datetime]:
    if not valor:
        return None
    return parse_datetime(valor)


def documento_para_dict(documento: NfeDocument) -> Dict[str, Any]:
    dados = _jsonable(asdict(documento))
    dados["formato"] = FORMATO_SNAPSHOT
    return dados


def _bloco(dados) -> Optional[BlocoTributo]:
    return BlocoTributo(**dados) if dados else None


def _item(dados: Dict[str, Any]) -> NfeLineItem:
    return NfeLineItem(
        **{
            **dados,
            "icms": _bloco(dados.get("icms")),
            "icms_st": BlocoIcmsSt(**dados["icms_st"]) if dados.get("icms_st") else None,
            "pis": _bloco(dados.get("pis")),
            "cofins": _bloco(dados.get("cofins")),
            "ipi": _bloco(dados.get("ipi")),
        }
    )


def _pagamento(dados: Dict[str, Any]) -> Pagamento:
    cartao = dados.get("cartao")
    return Pagamento(**{**dados, "cartao": DadosCartao(**cartao) if cartao else None})


def _cabecalho(dados: Dict[str, Any]) -> NfeCabecalho:
    destinatario = dados.get("destinatario")
    return NfeCabecalho(
        **{
            **dados,
            "data_emissao": _dt(dados.get("data_emissao")),
            "destinatario": Destinatario(**destinatario) if destinatario else None,
        }
    )


def documento_de_dict(dados: Dict[str, Any]) -> NfeDocument:
    dados = dict(dados)
    dados.pop("formato", None)

    autorizacao = dados.get("autorizacao")
    rejeicao = dados.get("rejeicao")
    cancelamento = dados.get("cancelamento")

    return NfeDocument(
        id=dados["id"],
        cabecalho=_cabecalho(dados["cabecalho"]),
        status=dados["status"],
        itens=tuple(_item(i) for i in dados.get("itens", [])),
        pagamentos=tuple(_pagamento(p) for p in dados.get("pagamentos", [])),
        autorizacao=(
            AutorizacaoSefaz(**{**autorizacao, "autorizado_em": _dt(autorizacao["autorizado_em"])})
            if autorizacao
            else None
        ),
        rejeicao=RejeicaoSefaz(**rejeicao) if rejeicao else None,
        cancelamento=(
            CancelamentoNfe(**{**cancelamento, "cancelado_em": _dt(cancelamento["cancelado_em"])})
            if cancelamento
            else None
        ),
        historico=tuple(
            RegistroHistorico(**{**h, "em": _dt(h["em"])}) for h in dados.get("historico", [])
        ),
    )
