# fiscal/sefaz_factory.py
"""
Factory de transmissores SEFAZ por UF / ambiente.

Objetivos:
- Isolar a escolha do transmissor (mock ou real) em um único ponto.
- Receber o emitente explicitamente (nunca um "emitente ativo" global).
- Permitir plugar, no futuro, transmissores reais por UF sem mexer no núcleo.

No momento, todas as UFs usam MockSefazTransmissor por padrão.
"""

from __future__ import annotations

from typing import Type

from django.conf import settings

from fiscal.sefaz_clients import (
    MockSefazTransmissor,
    MockSefazTransmissorAlwaysFail,
    MockSefazTransmissorRejeita,
    TransmissorProtocol,
)
from fiscal.services.emitente import Emitente
from fiscal.uf import SIGLAS_UF, normalizar_uf

# Mapeamento de UF -> classe de transmissor.
TRANSMISSOR_POR_UF: dict[str, Type[MockSefazTransmissor]] = {
    sigla: MockSefazTransmissor for sigla in SIGLAS_UF
}


def _normalize_ambiente(ambiente: str | None) -> str:
    """
    Normaliza o ambiente para "homolog" ou "producao".

    Sem valor no emitente, vale settings.SEFAZ_AMBIENTE.
    """
    if not ambiente:
        ambiente = getattr(settings, "SEFAZ_AMBIENTE", "homolog") or "homolog"

    amb = ambiente.strip().lower()
    if amb in {"homolog", "homologacao", "homologação", "teste", "2"}:
        return "homolog"
    if amb in {"prod", "producao", "produção", "1"}:
        return "producao"

    return amb


def get_transmissor_para_emitente(
    emitente: Emitente,
    *,
    force_technical_fail: bool = False,
    force_rejeicao: bool = False,
) -> TransmissorProtocol:
    """
    Retorna o transmissor apropriado para o emitente informado.

      - UF e ambiente vêm do emitente, normalizados.
      - force_technical_fail=True devolve MockSefazTransmissorAlwaysFail.
      - force_rejeicao=True devolve MockSefazTransmissorRejeita.
    """
    uf = normalizar_uf(emitente.uf) or "SP"
    ambiente = _normalize_ambiente(emitente.ambiente)

    if force_technical_fail:
        return MockSefazTransmissorAlwaysFail(ambiente=ambiente, uf=uf)
    if force_rejeicao:
        return MockSefazTransmissorRejeita(ambiente=ambiente, uf=uf)

    transmissor_cls = TRANSMISSOR_POR_UF.get(uf, MockSefazTransmissor)
    return transmissor_cls(ambiente=ambiente, uf=uf)
