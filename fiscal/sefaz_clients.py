"""
Camada de transmissão SEFAZ (NF-e modelo 55).

Este módulo define:

- O contrato TransmissorProtocol consumido pela máquina de estados da NF-e.
- DTOs de resposta (autorização, cancelamento, rejeição).
- MockSefazTransmissor, usado em desenvolvimento/teste (sempre autoriza).
- MockSefazTransmissorRejeita, que devolve rejeição fiscal configurável.
- MockSefazTransmissorAlwaysFail, que simula falha técnica de comunicação.

Assinatura, montagem de XML e transporte SOAP ficam fora do núcleo: um
client real por UF/ambiente só precisa cumprir TransmissorProtocol.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Union

from django.utils import timezone

from fiscal.uf import get_uf, uf_valida


# ---------------------------------------------------------------------------
# Exceções específicas
# ---------------------------------------------------------------------------


class SefazTechnicalError(Exception):
    """
    Erros técnicos na comunicação com a SEFAZ (timeout, conexão, erro interno).

    Diferente de RejeicaoSefaz (regra de negócio da SEFAZ, devolvida como
    valor), esta exceção atravessa o núcleo sem ser reinterpretada: política
    de retentativa pertence ao transmissor, não à máquina de estados.
    """

    def __init__(
        self,
        message: str,
        *,
        codigo: str | None = None,
        raw: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.codigo = codigo
        self.raw: Dict[str, Any] = raw or {}


# ---------------------------------------------------------------------------
# DTOs de resposta da SEFAZ
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AutorizacaoSefaz:
    """
    Autorização de uso da NF-e (cStat 100).
    """

    codigo: int
    mensagem: str
    protocolo: str
    chave_acesso: str
    autorizado_em: datetime
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CancelamentoSefaz:
    """
    Evento de cancelamento homologado (cStat 135).
    """

    codigo: int
    mensagem: str
    protocolo: str
    cancelado_em: datetime
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RejeicaoSefaz:
    """
    Rejeição fiscal devolvida pela SEFAZ. O motivo é guardado literalmente.
    """

    codigo: str
    motivo: str
    raw: Dict[str, Any] = field(default_factory=dict)


ResultadoAutorizacao = Union[AutorizacaoSefaz, RejeicaoSefaz]
ResultadoCancelamento = Union[CancelamentoSefaz, RejeicaoSefaz]


# ---------------------------------------------------------------------------
# Contrato do transmissor SEFAZ
# ---------------------------------------------------------------------------


class TransmissorProtocol(Protocol):
    """
    Contrato mínimo que um transmissor SEFAZ deve cumprir.

    A máquina de estados depende deste protocolo, nunca de uma
    implementação concreta. Chamadas são síncronas do ponto de vista do
    núcleo: a transição só termina quando o transmissor responde.
    """

    def autorizar(self, documento) -> ResultadoAutorizacao:
        ...

    def cancelar(self, documento, justificativa: str) -> ResultadoCancelamento:
        ...


# ---------------------------------------------------------------------------
# Implementações mock
# ---------------------------------------------------------------------------


def _gerar_chave_acesso(uf: str) -> str:
    """
    Chave mock com 44 dígitos, iniciando pelo código IBGE da UF.
    """
    codigo_uf = get_uf(uf).codigo_ibge if uf_valida(uf) else "35"
    digitos = str(uuid.uuid4().int)[:42].ljust(42, "0")
    return codigo_uf + digitos


class MockSefazTransmissor:
    """
    Transmissor mock que sempre autoriza e sempre homologa cancelamentos.

    Códigos de retorno seguem a convenção da SEFAZ:
      * 100 para autorização de uso
      * 135 para evento de cancelamento registrado
    """

    def __init__(self, *, ambiente: str = "homolog", uf: Optional[str] = None):
        self.ambiente = ambiente
        self.uf = uf or "SP"

    def autorizar(self, documento) -> ResultadoAutorizacao:
        chave_acesso = _gerar_chave_acesso(self.uf)
        protocolo = f"1{get_uf(self.uf).codigo_ibge if uf_valida(self.uf) else '35'}{uuid.uuid4().int % 10**12:012d}"
        mensagem = "Autorizado o uso da NF-e (mock)."

        raw = {
            "codigo": 100,
            "mensagem": mensagem,
            "protocolo": protocolo,
            "chave_acesso": chave_acesso,
            "documento_id": str(getattr(documento, "id", "")),
            "ambiente": self.ambiente,
            "uf": self.uf,
        }

        return AutorizacaoSefaz(
            codigo=100,
            mensagem=mensagem,
            protocolo=protocolo,
            chave_acesso=chave_acesso,
            autorizado_em=timezone.now(),
            raw=raw,
        )

    def cancelar(self, documento, justificativa: str) -> ResultadoCancelamento:
        autorizacao = getattr(documento, "autorizacao", None)
        chave = getattr(autorizacao, "chave_acesso", "") or ""
        protocolo = f"CANCEL-{chave[-10:]}"
        mensagem = "Evento registrado e vinculado a NF-e (mock)."

        raw = {
            "codigo": 135,
            "mensagem": mensagem,
            "protocolo": protocolo,
            "justificativa": justificativa,
            "ambiente": self.ambiente,
            "uf": self.uf,
        }

        return CancelamentoSefaz(
            codigo=135,
            mensagem=mensagem,
            protocolo=protocolo,
            cancelado_em=timezone.now(),
            raw=raw,
        )


class MockSefazTransmissorRejeita(MockSefazTransmissor):
    """
    Mock que rejeita autorização e cancelamento com o código/motivo informado.
    """

    def __init__(
        self,
        *,
        ambiente: str = "homolog",
        uf: Optional[str] = None,
        codigo: str = "539",
        motivo: str = "Rejeição: Duplicidade de NF-e com diferença na Chave de Acesso",
    ):
        super().__init__(ambiente=ambiente, uf=uf)
        self.codigo = codigo
        self.motivo = motivo

    def _rejeicao(self) -> RejeicaoSefaz:
        return RejeicaoSefaz(
            codigo=self.codigo,
            motivo=self.motivo,
            raw={
                "codigo": self.codigo,
                "motivo": self.motivo,
                "ambiente": self.ambiente,
                "uf": self.uf,
            },
        )

    def autorizar(self, documento) -> ResultadoAutorizacao:
        return self._rejeicao()

    def cancelar(self, documento, justificativa: str) -> ResultadoCancelamento:
        return self._rejeicao()


class MockSefazTransmissorAlwaysFail(MockSefazTransmissor):
    """
    Mock que SEMPRE falha tecnicamente.

    Usado em testes para garantir que o núcleo repassa a exceção sem
    alterar o documento e sem tentar de novo.
    """

    def _raise_technical_error(self) -> None:
        raise SefazTechnicalError(
            message="Falha técnica simulada na comunicação com a SEFAZ (mock).",
            codigo="TECH_FAIL",
            raw={
                "motivo": "Falha técnica simulada no mock.",
                "uf": self.uf,
                "ambiente": self.ambiente,
            },
        )

    def autorizar(self, documento) -> ResultadoAutorizacao:
        self._raise_technical_error()

    def cancelar(self, documento, justificativa: str) -> ResultadoCancelamento:
        self._raise_technical_error()
