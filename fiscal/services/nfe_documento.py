# fiscal/services/nfe_documento.py
"""
Agregado NfeDocument.

O documento é um snapshot imutável: toda alteração devolve um NOVO
documento. Itens, pagamentos e cabeçalho só podem ser alterados em DRAFT;
fora disso o agregado levanta DocumentoImutavelError.

Valores monetários usam Decimal com arredondamento ROUND_HALF_UP em
2 casas, igual ao cálculo de totais do PDV.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from django.db import models

from fiscal.exceptions import DocumentoImutavelError
from fiscal.sefaz_clients import AutorizacaoSefaz, RejeicaoSefaz
from fiscal.services.contexto import CounterpartyTaxStatus, OperationDirection
from fiscal.services.regras import TaxTreatment

ZERO = Decimal("0")
CENTAVOS = Decimal("0.01")


def round2(valor) -> Decimal:
    return Decimal(valor).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def para_decimal(valor, campo: str = "valor") -> Decimal:
    if isinstance(valor, bool):
        raise ValueError(f"{campo} não pode ser booleano.")
    if isinstance(valor, Decimal):
        numero = valor
    else:
        try:
            numero = Decimal(str(valor))
        except (InvalidOperation, ValueError):
            raise ValueError(f"{campo} não é numérico: {valor!r}.") from None
    # NaN/Infinity quebram comparações e o quantize
    if not numero.is_finite():
        raise ValueError(f"{campo} precisa ser um número finito, recebido {valor!r}.")
    return numero


class NfeStatus(models.TextChoices):
    DRAFT = "DRAFT", "Rascunho"
    PENDING_REVIEW = "PENDING_REVIEW", "Aguardando revisão"
    PENDING_TRANSMISSION = "PENDING_TRANSMISSION", "Aguardando transmissão"
    AUTHORIZED = "AUTHORIZED", "Autorizada"
    REJECTED = "REJECTED", "Rejeitada"
    CANCELLED = "CANCELLED", "Cancelada"


# ---------------------------------------------------------------------------
# Blocos de tributo e itens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BlocoTributo:
    """
    Um tributo do item (ICMS, PIS, COFINS ou IPI).

    Para o ICMS, `familia` diz se `codigo` é CST ou CSOSN.
    """

    codigo: str
    base: Decimal
    aliquota: Decimal
    valor: Decimal
    familia: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "base", para_decimal(self.base, "base"))
        object.__setattr__(self, "aliquota", para_decimal(self.aliquota, "aliquota"))
        object.__setattr__(self, "valor", para_decimal(self.valor, "valor"))

    @classmethod
    def calcular(cls, codigo: str, base, aliquota, *, familia: Optional[str] = None) -> "BlocoTributo":
        base = round2(para_decimal(base, "base"))
        aliquota = para_decimal(aliquota, "aliquota")
        return cls(
            codigo=codigo,
            base=base,
            aliquota=aliquota,
            valor=round2(base * aliquota / Decimal("100")),
            familia=familia,
        )


@dataclass(frozen=True)
class BlocoIcmsSt:
    """
    ICMS retido por substituição tributária.

    base = (total do item + IPI) x (1 + MVA%) reduzida por reducao_base%;
    valor = base x aliquota% - ICMS próprio, nunca negativo.
    """

    base: Decimal
    aliquota: Decimal
    valor: Decimal
    mva: Decimal = ZERO
    reducao_base: Decimal = ZERO
    modalidade_bc: Optional[int] = None

    def __post_init__(self):
        for campo in ("base", "aliquota", "valor", "mva", "reducao_base"):
            object.__setattr__(self, campo, para_decimal(getattr(self, campo), campo))

    @classmethod
    def calcular(cls, tratamento: TaxTreatment, total, *, ipi=ZERO, icms_proprio=ZERO) -> "BlocoIcmsSt":
        cem = Decimal("100")
        mva = tratamento.icms_st_mva or ZERO
        reducao = tratamento.icms_st_reducao or ZERO
        base = round2((total + ipi) * (cem + mva) / cem * (cem - reducao) / cem)
        valor = round2(base * tratamento.icms_st_aliquota / cem - icms_proprio)
        modalidade = tratamento.icms_st_modalidade_bc
        return cls(
            base=base,
            aliquota=tratamento.icms_st_aliquota,
            valor=max(valor, ZERO),
            mva=mva,
            reducao_base=reducao,
            modalidade_bc=int(modalidade) if modalidade is not None else None,
        )


_CAMPOS_DECIMAIS_ITEM = (
    "quantity",
    "unit_price",
    "discount",
    "freight",
    "insurance",
    "other_costs",
)


@dataclass(frozen=True)
class NfeLineItem:
    sequence_number: int
    product_ref: str
    quantity: Decimal
    unit_price: Decimal
    descricao: str = ""
    ncm: str = ""
    cfop: str = ""
    discount: Decimal = ZERO
    freight: Decimal = ZERO
    insurance: Decimal = ZERO
    other_costs: Decimal = ZERO
    icms: Optional[BlocoTributo] = None
    pis: Optional[BlocoTributo] = None
    cofins: Optional[BlocoTributo] = None
    ipi: Optional[BlocoTributo] = None
    icms_st: Optional[BlocoIcmsSt] = None
    regra_fiscal_id: Any = None

    def __post_init__(self):
        for campo in _CAMPOS_DECIMAIS_ITEM:
            object.__setattr__(self, campo, para_decimal(getattr(self, campo), campo))

    @property
    def valor_bruto(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def line_total(self) -> Decimal:
        return round2(
            self.valor_bruto
            - self.discount
            + self.freight
            + self.insurance
            + self.other_costs
        )

    @property
    def tributos(self) -> Tuple[BlocoTributo, ...]:
        blocos = (self.icms, self.icms_st, self.pis, self.cofins, self.ipi)
        return tuple(b for b in blocos if b is not None)

    @property
    def total_tributos(self) -> Decimal:
        return sum((b.valor for b in self.tributos), ZERO)

    @property
    def tem_tratamento(self) -> bool:
        return bool(self.cfop) and None not in (self.icms, self.pis, self.cofins)

    def com_tratamento(self, tratamento: TaxTreatment, *, regra_id=None) -> "NfeLineItem":
        """
        Novo item com CFOP e blocos calculados a partir do tratamento.

        Base do ICMS = total do item reduzido pelo percentual de redução;
        PIS, COFINS e IPI usam o total do item. Com ICMS-ST o item ganha
        também o bloco icms_st (ver BlocoIcmsSt).
        """
        total = self.line_total
        fator_icms = (Decimal("100") - tratamento.icms_reducao_base) / Decimal("100")

        ipi = None
        if tratamento.ipi_cst is not None:
            ipi = BlocoTributo.calcular(tratamento.ipi_cst, total, tratamento.ipi_aliquota)

        icms = BlocoTributo.calcular(
            tratamento.icms_codigo,
            total * fator_icms,
            tratamento.icms_aliquota,
            familia=tratamento.familia_icms.value,
        )

        icms_st = None
        if tratamento.tem_st:
            icms_st = BlocoIcmsSt.calcular(
                tratamento,
                total,
                ipi=ipi.valor if ipi is not None else ZERO,
                icms_proprio=icms.valor,
            )

        return replace(
            self,
            cfop=tratamento.cfop,
            icms=icms,
            icms_st=icms_st,
            pis=BlocoTributo.calcular(tratamento.pis_cst, total, tratamento.pis_aliquota),
            cofins=BlocoTributo.calcular(tratamento.cofins_cst, total, tratamento.cofins_aliquota),
            ipi=ipi,
            regra_fiscal_id=regra_id,
        )


# ---------------------------------------------------------------------------
# Pagamentos
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DadosCartao:
    """
    Grupo 'card' do pagamento (obrigatório para crédito, débito e
    pagamento instantâneo).
    """

    cnpj_credenciadora: str
    bandeira: str
    autorizacao: str
    tipo_integracao: int = 2  # 1 = TEF integrado, 2 = POS


@dataclass(frozen=True)
class Pagamento:
    forma: str
    valor: Decimal
    descricao: str = ""
    cartao: Optional[DadosCartao] = None

    def __post_init__(self):
        object.__setattr__(self, "valor", para_decimal(self.valor, "valor"))


# ---------------------------------------------------------------------------
# Cabeçalho
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Destinatario:
    documento: str
    nome: str
    uf: str
    tax_status: CounterpartyTaxStatus = CounterpartyTaxStatus.TAXPAYER
    inscricao_estadual: str = ""

    def __post_init__(self):
        object.__setattr__(self, "tax_status", CounterpartyTaxStatus(self.tax_status))

    @property
    def documento_digitos(self) -> str:
        return "".join(ch for ch in (self.documento or "") if ch.isdigit())


@dataclass(frozen=True)
class NfeCabecalho:
    natureza_operacao: str
    direcao: OperationDirection = OperationDirection.OUTBOUND
    serie: int = 1
    numero: Optional[int] = None
    data_emissao: Optional[datetime] = None
    destinatario: Optional[Destinatario] = None
    consumidor_final: bool = False
    frete: Decimal = ZERO
    seguro: Decimal = ZERO
    outras_despesas: Decimal = ZERO
    desconto: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, "direcao", OperationDirection(self.direcao))
        for campo in ("frete", "seguro", "outras_despesas", "desconto"):
            object.__setattr__(self, campo, para_decimal(getattr(self, campo), campo))


# ---------------------------------------------------------------------------
# Eventos pós-transmissão e histórico
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CancelamentoNfe:
    protocolo: str
    justificativa: str
    cancelado_em: datetime


@dataclass(frozen=True)
class RegistroHistorico:
    status_anterior: str
    status_novo: str
    evento: str
    em: datetime
    detalhe: str = ""


# ---------------------------------------------------------------------------
# Agregado
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NfeDocument:
    id: str
    cabecalho: NfeCabecalho
    status: NfeStatus = NfeStatus.DRAFT
    itens: Tuple[NfeLineItem, ...] = ()
    pagamentos: Tuple[Pagamento, ...] = ()
    autorizacao: Optional[AutorizacaoSefaz] = None
    rejeicao: Optional[RejeicaoSefaz] = None
    cancelamento: Optional[CancelamentoNfe] = None
    historico: Tuple[RegistroHistorico, ...] = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "status", NfeStatus(self.status))
        object.__setattr__(self, "itens", tuple(self.itens))
        object.__setattr__(self, "pagamentos", tuple(self.pagamentos))
        object.__setattr__(self, "historico", tuple(self.historico))

    @classmethod
    def novo(cls, cabecalho: NfeCabecalho, *, id: Optional[str] = None) -> "NfeDocument":
        return cls(id=id or str(uuid.uuid4()), cabecalho=cabecalho)

    # --- guarda de imutabilidade -------------------------------------------

    def _exigir_rascunho(self, acao: str) -> None:
        if self.status != NfeStatus.DRAFT:
            raise DocumentoImutavelError(
                f"Não é possível {acao} com o documento {self.id} em {self.status}. "
                f"Retorne para DRAFT antes de corrigir.",
                status_atual=self.status,
            )

    # --- itens ---------------------------------------------------------------

    def adicionar_item(self, *, product_ref: str, quantity, unit_price, **campos) -> "NfeDocument":
        self._exigir_rascunho("adicionar item")
        item = NfeLineItem(
            sequence_number=len(self.itens) + 1,
            product_ref=product_ref,
            quantity=quantity,
            unit_price=unit_price,
            **campos,
        )
        return replace(self, itens=self.itens + (item,))

    def remover_item(self, sequence_number: int) -> "NfeDocument":
        self._exigir_rascunho("remover item")
        if not any(i.sequence_number == sequence_number for i in self.itens):
            raise ValueError(f"Item {sequence_number} não existe no documento {self.id}.")

        restantes = [i for i in self.itens if i.sequence_number != sequence_number]
        renumerados = tuple(
            replace(item, sequence_number=posicao)
            for posicao, item in enumerate(restantes, start=1)
        )
        return replace(self, itens=renumerados)

    def substituir_item(self, item: NfeLineItem) -> "NfeDocument":
        self._exigir_rascunho("alterar item")
        if not any(i.sequence_number == item.sequence_number for i in self.itens):
            raise ValueError(f"Item {item.sequence_number} não existe no documento {self.id}.")

        return replace(
            self,
            itens=tuple(
                item if atual.sequence_number == item.sequence_number else atual
                for atual in self.itens
            ),
        )

    # --- pagamentos ------------------------------------------------------------

    def adicionar_pagamento(
        self,
        forma: str,
        valor,
        *,
        descricao: str = "",
        cartao: Optional[DadosCartao] = None,
    ) -> "NfeDocument":
        self._exigir_rascunho("adicionar pagamento")
        pagamento = Pagamento(forma=forma, valor=valor, descricao=descricao, cartao=cartao)
        return replace(self, pagamentos=self.pagamentos + (pagamento,))

    def remover_pagamento(self, indice: int) -> "NfeDocument":
        self._exigir_rascunho("remover pagamento")
        if indice < 0 or indice >= len(self.pagamentos):
            raise ValueError(f"Pagamento {indice} não existe no documento {self.id}.")
        pagamentos = self.pagamentos[:indice] + self.pagamentos[indice + 1:]
        return replace(self, pagamentos=pagamentos)

    # --- cabeçalho -------------------------------------------------------------

    def alterar_cabecalho(self, **alteracoes) -> "NfeDocument":
        self._exigir_rascunho("alterar cabeçalho")
        return replace(self, cabecalho=replace(self.cabecalho, **alteracoes))

    # --- totais ----------------------------------------------------------------

    @property
    def products_total(self) -> Decimal:
        return round2(sum((i.line_total for i in self.itens), ZERO))

    @property
    def taxes_total(self) -> Decimal:
        return round2(sum((i.total_tributos for i in self.itens), ZERO))

    @property
    def grand_total(self) -> Decimal:
        c = self.cabecalho
        return round2(
            self.products_total + c.frete + c.seguro + c.outras_despesas - c.desconto
        )

    @property
    def total_pagamentos(self) -> Decimal:
        return sum((p.valor for p in self.pagamentos), ZERO)

    # --- atalhos de leitura ---------------------------------------------------

    @property
    def protocolo(self) -> Optional[str]:
        return self.autorizacao.protocolo if self.autorizacao else None

    @property
    def autorizado_em(self) -> Optional[datetime]:
        return self.autorizacao.autorizado_em if self.autorizacao else None
