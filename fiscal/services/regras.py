# fiscal/services/regras.py
"""
Regras da matriz fiscal.

Uma FiscalRule = condições de aplicação (MatchConditions) + tratamento
tributário resultante (TaxTreatment) + prioridade.

Cada condição é um valor exigido (igualdade) ou o marcador explícito ANY.
None nunca significa "qualquer": string vazia é um valor concreto e só casa
com string vazia.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from django.db import models

from fiscal.exceptions import RegraFiscalInvalidaError
from fiscal.services.contexto import TaxRegime, TransactionContext


class _Qualquer:
    """Marcador de curinga. Instância única: compare sempre com `is ANY`."""

    _instancia = None

    def __new__(cls):
        if cls._instancia is None:
            cls._instancia = super().__new__(cls)
        return cls._instancia

    def __repr__(self) -> str:
        return "ANY"

    def __reduce__(self):
        return (_Qualquer, ())


ANY: Any = _Qualquer()


class FamiliaIcms(models.TextChoices):
    CST = "CST", "CST (regime normal)"
    CSOSN = "CSOSN", "CSOSN (Simples Nacional)"


class IndicadorIEDestinatario(models.IntegerChoices):
    """indIEDest: como o tratamento enxerga o destinatário perante o ICMS."""

    CONTRIBUINTE = 1, "Contribuinte ICMS"
    ISENTO = 2, "Contribuinte isento"
    NAO_CONTRIBUINTE = 9, "Não contribuinte"


class ModalidadeBC(models.IntegerChoices):
    """modBC do ICMS próprio."""

    MARGEM_VALOR_AGREGADO = 0, "Margem valor agregado (%)"
    PAUTA = 1, "Pauta (valor)"
    PRECO_TABELADO_MAXIMO = 2, "Preço tabelado máximo (valor)"
    VALOR_OPERACAO = 3, "Valor da operação"


class ModalidadeBCST(models.IntegerChoices):
    """modBCST do ICMS retido por substituição tributária."""

    PRECO_TABELADO = 0, "Preço tabelado ou máximo sugerido"
    LISTA_NEGATIVA = 1, "Lista negativa (valor)"
    LISTA_POSITIVA = 2, "Lista positiva (valor)"
    LISTA_NEUTRA = 3, "Lista neutra (valor)"
    MARGEM_VALOR_AGREGADO = 4, "Margem valor agregado (%)"
    PAUTA = 5, "Pauta (valor)"
    VALOR_OPERACAO = 6, "Valor da operação"


# Códigos de ICMS que admitem ICMS-ST no item
CODIGOS_COM_ST = frozenset({"10", "30", "70", "90", "201", "202", "203", "900"})

MVA_MAXIMA = Decimal("1000")


def familia_para_regime(regime: TaxRegime) -> FamiliaIcms:
    if regime == TaxRegime.NORMAL:
        return FamiliaIcms.CST
    return FamiliaIcms.CSOSN


def _decimal(valor, campo: str, *, regra_id=None, limite=Decimal("100")) -> Decimal:
    try:
        numero = Decimal(str(valor))
    except (InvalidOperation, ValueError):
        raise RegraFiscalInvalidaError(
            f"{campo} não é numérico: {valor!r}.", regra_id=regra_id
        ) from None
    if not numero.is_finite():
        raise RegraFiscalInvalidaError(
            f"{campo} precisa ser um número finito, recebido {valor!r}.", regra_id=regra_id
        )
    if numero < 0 or numero > limite:
        raise RegraFiscalInvalidaError(
            f"{campo} deve estar entre 0 e {limite}, recebido {numero}.", regra_id=regra_id
        )
    return numero


@dataclass(frozen=True)
class MatchConditions:
    operation_direction: Any = ANY
    origin_state: Any = ANY
    destination_state: Any = ANY
    counterparty_tax_status: Any = ANY
    product_ncm: Any = ANY
    tax_regime: Any = ANY
    is_final_consumer: Any = ANY
    operation_nature: Any = ANY

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) is None:
                raise RegraFiscalInvalidaError(
                    f"Condição '{f.name}' não pode ser None; use ANY para curinga."
                )

    def casa_com(self, contexto: TransactionContext) -> bool:
        for f in fields(self):
            exigido = getattr(self, f.name)
            if exigido is ANY:
                continue
            if exigido != getattr(contexto, f.name):
                return False
        return True

    def condicoes_exigidas(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not ANY
        }


@dataclass(frozen=True)
class TaxTreatment:
    """
    Tratamento tributário de um item. Exatamente um entre icms_cst e
    icms_csosn vem preenchido.

    ICMS-ST é opcional: vem quando icms_st_aliquota está preenchida e o
    código de ICMS admite substituição tributária (CODIGOS_COM_ST).
    MVA e redução da base ST valem zero quando ausentes.
    """

    cfop: str
    pis_cst: str
    cofins_cst: str
    icms_cst: Optional[str] = None
    icms_csosn: Optional[str] = None
    icms_aliquota: Decimal = Decimal("0")
    icms_reducao_base: Decimal = Decimal("0")
    indicador_ie_destinatario: IndicadorIEDestinatario = IndicadorIEDestinatario.CONTRIBUINTE
    pis_aliquota: Decimal = Decimal("0")
    cofins_aliquota: Decimal = Decimal("0")
    ipi_cst: Optional[str] = None
    ipi_aliquota: Decimal = Decimal("0")
    icms_modalidade_bc: Optional[ModalidadeBC] = None
    icms_st_modalidade_bc: Optional[ModalidadeBCST] = None
    icms_st_mva: Optional[Decimal] = None
    icms_st_aliquota: Optional[Decimal] = None
    icms_st_reducao: Optional[Decimal] = None

    def __post_init__(self):
        if not self.cfop or not str(self.cfop).isdigit() or len(str(self.cfop)) != 4:
            raise RegraFiscalInvalidaError(f"CFOP inválido: {self.cfop!r}.")

        tem_cst = self.icms_cst is not None
        tem_csosn = self.icms_csosn is not None
        if tem_cst and tem_csosn:
            raise RegraFiscalInvalidaError(
                "Tratamento com CST e CSOSN de ICMS ao mesmo tempo."
            )
        if not tem_cst and not tem_csosn:
            raise RegraFiscalInvalidaError("Tratamento sem CST nem CSOSN de ICMS.")

        if not self.pis_cst or not self.cofins_cst:
            raise RegraFiscalInvalidaError("CST de PIS e de COFINS são obrigatórios.")

        for campo in (
            "icms_aliquota",
            "icms_reducao_base",
            "pis_aliquota",
            "cofins_aliquota",
            "ipi_aliquota",
        ):
            object.__setattr__(self, campo, _decimal(getattr(self, campo), campo))

        try:
            indicador = IndicadorIEDestinatario(self.indicador_ie_destinatario)
        except ValueError:
            raise RegraFiscalInvalidaError(
                f"indicador_ie_destinatario inválido: {self.indicador_ie_destinatario!r}."
            ) from None
        object.__setattr__(self, "indicador_ie_destinatario", indicador)

        self._validar_modalidades()
        self._validar_st()

    def _validar_modalidades(self):
        for campo, enum in (
            ("icms_modalidade_bc", ModalidadeBC),
            ("icms_st_modalidade_bc", ModalidadeBCST),
        ):
            valor = getattr(self, campo)
            if valor is None:
                continue
            try:
                object.__setattr__(self, campo, enum(valor))
            except ValueError:
                raise RegraFiscalInvalidaError(f"{campo} inválida: {valor!r}.") from None

    def _validar_st(self):
        for campo in ("icms_st_aliquota", "icms_st_reducao"):
            valor = getattr(self, campo)
            if valor is not None:
                object.__setattr__(self, campo, _decimal(valor, campo))
        if self.icms_st_mva is not None:
            object.__setattr__(
                self, "icms_st_mva", _decimal(self.icms_st_mva, "icms_st_mva", limite=MVA_MAXIMA)
            )

        complementos = (self.icms_st_mva, self.icms_st_reducao, self.icms_st_modalidade_bc)
        if self.icms_st_aliquota is None:
            if any(v is not None for v in complementos):
                raise RegraFiscalInvalidaError(
                    "MVA, redução ou modalidade de ICMS-ST informadas sem alíquota ST."
                )
            return

        if self.icms_codigo not in CODIGOS_COM_ST:
            raise RegraFiscalInvalidaError(
                f"ICMS {self.icms_codigo} não admite substituição tributária."
            )

    @property
    def tem_st(self) -> bool:
        return self.icms_st_aliquota is not None

    @property
    def familia_icms(self) -> FamiliaIcms:
        return FamiliaIcms.CST if self.icms_cst is not None else FamiliaIcms.CSOSN

    @property
    def icms_codigo(self) -> str:
        return self.icms_cst if self.icms_cst is not None else self.icms_csosn


@dataclass(frozen=True)
class FiscalRule:
    id: Any
    match_conditions: MatchConditions
    treatment: TaxTreatment
    priority: int
    active: bool = True
    descricao: str = ""

    def __post_init__(self):
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            raise RegraFiscalInvalidaError(
                f"Prioridade deve ser inteira, recebido {self.priority!r}.", regra_id=self.id
            )

        regime = self.match_conditions.tax_regime
        if regime is not ANY:
            try:
                esperada = familia_para_regime(TaxRegime(regime))
            except ValueError:
                raise RegraFiscalInvalidaError(
                    f"Regime tributário inválido na condição: {regime!r}.", regra_id=self.id
                ) from None
            if esperada != self.treatment.familia_icms:
                raise RegraFiscalInvalidaError(
                    f"Regra exige regime {regime} mas traz {self.treatment.familia_icms} "
                    f"(esperado {esperada}).",
                    regra_id=self.id,
                )

    @property
    def familia_icms(self) -> FamiliaIcms:
        return self.treatment.familia_icms

    def casa_com(self, contexto: TransactionContext) -> bool:
        return self.match_conditions.casa_com(contexto)
