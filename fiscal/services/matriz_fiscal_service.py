# fiscal/services/matriz_fiscal_service.py
"""
Resolução da matriz fiscal.

Dado um TransactionContext e o conjunto de regras ativas, escolhe no máximo
UMA regra e devolve o tratamento tributário correspondente.

Falhas de resolução são valores tipados, não exceções: cada uma aponta
para uma correção diferente (cadastrar regra, desempatar prioridade,
corrigir a família do código, corrigir o cadastro da contraparte).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple, Union

from django.db import transaction

from fiscal.exceptions import ContextoFiscalInvalidoError, RegraFiscalInvalidaError
from fiscal.services.contexto import (
    CounterpartyTaxStatus,
    TransactionContext,
    montar_contexto,
)
from fiscal.services.emitente import Emitente
from fiscal.services.nfe_documento import NfeDocument, NfeLineItem
from fiscal.services.regras import (
    ANY,
    FamiliaIcms,
    FiscalRule,
    IndicadorIEDestinatario,
    MatchConditions,
    TaxTreatment,
    familia_para_regime,
)

logger = logging.getLogger("nfe.fiscal")


# ---------------------------------------------------------------------------
# Resultados
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedTreatment:
    regra_id: Any
    prioridade: int
    tratamento: TaxTreatment

    ok = True

    @property
    def cfop(self) -> str:
        return self.tratamento.cfop

    @property
    def icms_codigo(self) -> str:
        return self.tratamento.icms_codigo


@dataclass(frozen=True)
class NoMatchingRule:
    contexto: TransactionContext

    ok = False
    codigo = "NENHUMA_REGRA_APLICAVEL"

    @property
    def mensagem(self) -> str:
        return "Nenhuma regra fiscal ativa se aplica a este contexto."


@dataclass(frozen=True)
class AmbiguousPriority:
    contexto: TransactionContext
    prioridade: int
    regras_ids: Tuple[Any, ...]

    ok = False
    codigo = "PRIORIDADE_AMBIGUA"

    @property
    def mensagem(self) -> str:
        ids = ", ".join(str(i) for i in self.regras_ids)
        return f"Regras {ids} empatadas na prioridade {self.prioridade}."


@dataclass(frozen=True)
class InconsistentTaxFamily:
    contexto: TransactionContext
    familia_esperada: FamiliaIcms
    regras_ids: Tuple[Any, ...]

    ok = False
    codigo = "FAMILIA_TRIBUTARIA_INCONSISTENTE"

    @property
    def mensagem(self) -> str:
        ids = ", ".join(str(i) for i in self.regras_ids)
        return (
            f"Regras {ids} casam com o contexto mas não usam {self.familia_esperada} "
            f"(regime {self.contexto.tax_regime})."
        )


@dataclass(frozen=True)
class CounterpartyMismatch:
    contexto: TransactionContext
    regra_id: Any
    indicador: IndicadorIEDestinatario

    ok = False
    codigo = "CONTRAPARTE_INCOMPATIVEL"

    @property
    def mensagem(self) -> str:
        return (
            f"Regra {self.regra_id} trata o destinatário como {self.indicador.label}, "
            f"mas a contraparte é não contribuinte."
        )


ResolutionFailure = Union[NoMatchingRule, AmbiguousPriority, InconsistentTaxFamily, CounterpartyMismatch]
ResolutionResult = Union[ResolvedTreatment, ResolutionFailure]


@dataclass(frozen=True)
class ContextoIncompleto:
    """
    O item ainda não tem dados para montar o contexto (NCM vazio em DRAFT,
    UF do destinatário inválida...). Só aparece na aplicação em lote.
    """

    campo: Any
    mensagem: str

    ok = False
    codigo = "CONTEXTO_INCOMPLETO"


# ---------------------------------------------------------------------------
# Resolvedor
# ---------------------------------------------------------------------------


class FiscalMatrixResolver:
    """
    Resolvedor sobre um conjunto fixo de regras.

    Sem efeitos colaterais: o mesmo contexto com as mesmas regras sempre
    produz o mesmo resultado.
    """

    def __init__(self, regras: Iterable[FiscalRule]):
        self.regras: Tuple[FiscalRule, ...] = tuple(regras)

    def resolver(self, contexto: TransactionContext) -> ResolutionResult:
        if not isinstance(contexto, TransactionContext):
            raise ContextoFiscalInvalidoError(
                f"Esperado TransactionContext, recebido {type(contexto).__name__}."
            )

        casadas = [r for r in self.regras if r.active and r.casa_com(contexto)]
        if not casadas:
            return self._registrar(contexto, NoMatchingRule(contexto=contexto))

        familia = familia_para_regime(contexto.tax_regime)
        candidatas = [r for r in casadas if r.familia_icms == familia]
        if not candidatas:
            return self._registrar(
                contexto,
                InconsistentTaxFamily(
                    contexto=contexto,
                    familia_esperada=familia,
                    regras_ids=tuple(r.id for r in casadas),
                ),
            )

        maior = max(r.priority for r in candidatas)
        vencedoras = [r for r in candidatas if r.priority == maior]
        if len(vencedoras) > 1:
            return self._registrar(
                contexto,
                AmbiguousPriority(
                    contexto=contexto,
                    prioridade=maior,
                    regras_ids=tuple(r.id for r in vencedoras),
                ),
            )

        vencedora = vencedoras[0]
        indicador = vencedora.treatment.indicador_ie_destinatario
        if (
            contexto.counterparty_tax_status == CounterpartyTaxStatus.NON_TAXPAYER
            and indicador != IndicadorIEDestinatario.NAO_CONTRIBUINTE
        ):
            return self._registrar(
                contexto,
                CounterpartyMismatch(contexto=contexto, regra_id=vencedora.id, indicador=indicador),
            )

        return self._registrar(
            contexto,
            ResolvedTreatment(
                regra_id=vencedora.id,
                prioridade=vencedora.priority,
                tratamento=vencedora.treatment,
            ),
        )

    @staticmethod
    def _registrar(contexto: TransactionContext, resultado: ResolutionResult) -> ResolutionResult:
        logger.debug(
            "matriz_fiscal_resolucao",
            extra={
                "event": "matriz_fiscal_resolucao",
                "resultado": getattr(resultado, "codigo", "RESOLVIDO"),
                "regra_id": getattr(resultado, "regra_id", None),
                "origem": contexto.origin_state,
                "destino": contexto.destination_state,
                "ncm": contexto.product_ncm,
                "regime": contexto.tax_regime,
            },
        )
        return resultado


def resolve_fiscal_treatment(
    context: TransactionContext, active_rules: Iterable[FiscalRule]
) -> ResolutionResult:
    return FiscalMatrixResolver(active_rules).resolver(context)


# ---------------------------------------------------------------------------
# Aplicação nos itens
# ---------------------------------------------------------------------------


def apply_treatment(item: NfeLineItem, tratamento: Union[ResolvedTreatment, TaxTreatment]) -> NfeLineItem:
    if isinstance(tratamento, ResolvedTreatment):
        return item.com_tratamento(tratamento.tratamento, regra_id=tratamento.regra_id)
    return item.com_tratamento(tratamento)


@dataclass(frozen=True)
class FalhaItem:
    sequence_number: int
    falha: Union[ResolutionFailure, ContextoIncompleto]


def apply_matrix_to_document(
    document: NfeDocument,
    rules: Sequence[FiscalRule],
    emitente: Emitente,
) -> Tuple[NfeDocument, List[FalhaItem]]:
    """
    Resolve a matriz para todos os itens do documento (somente em DRAFT).

    Todos os itens são processados: uma falha não interrompe os demais.
    Itens com falha ficam como estavam. Item cujo contexto não pode ser
    montado entra na lista como ContextoIncompleto.
    """
    cabecalho = document.cabecalho
    destinatario = cabecalho.destinatario
    if destinatario is None:
        raise ContextoFiscalInvalidoError(
            "Documento sem destinatário: impossível montar o contexto fiscal.",
            campo="destinatario",
        )

    resolvedor = FiscalMatrixResolver(rules)
    falhas: List[FalhaItem] = []
    atual = document

    for item in document.itens:
        try:
            contexto = montar_contexto(
                emitente,
                contraparte_uf=destinatario.uf,
                contraparte_status=destinatario.tax_status,
                ncm=item.ncm,
                consumidor_final=cabecalho.consumidor_final,
                direcao=cabecalho.direcao,
                natureza_operacao=cabecalho.natureza_operacao or None,
            )
        except ContextoFiscalInvalidoError as exc:
            falhas.append(
                FalhaItem(
                    sequence_number=item.sequence_number,
                    falha=ContextoIncompleto(campo=exc.campo, mensagem=exc.message),
                )
            )
            continue

        resultado = resolvedor.resolver(contexto)
        if isinstance(resultado, ResolvedTreatment):
            atual = atual.substituir_item(apply_treatment(item, resultado))
        else:
            falhas.append(FalhaItem(sequence_number=item.sequence_number, falha=resultado))

    logger.info(
        "matriz_fiscal_aplicada",
        extra={
            "event": "matriz_fiscal_aplicada",
            "documento_id": document.id,
            "itens": len(document.itens),
            "falhas": len(falhas),
        },
    )
    return atual, falhas


# ---------------------------------------------------------------------------
# Regras persistidas
# ---------------------------------------------------------------------------


def _condicao(valor):
    # NULL no banco = curinga
    return ANY if valor is None else valor


def regra_de_registro(registro) -> FiscalRule:
    """
    Converte uma linha de MatrizFiscal na regra de domínio.
    """
    condicoes = MatchConditions(
        operation_direction=_condicao(registro.direcao),
        origin_state=_condicao(registro.uf_origem),
        destination_state=_condicao(registro.uf_destino),
        counterparty_tax_status=_condicao(registro.tipo_contraparte),
        product_ncm=_condicao(registro.ncm),
        tax_regime=_condicao(registro.regime_tributario),
        is_final_consumer=_condicao(registro.consumidor_final),
        operation_nature=_condicao(registro.natureza_operacao),
    )
    try:
        tratamento = TaxTreatment(
            cfop=registro.cfop,
            icms_cst=registro.icms_cst,
            icms_csosn=registro.icms_csosn,
            icms_aliquota=registro.icms_aliquota,
            icms_reducao_base=registro.icms_reducao_base,
            indicador_ie_destinatario=registro.indicador_ie_destinatario,
            pis_cst=registro.pis_cst,
            pis_aliquota=registro.pis_aliquota,
            cofins_cst=registro.cofins_cst,
            cofins_aliquota=registro.cofins_aliquota,
            ipi_cst=registro.ipi_cst,
            ipi_aliquota=registro.ipi_aliquota,
            icms_modalidade_bc=registro.icms_modalidade_bc,
            icms_st_modalidade_bc=registro.icms_st_modalidade_bc,
            icms_st_mva=registro.icms_st_mva,
            icms_st_aliquota=registro.icms_st_aliquota,
            icms_st_reducao=registro.icms_st_reducao,
        )
    except RegraFiscalInvalidaError as exc:
        raise RegraFiscalInvalidaError(exc.message, regra_id=str(registro.pk)) from exc

    return FiscalRule(
        id=str(registro.pk),
        match_conditions=condicoes,
        treatment=tratamento,
        priority=registro.prioridade,
        active=registro.ativo,
        descricao=registro.descricao,
    )


def carregar_regras_ativas() -> List[FiscalRule]:
    from fiscal.models import MatrizFiscal

    registros = MatrizFiscal.objects.filter(ativo=True).order_by("-prioridade", "id")
    return [regra_de_registro(r) for r in registros]


@transaction.atomic
def remover_regra(regra_id) -> str:
    """
    Remove a regra da matriz.

    Regra já usada por documento autorizado é apenas desativada (o histórico
    fiscal precisa continuar apontando para ela). Retorna "DESATIVADA" ou
    "EXCLUIDA".
    """
    from fiscal.models import MatrizFiscal

    registro = MatrizFiscal.objects.select_for_update().filter(pk=regra_id).first()
    if registro is None:
        raise RegraFiscalInvalidaError(f"Regra {regra_id} não encontrada.", regra_id=regra_id)

    if registro.referenciada:
        registro.ativo = False
        registro.save(update_fields=["ativo", "updated_at"])
        resultado = "DESATIVADA"
    else:
        registro.delete()
        resultado = "EXCLUIDA"

    logger.info(
        "matriz_fiscal_regra_removida",
        extra={"event": "matriz_fiscal_regra_removida", "regra_id": regra_id, "resultado": resultado},
    )
    return resultado
