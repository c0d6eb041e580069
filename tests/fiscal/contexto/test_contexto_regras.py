# tests/fiscal/contexto/test_contexto_regras.py

from decimal import Decimal

import pytest

from fiscal.exceptions import ContextoFiscalInvalidoError, RegraFiscalInvalidaError
from fiscal.services.contexto import (
    CounterpartyTaxStatus,
    OperationDirection,
    TaxRegime,
    TransactionContext,
    montar_contexto,
)
from fiscal.services.regras import (
    ANY,
    FamiliaIcms,
    FiscalRule,
    IndicadorIEDestinatario,
    MatchConditions,
    TaxTreatment,
)

CONTEXTO_BASE = dict(
    operation_direction="OUTBOUND",
    origin_state="SP",
    destination_state="SP",
    counterparty_tax_status="TAXPAYER",
    product_ncm="22021000",
    tax_regime="NORMAL",
    is_final_consumer=False,
)


def test_contexto_converte_strings_em_enums():
    ctx = TransactionContext(**CONTEXTO_BASE)

    assert ctx.operation_direction is OperationDirection.OUTBOUND
    assert ctx.counterparty_tax_status is CounterpartyTaxStatus.TAXPAYER
    assert ctx.tax_regime is TaxRegime.NORMAL
    assert ctx.interestadual is False


@pytest.mark.parametrize(
    "campo,valor",
    [
        ("origin_state", "XX"),
        ("destination_state", "sp "),
        ("product_ncm", "2202100"),
        ("product_ncm", "2202.10.00"),
        ("tax_regime", "LUCRO_PRESUMIDO"),
        ("operation_direction", "SIDEWAYS"),
        ("is_final_consumer", "sim"),
        ("operation_nature", "   "),
    ],
)
def test_contexto_malformado_estoura_na_construcao(campo, valor):
    dados = dict(CONTEXTO_BASE, **{campo: valor})

    with pytest.raises(ContextoFiscalInvalidoError) as exc:
        TransactionContext(**dados)

    assert exc.value.code == "CONTEXTO_FISCAL_INVALIDO"
    assert exc.value.campo == campo


def test_montar_contexto_saida_e_entrada(emitente):
    saida = montar_contexto(
        emitente,
        contraparte_uf="RJ",
        contraparte_status=CounterpartyTaxStatus.TAXPAYER,
        ncm="22021000",
        consumidor_final=False,
    )
    entrada = montar_contexto(
        emitente,
        contraparte_uf="RJ",
        contraparte_status=CounterpartyTaxStatus.TAXPAYER,
        ncm="22021000",
        consumidor_final=False,
        direcao=OperationDirection.INBOUND,
    )

    assert (saida.origin_state, saida.destination_state) == ("SP", "RJ")
    assert (entrada.origin_state, entrada.destination_state) == ("RJ", "SP")
    assert saida.tax_regime == emitente.regime_tributario
    assert saida.interestadual


def test_condicao_none_e_recusada():
    with pytest.raises(RegraFiscalInvalidaError) as exc:
        MatchConditions(origin_state=None)

    assert exc.value.code == "REGRA_FISCAL_INVALIDA"


def test_condicoes_exigidas_ignora_curingas():
    condicoes = MatchConditions(origin_state="SP", is_final_consumer=False)

    assert condicoes.condicoes_exigidas() == {"origin_state": "SP", "is_final_consumer": False}
    assert condicoes.product_ncm is ANY


def test_tratamento_com_cst_e_csosn_ao_mesmo_tempo():
    with pytest.raises(RegraFiscalInvalidaError):
        TaxTreatment(cfop="5102", icms_cst="00", icms_csosn="102", pis_cst="01", cofins_cst="01")


def test_tratamento_sem_cst_nem_csosn():
    with pytest.raises(RegraFiscalInvalidaError):
        TaxTreatment(cfop="5102", pis_cst="01", cofins_cst="01")


@pytest.mark.parametrize("cfop", ["", "510", "51020", "5A02"])
def test_tratamento_cfop_mal_formado(cfop):
    with pytest.raises(RegraFiscalInvalidaError):
        TaxTreatment(cfop=cfop, icms_cst="00", pis_cst="01", cofins_cst="01")


@pytest.mark.parametrize("aliquota", ["-1", "100.01", "abc", "NaN", "Infinity"])
def test_tratamento_aliquota_fora_da_faixa(aliquota):
    with pytest.raises(RegraFiscalInvalidaError):
        TaxTreatment(cfop="5102", icms_cst="00", icms_aliquota=aliquota, pis_cst="01", cofins_cst="01")


def test_tratamento_normaliza_aliquotas_e_indicador():
    tratamento = TaxTreatment(
        cfop="5102",
        icms_csosn="102",
        icms_aliquota=0,
        pis_cst="49",
        cofins_cst="49",
        indicador_ie_destinatario=9,
    )

    assert tratamento.icms_aliquota == Decimal("0")
    assert isinstance(tratamento.pis_aliquota, Decimal)
    assert tratamento.indicador_ie_destinatario is IndicadorIEDestinatario.NAO_CONTRIBUINTE
    assert tratamento.familia_icms == FamiliaIcms.CSOSN
    assert tratamento.icms_codigo == "102"


def test_indicador_desconhecido():
    with pytest.raises(RegraFiscalInvalidaError):
        TaxTreatment(cfop="5102", icms_cst="00", pis_cst="01", cofins_cst="01", indicador_ie_destinatario=3)


def test_regra_com_regime_incompativel_com_a_familia():
    tratamento = TaxTreatment(cfop="5102", icms_csosn="102", pis_cst="49", cofins_cst="49")

    with pytest.raises(RegraFiscalInvalidaError) as exc:
        FiscalRule(
            id="r-errada",
            match_conditions=MatchConditions(tax_regime=TaxRegime.NORMAL),
            treatment=tratamento,
            priority=1,
        )

    assert exc.value.regra_id == "r-errada"


@pytest.mark.parametrize("prioridade", ["10", 1.5, True])
def test_prioridade_deve_ser_inteira(prioridade):
    tratamento = TaxTreatment(cfop="5102", icms_cst="00", pis_cst="01", cofins_cst="01")

    with pytest.raises(RegraFiscalInvalidaError):
        FiscalRule(id="r", match_conditions=MatchConditions(), treatment=tratamento, priority=prioridade)
