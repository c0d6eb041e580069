# tests/fiscal/validacao/test_validacao_transmissao.py

from dataclasses import replace
from decimal import Decimal

import pytest

from fiscal.services.nfe_documento import DadosCartao, NfeDocument
from fiscal.services.validacao_service import validate_for_transmission


def _com_pagamento(doc, valor, forma="01", **kwargs):
    return replace(doc, pagamentos=()).adicionar_pagamento(forma, valor, **kwargs)


def test_documento_completo_passa(documento_completo, emitente):
    assert validate_for_transmission(documento_completo, emitente=emitente).ok


def test_itens_sem_tratamento(documento_rascunho, emitente):
    doc = documento_rascunho.adicionar_pagamento("01", "100.00")

    resultado = validate_for_transmission(doc, emitente=emitente)

    assert resultado.regras == ["TRATAMENTO_FISCAL_AUSENTE"] * 4
    assert [v.campo for v in resultado.violacoes] == [
        "itens[0].cfop",
        "itens[0].icms",
        "itens[0].pis",
        "itens[0].cofins",
    ]


def test_csosn_em_emitente_do_regime_normal(documento_completo, emitente, make_regra):
    regra = make_regra(cfop="5102", icms_cst=None, icms_csosn="102")
    doc = documento_completo.substituir_item(documento_completo.itens[0].com_tratamento(regra.treatment))

    resultado = validate_for_transmission(doc, emitente=emitente)

    assert resultado.regras == ["FAMILIA_ICMS_INCOMPATIVEL"]


def test_cst_em_emitente_do_simples(documento_completo, emitente_simples):
    resultado = validate_for_transmission(documento_completo, emitente=emitente_simples)

    assert resultado.regras == ["FAMILIA_ICMS_INCOMPATIVEL"]


def test_sem_pagamentos(documento_completo, emitente):
    doc = replace(documento_completo, pagamentos=())

    assert validate_for_transmission(doc, emitente=emitente).regras == ["SEM_PAGAMENTOS"]


@pytest.mark.parametrize("diferenca", ["0.009", "-0.009", "0.01", "-0.01", "0"])
def test_diferenca_dentro_da_tolerancia(documento_completo, emitente, diferenca):
    doc = _com_pagamento(documento_completo, documento_completo.grand_total + Decimal(diferenca))

    assert validate_for_transmission(doc, emitente=emitente).ok


@pytest.mark.parametrize("diferenca", ["0.011", "-0.011"])
def test_diferenca_fora_da_tolerancia(documento_completo, emitente, diferenca):
    doc = _com_pagamento(documento_completo, documento_completo.grand_total + Decimal(diferenca))

    assert validate_for_transmission(doc, emitente=emitente).regras == ["PAGAMENTOS_NAO_COBREM_TOTAL"]


def test_pagamento_de_900_para_nota_de_1000(documento_completo, emitente, make_regra):
    item = replace(documento_completo.itens[0], quantity=Decimal("20"))
    doc = replace(documento_completo, pagamentos=()).substituir_item(
        item.com_tratamento(make_regra().treatment)
    )
    doc = doc.adicionar_pagamento("01", "900.00")

    assert doc.grand_total == Decimal("1000.00")
    resultado = validate_for_transmission(doc, emitente=emitente)

    assert resultado.regras == ["PAGAMENTOS_NAO_COBREM_TOTAL"]
    assert resultado.violacoes[0].campo == "pagamentos"


def test_tolerancia_configuravel(documento_completo, emitente, settings):
    settings.NFE_TOLERANCIA_PAGAMENTO = Decimal("0.05")
    doc = _com_pagamento(documento_completo, documento_completo.grand_total - Decimal("0.04"))

    assert validate_for_transmission(doc, emitente=emitente).ok


def test_pagamento_com_valor_zero_e_forma_desconhecida(documento_completo, emitente):
    doc = documento_completo.adicionar_pagamento("01", "0").adicionar_pagamento("42", "1.00")

    resultado = validate_for_transmission(doc, emitente=emitente)

    assert "PAGAMENTO_VALOR_INVALIDO" in resultado.regras
    assert "FORMA_PAGAMENTO_INVALIDA" in resultado.regras
    assert "PAGAMENTOS_NAO_COBREM_TOTAL" in resultado.regras


def test_cartao_obrigatorio_para_credito(documento_completo, emitente):
    doc = _com_pagamento(documento_completo, documento_completo.grand_total, forma="03")

    resultado = validate_for_transmission(doc, emitente=emitente)

    assert resultado.regras == ["PAGAMENTO_CARTAO_OBRIGATORIO"]
    assert resultado.violacoes[0].campo == "pagamentos[0].cartao"


def test_cartao_incompleto(documento_completo, emitente):
    cartao = DadosCartao(cnpj_credenciadora="1234", bandeira="", autorizacao="AUT123")
    doc = _com_pagamento(documento_completo, documento_completo.grand_total, forma="04", cartao=cartao)

    resultado = validate_for_transmission(doc, emitente=emitente)

    assert [v.campo for v in resultado.violacoes] == [
        "pagamentos[0].cartao.cnpj_credenciadora",
        "pagamentos[0].cartao.bandeira",
    ]


def test_cartao_completo(documento_completo, emitente):
    cartao = DadosCartao(
        cnpj_credenciadora="01.027.058/0001-91",
        bandeira="01",
        autorizacao="AUT123456",
        tipo_integracao=1,
    )
    doc = _com_pagamento(documento_completo, documento_completo.grand_total, forma="03", cartao=cartao)

    assert validate_for_transmission(doc, emitente=emitente).ok


def test_forma_outros_exige_descricao(documento_completo, emitente):
    sem = _com_pagamento(documento_completo, documento_completo.grand_total, forma="99")
    com = _com_pagamento(
        documento_completo, documento_completo.grand_total, forma="99", descricao="Permuta"
    )

    assert validate_for_transmission(sem, emitente=emitente).regras == ["PAGAMENTO_DESCRICAO_OBRIGATORIA"]
    assert validate_for_transmission(com, emitente=emitente).ok


def test_documento_sem_itens(cabecalho, emitente):
    doc = NfeDocument.novo(cabecalho)

    assert validate_for_transmission(doc, emitente=emitente).regras == ["SEM_ITENS", "SEM_PAGAMENTOS"]
