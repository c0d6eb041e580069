# conftest.py (na raiz do projeto)

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from fiscal.catalogo import TabelasEstaticasCatalogo
from fiscal.sefaz_clients import (
    MockSefazTransmissor,
    MockSefazTransmissorAlwaysFail,
    MockSefazTransmissorRejeita,
)
from fiscal.services.contexto import (
    CounterpartyTaxStatus,
    OperationDirection,
    TaxRegime,
    TransactionContext,
)
from fiscal.services.emitente import Emitente
from fiscal.services.nfe_documento import Destinatario, NfeCabecalho, NfeDocument
from fiscal.services.regras import FiscalRule, MatchConditions, TaxTreatment

NCM_REFRIGERANTE = "22021000"


# =============================================================================
# EMITENTE / CATÁLOGO / TRANSMISSORES
# =============================================================================

@pytest.fixture
def emitente():
    return Emitente(
        cnpj="12.345.678/0001-95",
        razao_social="Distribuidora Paulista LTDA",
        uf="SP",
        regime_tributario=TaxRegime.NORMAL,
        inscricao_estadual="111222333444",
    )


@pytest.fixture
def emitente_simples():
    return Emitente(
        cnpj="98765432000110",
        razao_social="Mercadinho Simples ME",
        uf="SP",
        regime_tributario=TaxRegime.SIMPLIFIED,
    )


@pytest.fixture
def catalogo():
    return TabelasEstaticasCatalogo()


@pytest.fixture
def transmissor():
    return MockSefazTransmissor(uf="SP")


@pytest.fixture
def transmissor_rejeita():
    return MockSefazTransmissorRejeita(uf="SP", codigo="539", motivo="Rejeição: Duplicidade de NF-e")


@pytest.fixture
def transmissor_falha():
    return MockSefazTransmissorAlwaysFail(uf="SP")


# =============================================================================
# CONTEXTO / REGRAS
# =============================================================================

@pytest.fixture
def contexto_sp_sp():
    return TransactionContext(
        operation_direction=OperationDirection.OUTBOUND,
        origin_state="SP",
        destination_state="SP",
        counterparty_tax_status=CounterpartyTaxStatus.TAXPAYER,
        product_ncm=NCM_REFRIGERANTE,
        tax_regime=TaxRegime.NORMAL,
        is_final_consumer=False,
    )


@pytest.fixture
def make_regra():
    """
    Factory de FiscalRule. Condições não informadas ficam como curinga.
    """

    def _make(
        id="r1",
        *,
        priority=10,
        active=True,
        cfop="5405",
        icms_cst="60",
        icms_csosn=None,
        icms_aliquota=Decimal("0"),
        pis_cst="01",
        pis_aliquota=Decimal("1.65"),
        cofins_cst="01",
        cofins_aliquota=Decimal("7.60"),
        **condicoes,
    ):
        tratamento_extra = {
            k: condicoes.pop(k)
            for k in (
                "indicador_ie_destinatario",
                "icms_reducao_base",
                "ipi_cst",
                "ipi_aliquota",
                "icms_modalidade_bc",
                "icms_st_modalidade_bc",
                "icms_st_mva",
                "icms_st_aliquota",
                "icms_st_reducao",
            )
            if k in condicoes
        }
        return FiscalRule(
            id=id,
            match_conditions=MatchConditions(**condicoes),
            treatment=TaxTreatment(
                cfop=cfop,
                icms_cst=icms_cst,
                icms_csosn=icms_csosn,
                icms_aliquota=icms_aliquota,
                pis_cst=pis_cst,
                pis_aliquota=pis_aliquota,
                cofins_cst=cofins_cst,
                cofins_aliquota=cofins_aliquota,
                **tratamento_extra,
            ),
            priority=priority,
            active=active,
        )

    return _make


# =============================================================================
# DOCUMENTOS
# =============================================================================

@pytest.fixture
def cabecalho():
    return NfeCabecalho(
        natureza_operacao="VENDA",
        direcao=OperationDirection.OUTBOUND,
        serie=1,
        numero=1001,
        data_emissao=datetime(2026, 3, 10, 14, 30, tzinfo=ZoneInfo("America/Sao_Paulo")),
        destinatario=Destinatario(
            documento="11.222.333/0001-81",
            nome="Supermercado Bom Preço LTDA",
            uf="SP",
            tax_status=CounterpartyTaxStatus.TAXPAYER,
            inscricao_estadual="123456789012",
        ),
    )


@pytest.fixture
def documento_rascunho(cabecalho):
    """
    DRAFT com 1 item (2 x 50,00 = 100,00), ainda sem tributação e sem pagamento.
    """
    return NfeDocument.novo(cabecalho).adicionar_item(
        product_ref="SKU-COLA-2L",
        descricao="Refrigerante cola 2L",
        ncm=NCM_REFRIGERANTE,
        quantity=Decimal("2"),
        unit_price=Decimal("50.00"),
    )


@pytest.fixture
def documento_completo(documento_rascunho, make_regra):
    """
    DRAFT tributado (CFOP 5405 / CST 60) e pago em dinheiro pelo total.
    """
    regra = make_regra()
    item = documento_rascunho.itens[0].com_tratamento(regra.treatment, regra_id=regra.id)
    doc = documento_rascunho.substituir_item(item)
    return doc.adicionar_pagamento("01", doc.grand_total)
