# tests/fiscal/persistencia/test_nfe_transicao_service.py

from decimal import Decimal

import pytest
from django.db.models import F

from fiscal.exceptions import ConcorrenciaError, DocumentoNaoEncontradoError, TransicaoInvalidaError
from fiscal.models import MatrizFiscal, NfeAuditoria, NfeDocumentoRegistro
from fiscal.sefaz_clients import MockSefazTransmissor, SefazTechnicalError
from fiscal.services.matriz_fiscal_service import (
    apply_matrix_to_document,
    carregar_regras_ativas,
    remover_regra,
)
from fiscal.services.nfe_documento import NfeDocument, NfeStatus
from fiscal.services.nfe_repositorio import carregar, registrar
from fiscal.services.nfe_state_machine import NfeEvento, TransitionFailure
from fiscal.services.nfe_transicao_service import executar_transicao


class _TransmissorConcorrente(MockSefazTransmissor):
    """
    Simula outro processo gravando o documento enquanto a SEFAZ responde.
    """

    def autorizar(self, documento):
        NfeDocumentoRegistro.objects.filter(pk=documento.id).update(versao=F("versao") + 1)
        return super().autorizar(documento)


@pytest.fixture
def regra_st():
    return MatrizFiscal.objects.create(
        descricao="Refrigerante ST interno",
        direcao="OUTBOUND",
        uf_origem="SP",
        uf_destino="SP",
        ncm="22021000",
        cfop="5405",
        icms_cst="60",
        pis_cst="01",
        pis_aliquota=Decimal("1.65"),
        cofins_cst="01",
        cofins_aliquota=Decimal("7.60"),
        prioridade=10,
    )


@pytest.fixture
def documento_registrado(documento_rascunho, emitente, regra_st):
    doc, falhas = apply_matrix_to_document(documento_rascunho, carregar_regras_ativas(), emitente)
    assert falhas == []
    doc = doc.adicionar_pagamento("01", doc.grand_total)
    registrar(doc)
    return doc


def _avancar(documento_id, emitente, *eventos, **kwargs):
    resultado = None
    for evento in eventos:
        resultado = executar_transicao(documento_id=documento_id, evento=evento, emitente=emitente, **kwargs)
    return resultado


@pytest.mark.django_db
def test_fluxo_persistido_ate_autorizacao(documento_registrado, emitente, regra_st, caplog):
    with caplog.at_level("INFO"):
        autorizado = _avancar(
            documento_registrado.id,
            emitente,
            NfeEvento.SUBMIT_FOR_REVIEW,
            NfeEvento.APPROVE_FOR_TRANSMISSION,
            NfeEvento.AUTHORIZE,
        )

    assert autorizado.status == NfeStatus.AUTHORIZED

    registro = NfeDocumentoRegistro.objects.get(pk=documento_registrado.id)
    assert registro.versao == 4
    assert registro.status == NfeStatus.AUTHORIZED
    assert registro.protocolo == autorizado.protocolo
    assert len(registro.chave_acesso) == 44
    assert registro.autorizado_em is not None

    auditorias = list(registro.auditorias.order_by("versao"))
    assert [(a.status_anterior, a.status_novo, a.versao) for a in auditorias] == [
        (NfeStatus.DRAFT, NfeStatus.PENDING_REVIEW, 2),
        (NfeStatus.PENDING_REVIEW, NfeStatus.PENDING_TRANSMISSION, 3),
        (NfeStatus.PENDING_TRANSMISSION, NfeStatus.AUTHORIZED, 4),
    ]
    assert all(a.sucesso for a in auditorias)
    assert auditorias[-1].detalhe["protocolo"] == autorizado.protocolo

    regra_st.refresh_from_db()
    assert regra_st.referenciada is True

    gravadas = [r for r in caplog.records if getattr(r, "event", None) == "nfe_transicao_gravada"]
    assert [r.versao for r in gravadas] == [2, 3, 4]


@pytest.mark.django_db
def test_regra_referenciada_so_pode_ser_desativada(documento_registrado, emitente, regra_st):
    _avancar(
        documento_registrado.id,
        emitente,
        NfeEvento.SUBMIT_FOR_REVIEW,
        NfeEvento.APPROVE_FOR_TRANSMISSION,
        NfeEvento.AUTHORIZE,
    )

    assert remover_regra(regra_st.pk) == "DESATIVADA"

    regra_st.refresh_from_db()
    assert regra_st.ativo is False
    assert carregar_regras_ativas() == []


@pytest.mark.django_db
def test_cancelamento_persistido(documento_registrado, emitente):
    _avancar(
        documento_registrado.id,
        emitente,
        NfeEvento.SUBMIT_FOR_REVIEW,
        NfeEvento.APPROVE_FOR_TRANSMISSION,
        NfeEvento.AUTHORIZE,
    )

    cancelado = executar_transicao(
        documento_id=documento_registrado.id,
        evento=NfeEvento.CANCEL,
        emitente=emitente,
        payload={"justificativa": "Cliente desistiu da compra antes da entrega"},
    )

    registro = NfeDocumentoRegistro.objects.get(pk=documento_registrado.id)
    assert cancelado.status == NfeStatus.CANCELLED
    assert registro.status == NfeStatus.CANCELLED
    assert registro.cancelado_em is not None
    assert registro.protocolo == cancelado.protocolo


@pytest.mark.django_db
def test_transicao_recusada_grava_so_auditoria(cabecalho, emitente):
    vazio = NfeDocument.novo(cabecalho)
    registrar(vazio)

    resultado = executar_transicao(documento_id=vazio.id, evento=NfeEvento.SUBMIT_FOR_REVIEW, emitente=emitente)

    assert isinstance(resultado, TransitionFailure)
    registro = NfeDocumentoRegistro.objects.get(pk=vazio.id)
    assert registro.versao == 1
    assert registro.status == NfeStatus.DRAFT

    auditoria = NfeAuditoria.objects.get(documento_id=vazio.id)
    assert auditoria.sucesso is False
    assert auditoria.status_novo == NfeStatus.DRAFT
    assert "SEM_ITENS" in [v["regra"] for v in auditoria.detalhe["violacoes"]]


@pytest.mark.django_db
def test_rejeicao_da_sefaz_e_gravada(documento_registrado, emitente, transmissor_rejeita):
    _avancar(documento_registrado.id, emitente, NfeEvento.SUBMIT_FOR_REVIEW, NfeEvento.APPROVE_FOR_TRANSMISSION)

    rejeitado = executar_transicao(
        documento_id=documento_registrado.id,
        evento=NfeEvento.AUTHORIZE,
        emitente=emitente,
        transmissor=transmissor_rejeita,
    )

    assert rejeitado.status == NfeStatus.REJECTED
    auditoria = NfeAuditoria.objects.filter(documento_id=documento_registrado.id).order_by("-versao").first()
    assert auditoria.detalhe["rejeicao"] == {"codigo": "539", "motivo": "Rejeição: Duplicidade de NF-e"}
    assert carregar(documento_registrado.id).documento.rejeicao.codigo == "539"


@pytest.mark.django_db
def test_falha_tecnica_nao_grava_nada(documento_registrado, emitente, transmissor_falha, caplog):
    _avancar(documento_registrado.id, emitente, NfeEvento.SUBMIT_FOR_REVIEW, NfeEvento.APPROVE_FOR_TRANSMISSION)
    auditorias_antes = NfeAuditoria.objects.count()

    with caplog.at_level("ERROR"):
        with pytest.raises(SefazTechnicalError):
            executar_transicao(
                documento_id=documento_registrado.id,
                evento=NfeEvento.AUTHORIZE,
                emitente=emitente,
                transmissor=transmissor_falha,
            )

    registro = NfeDocumentoRegistro.objects.get(pk=documento_registrado.id)
    assert registro.status == NfeStatus.PENDING_TRANSMISSION
    assert registro.versao == 3
    assert NfeAuditoria.objects.count() == auditorias_antes
    assert any(getattr(r, "event", None) == "nfe_sefaz_falha_tecnica" for r in caplog.records)


@pytest.mark.django_db
def test_versao_alterada_durante_a_transmissao(documento_registrado, emitente, regra_st):
    _avancar(documento_registrado.id, emitente, NfeEvento.SUBMIT_FOR_REVIEW, NfeEvento.APPROVE_FOR_TRANSMISSION)
    auditorias_antes = NfeAuditoria.objects.count()

    with pytest.raises(ConcorrenciaError):
        executar_transicao(
            documento_id=documento_registrado.id,
            evento=NfeEvento.AUTHORIZE,
            emitente=emitente,
            transmissor=_TransmissorConcorrente(uf="SP"),
        )

    # rollback completo: nem o snapshot, nem a auditoria, nem a regra
    registro = NfeDocumentoRegistro.objects.get(pk=documento_registrado.id)
    assert registro.status == NfeStatus.PENDING_TRANSMISSION
    assert registro.protocolo is None
    assert NfeAuditoria.objects.count() == auditorias_antes
    regra_st.refresh_from_db()
    assert regra_st.referenciada is False


@pytest.mark.django_db
def test_evento_invalido_para_o_status_persistido(documento_registrado, emitente):
    with pytest.raises(TransicaoInvalidaError):
        executar_transicao(documento_id=documento_registrado.id, evento=NfeEvento.CANCEL, emitente=emitente)

    assert not NfeAuditoria.objects.filter(documento_id=documento_registrado.id).exists()


@pytest.mark.django_db
def test_documento_inexistente(emitente):
    with pytest.raises(DocumentoNaoEncontradoError):
        executar_transicao(documento_id="nao-existe", evento=NfeEvento.SUBMIT_FOR_REVIEW, emitente=emitente)
