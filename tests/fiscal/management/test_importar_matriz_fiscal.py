import io
import json
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from fiscal.models import MatrizFiscal

pytestmark = pytest.mark.django_db


def _regra(**campos):
    dados = {
        "descricao": "Venda interna ST",
        "direcao": "OUTBOUND",
        "uf_origem": "SP",
        "uf_destino": "SP",
        "ncm": "22021000",
        "cfop": "5405",
        "icms_cst": "60",
        "pis_cst": "01",
        "pis_aliquota": "1.65",
        "cofins_cst": "01",
        "cofins_aliquota": "7.60",
        "prioridade": 10,
    }
    dados.update(campos)
    return dados


def _arquivo(tmp_path, conteudo):
    caminho = tmp_path / "matriz.json"
    caminho.write_text(json.dumps(conteudo), encoding="utf-8")
    return str(caminho)


def _rodar(*args):
    out = io.StringIO()
    err = io.StringIO()
    call_command("importar_matriz_fiscal", *args, stdout=out, stderr=err)
    return out.getvalue(), err.getvalue()


def test_importa_lista_de_regras(tmp_path):
    caminho = _arquivo(
        tmp_path,
        [
            _regra(),
            _regra(descricao="Interestadual", uf_destino=None, cfop="6404", prioridade=5),
        ],
    )

    saida, _ = _rodar(caminho)

    assert MatrizFiscal.objects.count() == 2
    interestadual = MatrizFiscal.objects.get(cfop="6404")
    assert interestadual.uf_destino is None
    assert "Criadas: 2, Atualizadas: 0." in saida


def test_importa_formato_com_chave_regras_e_atualiza_por_id(tmp_path):
    existente = MatrizFiscal.objects.create(
        cfop="5102", icms_cst="00", pis_cst="01", cofins_cst="01", prioridade=1
    )
    caminho = _arquivo(tmp_path, {"regras": [_regra(id=str(existente.pk), prioridade=42)]})

    saida, _ = _rodar(caminho)

    existente.refresh_from_db()
    assert existente.prioridade == 42
    assert existente.cfop == "5405"
    assert "Criadas: 0, Atualizadas: 1." in saida


def test_uma_linha_invalida_barra_o_arquivo_inteiro(tmp_path):
    caminho = _arquivo(
        tmp_path,
        [
            _regra(),
            _regra(icms_csosn="102"),
            _regra(uf_origem="XX", cfop="9999"),
        ],
    )

    with pytest.raises(CommandError) as exc:
        _rodar(caminho)

    assert "2 regra(s) inválida(s)" in str(exc.value)
    assert MatrizFiscal.objects.count() == 0


def test_erros_por_linha_no_stderr(tmp_path):
    caminho = _arquivo(tmp_path, [_regra(), _regra(ncm="2202")])
    err = io.StringIO()

    with pytest.raises(CommandError):
        call_command("importar_matriz_fiscal", caminho, stdout=io.StringIO(), stderr=err)

    assert "Linha 2:" in err.getvalue()
    assert "ncm" in err.getvalue()


def test_regime_incompativel_com_a_familia(tmp_path):
    caminho = _arquivo(tmp_path, [_regra(regime_tributario="SIMPLIFIED")])

    with pytest.raises(CommandError):
        _rodar(caminho)


def test_dry_run_so_valida(tmp_path):
    caminho = _arquivo(tmp_path, [_regra()])

    saida, _ = _rodar(caminho, "--dry-run")

    assert MatrizFiscal.objects.count() == 0
    assert "DRY-RUN habilitado" in saida
    assert "Criadas: 1" in saida


def test_arquivo_inexistente(tmp_path):
    with pytest.raises(CommandError):
        _rodar(str(tmp_path / "nao_existe.json"))


def test_json_invalido(tmp_path):
    caminho = tmp_path / "quebrado.json"
    caminho.write_text("{regras: ", encoding="utf-8")

    with pytest.raises(CommandError):
        _rodar(str(caminho))


def test_importa_regra_com_icms_st(tmp_path):
    linha = _regra(
        cfop="5403",
        icms_cst="10",
        icms_aliquota="18",
        icms_st_modalidade_bc=4,
        icms_st_mva="40",
        icms_st_aliquota="18",
    )
    caminho = _arquivo(tmp_path, [linha])

    _rodar(caminho)

    regra = MatrizFiscal.objects.get()
    assert regra.icms_st_mva == Decimal("40")
    assert regra.icms_st_aliquota == Decimal("18")
    assert regra.icms_st_modalidade_bc == 4
    assert regra.icms_st_reducao is None


def test_st_em_cst_sem_substituicao_e_recusado(tmp_path):
    caminho = _arquivo(tmp_path, [_regra(icms_st_aliquota="18")])

    with pytest.raises(CommandError):
        _rodar(caminho)

    assert MatrizFiscal.objects.count() == 0
