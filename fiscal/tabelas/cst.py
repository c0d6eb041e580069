# fiscal/tabelas/cst.py
from __future__ import annotations

from .base import TipoTabela, montar_tabela


CST_ICMS = montar_tabela(
    TipoTabela.CST_ICMS,
    [
        ("00", "Tributada integralmente"),
        ("10", "Tributada e com cobrança do ICMS por substituição tributária"),
        ("20", "Com redução de base de cálculo"),
        ("30", "Isenta ou não tributada e com cobrança do ICMS por substituição tributária"),
        ("40", "Isenta"),
        ("41", "Não tributada"),
        ("50", "Suspensão"),
        ("51", "Diferimento"),
        ("60", "ICMS cobrado anteriormente por substituição tributária"),
        ("70", "Com redução de base de cálculo e cobrança do ICMS por substituição tributária"),
        ("90", "Outras"),
    ],
)

# PIS e COFINS compartilham a mesma tabela de situações tributárias.
_CST_PIS_COFINS = [
    ("01", "Operação Tributável com Alíquota Básica"),
    ("02", "Operação Tributável com Alíquota Diferenciada"),
    ("03", "Operação Tributável com Alíquota por Unidade de Medida de Produto"),
    ("04", "Operação Tributável Monofásica - Revenda a Alíquota Zero"),
    ("05", "Operação Tributável por Substituição Tributária"),
    ("06", "Operação Tributável a Alíquota Zero"),
    ("07", "Operação Isenta da Contribuição"),
    ("08", "Operação sem Incidência da Contribuição"),
    ("09", "Operação com Suspensão da Contribuição"),
    ("49", "Outras Operações de Saída"),
    ("50", "Operação com Direito a Crédito - Vinculada Exclusivamente a Receita Tributada no Mercado Interno"),
    ("70", "Operação de Aquisição sem Direito a Crédito"),
    ("73", "Operação de Aquisição a Alíquota Zero"),
    ("98", "Outras Operações de Entrada"),
    ("99", "Outras Operações"),
]

CST_PIS = montar_tabela(TipoTabela.CST_PIS, _CST_PIS_COFINS)
CST_COFINS = montar_tabela(TipoTabela.CST_COFINS, _CST_PIS_COFINS)

CST_IPI = montar_tabela(
    TipoTabela.CST_IPI,
    [
        ("00", "Entrada com Recuperação de Crédito"),
        ("01", "Entrada Tributada com Alíquota Zero"),
        ("02", "Entrada Isenta"),
        ("03", "Entrada Não-Tributada"),
        ("04", "Entrada Imune"),
        ("05", "Entrada com Suspensão"),
        ("49", "Outras Entradas"),
        ("50", "Saída Tributada"),
        ("51", "Saída Tributada com Alíquota Zero"),
        ("52", "Saída Isenta"),
        ("53", "Saída Não-Tributada"),
        ("54", "Saída Imune"),
        ("55", "Saída com Suspensão"),
        ("99", "Outras Saídas"),
    ],
)

CSOSN = montar_tabela(
    TipoTabela.CSOSN,
    [
        ("101", "Tributada pelo Simples Nacional com permissão de crédito"),
        ("102", "Tributada pelo Simples Nacional sem permissão de crédito"),
        ("103", "Isenção do ICMS no Simples Nacional para faixa de receita bruta"),
        ("201", "Tributada pelo Simples Nacional com permissão de crédito e com cobrança do ICMS por ST"),
        ("202", "Tributada pelo Simples Nacional sem permissão de crédito e com cobrança do ICMS por ST"),
        ("203", "Isenção do ICMS no Simples Nacional para faixa de receita bruta e com cobrança do ICMS por ST"),
        ("300", "Imune"),
        ("400", "Não tributada pelo Simples Nacional"),
        ("500", "ICMS cobrado anteriormente por ST ou por antecipação"),
        ("900", "Outros"),
    ],
)
