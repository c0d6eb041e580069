# fiscal/tabelas/ncm.py
from __future__ import annotations

from .base import TipoTabela, montar_tabela


# Massa mínima de NCMs (8 dígitos) para desenvolvimento e testes.
# Em produção a tabela vem do JSON público do Siscomex.
NCM = montar_tabela(
    TipoTabela.NCM,
    [
        ("21069090", "Outras preparações alimentícias"),
        ("22021000", "Águas, incluindo as minerais e as gaseificadas, adicionadas de açúcar"),
        ("22029900", "Bebidas não alcoólicas, outras"),
        ("30049099", "Outros medicamentos em doses"),
        ("39269090", "Outras obras de plásticos"),
        ("61091000", "Camisetas de algodão"),
        ("64029990", "Calçados, outros"),
        ("84713012", "Máquinas portáteis para processamento de dados"),
        ("85171231", "Telefones celulares portáteis"),
        ("94036000", "Outros móveis de madeira"),
    ],
)
