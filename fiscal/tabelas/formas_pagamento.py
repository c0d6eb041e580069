# fiscal/tabelas/formas_pagamento.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FormaPagamentoDef:
    """
    Meio de pagamento (tag tPag da NF-e).

    - requer_cartao: exige o grupo <card> (CNPJ da credenciadora, bandeira,
      número de autorização).
    - requer_descricao: exige xPag (somente '99 - Outros').
    """
    codigo: str
    descricao: str
    requer_cartao: bool = False
    requer_descricao: bool = False


FORMAS_PAGAMENTO = {
    f.codigo: f
    for f in (
        FormaPagamentoDef("01", "Dinheiro"),
        FormaPagamentoDef("02", "Cheque"),
        FormaPagamentoDef("03", "Cartão de Crédito", requer_cartao=True),
        FormaPagamentoDef("04", "Cartão de Débito", requer_cartao=True),
        FormaPagamentoDef("05", "Crédito Loja"),
        FormaPagamentoDef("10", "Vale Alimentação"),
        FormaPagamentoDef("11", "Vale Refeição"),
        FormaPagamentoDef("12", "Vale Presente"),
        FormaPagamentoDef("13", "Vale Combustível"),
        FormaPagamentoDef("15", "Boleto Bancário"),
        FormaPagamentoDef("16", "Depósito Bancário"),
        FormaPagamentoDef("17", "PIX Dinâmico", requer_cartao=True),
        FormaPagamentoDef("18", "Transferência bancária, Carteira Digital"),
        FormaPagamentoDef("19", "Programa de fidelidade, Cashback, Crédito Virtual"),
        FormaPagamentoDef("90", "Sem pagamento"),
        FormaPagamentoDef("99", "Outros", requer_descricao=True),
    )
}
