# fiscal/tabelas/cfop.py
from __future__ import annotations

from .base import TipoTabela, montar_tabela


# Subconjunto de CFOPs usado nas operações de comércio mais comuns.
# A tabela completa é provisionada no banco via carregar_tabelas_fiscais.
CFOP = montar_tabela(
    TipoTabela.CFOP,
    [
        # Entradas - dentro do estado
        ("1102", "Compra para comercialização"),
        ("1202", "Devolução de venda de mercadoria adquirida ou recebida de terceiros"),
        ("1403", "Compra para comercialização em operação com mercadoria sujeita à ST"),
        ("1411", "Devolução de venda de mercadoria sujeita à ST"),
        ("1949", "Outra entrada de mercadoria ou prestação de serviço não especificada"),
        # Entradas - fora do estado
        ("2102", "Compra para comercialização"),
        ("2202", "Devolução de venda de mercadoria adquirida ou recebida de terceiros"),
        ("2403", "Compra para comercialização em operação com mercadoria sujeita à ST"),
        ("2949", "Outra entrada de mercadoria ou prestação de serviço não especificada"),
        # Saídas - dentro do estado
        ("5101", "Venda de produção do estabelecimento"),
        ("5102", "Venda de mercadoria adquirida ou recebida de terceiros"),
        ("5202", "Devolução de compra para comercialização"),
        ("5403", "Venda de mercadoria sujeita à ST, na condição de contribuinte substituto"),
        ("5405", "Venda de mercadoria adquirida ou recebida de terceiros, sujeita à ST"),
        ("5411", "Devolução de compra para comercialização em operação com mercadoria sujeita à ST"),
        ("5901", "Remessa para industrialização por encomenda"),
        ("5949", "Outra saída de mercadoria ou prestação de serviço não especificado"),
        # Saídas - fora do estado
        ("6101", "Venda de produção do estabelecimento"),
        ("6102", "Venda de mercadoria adquirida ou recebida de terceiros"),
        ("6108", "Venda de mercadoria adquirida ou recebida de terceiros, destinada a não contribuinte"),
        ("6202", "Devolução de compra para comercialização"),
        ("6403", "Venda de mercadoria sujeita à ST, na condição de contribuinte substituto"),
        ("6404", "Venda de mercadoria sujeita à ST, cujo imposto já tenha sido retido anteriormente"),
        ("6949", "Outra saída de mercadoria ou prestação de serviço não especificado"),
        # Exterior
        ("7101", "Venda de produção do estabelecimento"),
        ("7102", "Venda de mercadoria adquirida ou recebida de terceiros"),
    ],
)


def cfop_e_entrada(codigo: str) -> bool:
    """CFOPs iniciados em 1, 2 ou 3 são de entrada; 5, 6 ou 7 são de saída."""
    return bool(codigo) and codigo[0] in {"1", "2", "3"}
