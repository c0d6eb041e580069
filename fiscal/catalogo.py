"""
Catálogo de tabelas fiscais de referência (CFOP, CST, CSOSN, NCM).

Este módulo define:

- O contrato TaxCodeCatalog, consumido pela validação e pelo resolvedor
  da matriz fiscal.
- NotFound: resultado (não exceção) para código inexistente na tabela.
- TabelasEstaticasCatalogo: catálogo em memória sobre fiscal/tabelas.
- BancoCatalogo: catálogo sobre a tabela provisionada CodigoFiscal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Union

from fiscal.tabelas import TABELAS, TaxCode


@dataclass(frozen=True)
class NotFound:
    """
    Código inexistente (ou pertencente a outra tabela).

    Condição recuperável: quem chama transforma em mensagem de validação
    por campo, nunca em erro fatal.
    """

    tipo_tabela: str
    codigo: str

    @property
    def mensagem(self) -> str:
        return f"Código '{self.codigo}' não encontrado na tabela {self.tipo_tabela}."


LookupResult = Union[TaxCode, NotFound]


class TaxCodeCatalog(Protocol):
    def lookup(self, tipo_tabela: str, codigo: str) -> LookupResult:
        ...


class TabelasEstaticasCatalogo:
    """
    Catálogo somente leitura sobre as tabelas embarcadas no código.
    Aceita tabelas alternativas (útil em testes).
    """

    def __init__(self, tabelas: Optional[Mapping[str, Mapping[str, TaxCode]]] = None):
        self._tabelas = tabelas if tabelas is not None else TABELAS

    def lookup(self, tipo_tabela: str, codigo: str) -> LookupResult:
        tabela = self._tabelas.get(tipo_tabela, {})
        encontrado = tabela.get(codigo)
        if encontrado is None:
            return NotFound(tipo_tabela=str(tipo_tabela), codigo=codigo)
        return encontrado


class BancoCatalogo:
    """
    Catálogo sobre CodigoFiscal (provisionado por carregar_tabelas_fiscais).
    Códigos inativos são tratados como inexistentes.
    """

    def lookup(self, tipo_tabela: str, codigo: str) -> LookupResult:
        from fiscal.models import CodigoFiscal

        registro = (
            CodigoFiscal.objects.filter(tipo_tabela=tipo_tabela, codigo=codigo, ativo=True)
            .only("codigo", "descricao", "tipo_tabela")
            .first()
        )
        if registro is None:
            return NotFound(tipo_tabela=str(tipo_tabela), codigo=codigo)
        return registro.to_tax_code()
