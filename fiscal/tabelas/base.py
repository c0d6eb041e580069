# fiscal/tabelas/base.py
from __future__ import annotations

from dataclasses import dataclass

from django.db import models


class TipoTabela(models.TextChoices):
    CFOP = "CFOP", "CFOP"
    CST_ICMS = "CST_ICMS", "CST ICMS"
    CST_PIS = "CST_PIS", "CST PIS"
    CST_COFINS = "CST_COFINS", "CST COFINS"
    CST_IPI = "CST_IPI", "CST IPI"
    CSOSN = "CSOSN", "CSOSN (Simples Nacional)"
    NCM = "NCM", "NCM"


@dataclass(frozen=True)
class TaxCode:
    """
    Linha de uma tabela fiscal de referência.

    - codigo: único dentro da tabela ('5102', '60', '101', '22029900').
    - descricao: descrição oficial/resumida.
    - tipo_tabela: a qual tabela o código pertence. O mesmo código pode existir
      em tabelas diferentes ('60' é CST ICMS e também CST PIS).
    """
    codigo: str
    descricao: str
    tipo_tabela: str


def montar_tabela(tipo_tabela: str, linhas) -> dict[str, TaxCode]:
    return {
        codigo: TaxCode(codigo=codigo, descricao=descricao, tipo_tabela=tipo_tabela)
        for codigo, descricao in linhas
    }
