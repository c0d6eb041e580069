# fiscal/tabelas/__init__.py
from __future__ import annotations

from typing import Dict, Mapping

from .base import TaxCode, TipoTabela
from .cfop import CFOP
from .cst import CSOSN, CST_COFINS, CST_ICMS, CST_IPI, CST_PIS
from .ncm import NCM


# Registry interno, 1:1 por tipo de tabela
TABELAS: Dict[str, Mapping[str, TaxCode]] = {
    TipoTabela.CFOP: CFOP,
    TipoTabela.CST_ICMS: CST_ICMS,
    TipoTabela.CST_PIS: CST_PIS,
    TipoTabela.CST_COFINS: CST_COFINS,
    TipoTabela.CST_IPI: CST_IPI,
    TipoTabela.CSOSN: CSOSN,
    TipoTabela.NCM: NCM,
}


__all__ = ["TABELAS", "TaxCode", "TipoTabela"]
