# fiscal/uf/__init__.py
from __future__ import annotations

from typing import Dict, Optional

from .base import UFDef


_UFS = (
    # Norte
    UFDef("RO", "Rondônia", "11", "Norte"),
    UFDef("AC", "Acre", "12", "Norte"),
    UFDef("AM", "Amazonas", "13", "Norte"),
    UFDef("RR", "Roraima", "14", "Norte"),
    UFDef("PA", "Pará", "15", "Norte"),
    UFDef("AP", "Amapá", "16", "Norte"),
    UFDef("TO", "Tocantins", "17", "Norte"),
    # Nordeste
    UFDef("MA", "Maranhão", "21", "Nordeste"),
    UFDef("PI", "Piauí", "22", "Nordeste"),
    UFDef("CE", "Ceará", "23", "Nordeste"),
    UFDef("RN", "Rio Grande do Norte", "24", "Nordeste"),
    UFDef("PB", "Paraíba", "25", "Nordeste"),
    UFDef("PE", "Pernambuco", "26", "Nordeste"),
    UFDef("AL", "Alagoas", "27", "Nordeste"),
    UFDef("SE", "Sergipe", "28", "Nordeste"),
    UFDef("BA", "Bahia", "29", "Nordeste"),
    # Sudeste
    UFDef("MG", "Minas Gerais", "31", "Sudeste"),
    UFDef("ES", "Espírito Santo", "32", "Sudeste"),
    UFDef("RJ", "Rio de Janeiro", "33", "Sudeste"),
    UFDef("SP", "São Paulo", "35", "Sudeste"),
    # Sul
    UFDef("PR", "Paraná", "41", "Sul"),
    UFDef("SC", "Santa Catarina", "42", "Sul"),
    UFDef("RS", "Rio Grande do Sul", "43", "Sul"),
    # Centro-Oeste
    UFDef("MS", "Mato Grosso do Sul", "50", "Centro-Oeste"),
    UFDef("MT", "Mato Grosso", "51", "Centro-Oeste"),
    UFDef("GO", "Goiás", "52", "Centro-Oeste"),
    UFDef("DF", "Distrito Federal", "53", "Centro-Oeste"),
)

# Registry interno, 1:1 por sigla
_UF_POR_SIGLA: Dict[str, UFDef] = {uf.sigla: uf for uf in _UFS}


def normalizar_uf(uf: Optional[str]) -> str:
    """
    Normaliza a UF para duas letras maiúsculas.
    Não faz fallback: UF vazia vira string vazia (e falha em uf_valida).
    """
    if not uf:
        return ""
    return uf.strip().upper()


def uf_valida(uf: Optional[str]) -> bool:
    return isinstance(uf, str) and uf in _UF_POR_SIGLA


def get_uf(uf: str) -> UFDef:
    """
    Retorna a definição da UF. Levanta KeyError para siglas desconhecidas:
    diferente do catálogo de CFOP, aqui não existe UF "padrão".
    """
    return _UF_POR_SIGLA[normalizar_uf(uf)]


SIGLAS_UF = frozenset(_UF_POR_SIGLA)
