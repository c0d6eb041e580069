# fiscal/uf/base.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UFDef:
    """
    Unidade federativa reconhecida pela SEFAZ.

    - sigla: 'SP', 'MG', etc. (usada em TransactionContext e no destinatário).
    - codigo_ibge: código numérico de 2 dígitos (cUF na chave de acesso).
    - regiao: apenas informativo.
    """
    sigla: str
    nome: str
    codigo_ibge: str
    regiao: str
