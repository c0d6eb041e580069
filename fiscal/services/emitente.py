# fiscal/services/emitente.py

from __future__ import annotations

from dataclasses import dataclass

from fiscal.services.contexto import TaxRegime


@dataclass(frozen=True)
class Emitente:
    """
    Dados do emitente usados pelo núcleo fiscal.

    Sempre passado explicitamente para resolução e validação; o núcleo
    nunca lê um "emitente ativo" global.
    """

    cnpj: str
    razao_social: str
    uf: str
    regime_tributario: TaxRegime
    inscricao_estadual: str = ""
    ambiente: str = "homolog"

    @property
    def cnpj_digitos(self) -> str:
        return "".join(ch for ch in (self.cnpj or "") if ch.isdigit())
