# fiscal/conf.py
"""
Parâmetros do núcleo fiscal lidos do settings do Django.

Lidos a cada chamada para que override_settings funcione nos testes.
"""

from decimal import Decimal

from django.conf import settings

DEFAULT_TOLERANCIA_PAGAMENTO = Decimal("0.01")
DEFAULT_JUSTIFICATIVA_MIN_CARACTERES = 15


def tolerancia_pagamento() -> Decimal:
    valor = getattr(settings, "NFE_TOLERANCIA_PAGAMENTO", DEFAULT_TOLERANCIA_PAGAMENTO)
    return Decimal(str(valor))


def justificativa_min_caracteres() -> int:
    return int(
        getattr(
            settings,
            "NFE_JUSTIFICATIVA_MIN_CARACTERES",
            DEFAULT_JUSTIFICATIVA_MIN_CARACTERES,
        )
    )


def catalogo_padrao():
    """
    NFE_CATALOGO = "banco" usa a tabela provisionada CodigoFiscal;
    qualquer outro valor usa as tabelas embarcadas.
    """
    from fiscal.catalogo import BancoCatalogo, TabelasEstaticasCatalogo

    if getattr(settings, "NFE_CATALOGO", "estatico") == "banco":
        return BancoCatalogo()
    return TabelasEstaticasCatalogo()
