from .codigo_fiscal_models import CodigoFiscal
from .matriz_fiscal_models import MatrizFiscal
from .nfe_models import NfeAuditoria, NfeDocumentoRegistro


__all__ = [
    "CodigoFiscal",
    "MatrizFiscal",
    "NfeDocumentoRegistro",
    "NfeAuditoria",
]
