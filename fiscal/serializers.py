# fiscal/serializers.py

import re

from rest_framework import serializers

from fiscal.catalogo import NotFound
from fiscal.conf import catalogo_padrao
from fiscal.exceptions import RegraFiscalInvalidaError
from fiscal.models import MatrizFiscal
from fiscal.services.matriz_fiscal_service import regra_de_registro
from fiscal.tabelas import TipoTabela
from fiscal.uf import uf_valida

_NCM_RE = re.compile(r"^\d{8}$")


class MatrizFiscalImportSerializer(serializers.ModelSerializer):
    """
    Valida uma linha do arquivo de importação da matriz fiscal.

    Condição ausente ou null = curinga. Os códigos do tratamento precisam
    existir no catálogo e as invariantes da regra (CST xor CSOSN, família
    x regime, alíquotas 0..100) são checadas pela própria FiscalRule.
    """

    id = serializers.UUIDField(required=False)

    class Meta:
        model = MatrizFiscal
        fields = [
            "id",
            "descricao",
            "direcao",
            "uf_origem",
            "uf_destino",
            "tipo_contraparte",
            "ncm",
            "regime_tributario",
            "consumidor_final",
            "natureza_operacao",
            "cfop",
            "icms_cst",
            "icms_csosn",
            "icms_aliquota",
            "icms_reducao_base",
            "indicador_ie_destinatario",
            "pis_cst",
            "pis_aliquota",
            "cofins_cst",
            "cofins_aliquota",
            "ipi_cst",
            "ipi_aliquota",
            "icms_modalidade_bc",
            "icms_st_modalidade_bc",
            "icms_st_mva",
            "icms_st_aliquota",
            "icms_st_reducao",
            "prioridade",
            "ativo",
        ]

    def _validar_uf(self, value):
        if value is not None and not uf_valida(value):
            raise serializers.ValidationError(f"UF inválida: {value!r}.")
        return value

    def validate_uf_origem(self, value):
        return self._validar_uf(value)

    def validate_uf_destino(self, value):
        return self._validar_uf(value)

    def validate_ncm(self, value):
        if value is not None and not _NCM_RE.match(value):
            raise serializers.ValidationError("NCM deve ter 8 dígitos.")
        return value

    def validate(self, attrs):
        catalogo = catalogo_padrao()
        erros = {}

        codigos = [
            ("cfop", TipoTabela.CFOP),
            ("icms_cst", TipoTabela.CST_ICMS),
            ("icms_csosn", TipoTabela.CSOSN),
            ("pis_cst", TipoTabela.CST_PIS),
            ("cofins_cst", TipoTabela.CST_COFINS),
            ("ipi_cst", TipoTabela.CST_IPI),
        ]
        for campo, tipo in codigos:
            codigo = attrs.get(campo)
            if codigo is None:
                continue
            resultado = catalogo.lookup(tipo, codigo)
            if isinstance(resultado, NotFound):
                erros[campo] = resultado.mensagem

        if erros:
            raise serializers.ValidationError(erros)

        # Monta a regra de domínio só para checar as invariantes
        try:
            regra_de_registro(MatrizFiscal(**attrs))
        except RegraFiscalInvalidaError as exc:
            raise serializers.ValidationError({"regra": exc.message}) from exc

        return attrs
