import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from fiscal.services.contexto import CounterpartyTaxStatus, OperationDirection, TaxRegime
from fiscal.services.regras import MVA_MAXIMA, IndicadorIEDestinatario, ModalidadeBC, ModalidadeBCST


def _percentual(**kwargs):
    kwargs.setdefault("default", Decimal("0"))
    return models.DecimalField(
        max_digits=7,
        decimal_places=4,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        **kwargs,
    )


class MatrizFiscal(models.Model):
    """
    Regra da matriz fiscal persistida.

    Condições: NULL = curinga (qualquer valor). String vazia NÃO é curinga;
    a conversão para MatchConditions testa `is None`.

    Regra usada por NF-e autorizada fica `referenciada` e não pode mais
    ser excluída, apenas desativada.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    descricao = models.CharField(max_length=255, blank=True, default="")

    # -----------------------------
    # Condições (NULL = qualquer)
    # -----------------------------
    direcao = models.CharField(max_length=10, choices=OperationDirection.choices, null=True, blank=True)
    uf_origem = models.CharField(max_length=2, null=True, blank=True)
    uf_destino = models.CharField(max_length=2, null=True, blank=True)
    tipo_contraparte = models.CharField(
        max_length=20, choices=CounterpartyTaxStatus.choices, null=True, blank=True
    )
    ncm = models.CharField(max_length=8, null=True, blank=True)
    regime_tributario = models.CharField(max_length=20, choices=TaxRegime.choices, null=True, blank=True)
    consumidor_final = models.BooleanField(null=True, blank=True)
    natureza_operacao = models.CharField(max_length=60, null=True, blank=True)

    # -----------------------------
    # Tratamento tributário
    # -----------------------------
    cfop = models.CharField(max_length=4)

    icms_cst = models.CharField(max_length=3, null=True, blank=True)
    icms_csosn = models.CharField(max_length=3, null=True, blank=True)
    icms_aliquota = _percentual()
    icms_reducao_base = _percentual(help_text="Percentual de redução da base de cálculo do ICMS.")
    indicador_ie_destinatario = models.PositiveSmallIntegerField(
        choices=IndicadorIEDestinatario.choices,
        default=IndicadorIEDestinatario.CONTRIBUINTE,
    )

    pis_cst = models.CharField(max_length=2)
    pis_aliquota = _percentual()
    cofins_cst = models.CharField(max_length=2)
    cofins_aliquota = _percentual()
    ipi_cst = models.CharField(max_length=2, null=True, blank=True)
    ipi_aliquota = _percentual()

    # ICMS-ST (opcional; só com CST/CSOSN que admitem ST)
    icms_modalidade_bc = models.PositiveSmallIntegerField(choices=ModalidadeBC.choices, null=True, blank=True)
    icms_st_modalidade_bc = models.PositiveSmallIntegerField(
        choices=ModalidadeBCST.choices, null=True, blank=True
    )
    icms_st_mva = models.DecimalField(
        max_digits=8,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(MVA_MAXIMA)],
        help_text="Margem de valor agregado (%).",
    )
    icms_st_aliquota = _percentual(null=True, blank=True, default=None)
    icms_st_reducao = _percentual(null=True, blank=True, default=None)

    prioridade = models.IntegerField(default=0)
    ativo = models.BooleanField(default=True)
    referenciada = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "fiscal_matriz_fiscal"
        ordering = ["-prioridade", "id"]
        indexes = [
            models.Index(fields=["ativo", "prioridade"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(icms_cst__isnull=False, icms_csosn__isnull=True)
                    | models.Q(icms_cst__isnull=True, icms_csosn__isnull=False)
                ),
                name="matriz_fiscal_cst_xor_csosn",
            )
        ]

    def __str__(self) -> str:
        codigo = self.icms_cst or self.icms_csosn
        return f"Regra {self.descricao or self.id} -> CFOP {self.cfop} / ICMS {codigo} (p={self.prioridade})"
