import uuid

from django.core.validators import RegexValidator
from django.db import models

from fiscal.tabelas import TaxCode, TipoTabela


class CodigoFiscal(models.Model):
    """
    Tabelas fiscais de referência provisionadas (CFOP, CST, CSOSN, NCM).

    - Um código é único dentro da sua tabela; o mesmo código pode existir
      em tabelas diferentes ('60' em CST_ICMS e em CST_PIS).
    - Código inativo é tratado como inexistente pelo BancoCatalogo.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tipo_tabela = models.CharField(max_length=20, choices=TipoTabela.choices)
    codigo = models.CharField(
        max_length=10,
        validators=[RegexValidator(r"^\d{2,10}$", "Código fiscal deve ter apenas dígitos.")],
    )
    descricao = models.TextField()

    ativo = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "fiscal_codigo_fiscal"
        ordering = ["tipo_tabela", "codigo"]
        constraints = [
            models.UniqueConstraint(
                fields=["tipo_tabela", "codigo"],
                name="uniq_codigo_fiscal_tabela_codigo",
            )
        ]

    def __str__(self) -> str:
        return f"{self.tipo_tabela} {self.codigo} - {self.descricao[:60]}"

    def to_tax_code(self) -> TaxCode:
        return TaxCode(codigo=self.codigo, descricao=self.descricao, tipo_tabela=self.tipo_tabela)
