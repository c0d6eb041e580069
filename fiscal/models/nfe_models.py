import uuid

from django.db import models
from django.utils import timezone

from fiscal.services.nfe_documento import NfeStatus


class NfeDocumentoRegistro(models.Model):
    """
    Snapshot persistido de uma NF-e.

    - `snapshot` guarda o agregado NfeDocument inteiro (JSON).
    - `versao` é usada no compare-and-swap: toda gravação exige a versão
      lida e incrementa em 1. Duas transições concorrentes sobre a mesma
      versão nunca gravam as duas.
    - status/protocolo/chave ficam em colunas próprias para consulta.
    """

    id = models.CharField(primary_key=True, max_length=64)

    status = models.CharField(max_length=32, choices=NfeStatus.choices, default=NfeStatus.DRAFT)
    versao = models.PositiveIntegerField(default=1)

    snapshot = models.JSONField()

    serie = models.PositiveIntegerField(null=True, blank=True)
    numero = models.PositiveIntegerField(null=True, blank=True)

    # Protocolo de autorização da SEFAZ (atribuído uma única vez)
    protocolo = models.CharField(max_length=64, unique=True, null=True, blank=True)
    chave_acesso = models.CharField(max_length=44, unique=True, null=True, blank=True)
    autorizado_em = models.DateTimeField(null=True, blank=True)
    cancelado_em = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "nfe_documento"
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["serie", "numero"]),
        ]

    def __str__(self):
        return f"NF-e {self.numero}/{self.serie} ({self.status}) v{self.versao}"


class NfeAuditoria(models.Model):
    """
    Trilha de auditoria das transições da NF-e.

    Uma linha por tentativa de transição concluída (aceita ou recusada).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    documento = models.ForeignKey(
        "fiscal.NfeDocumentoRegistro",
        on_delete=models.PROTECT,
        related_name="auditorias",
    )

    evento = models.CharField(max_length=40)
    status_anterior = models.CharField(max_length=32)
    status_novo = models.CharField(max_length=32)
    sucesso = models.BooleanField(default=True)

    versao = models.PositiveIntegerField()

    # Violações, rejeição da SEFAZ ou protocolo, conforme o caso
    detalhe = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "nfe_auditoria"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["evento"]),
        ]

    def __str__(self):
        return f"[{self.evento}] {self.documento_id}: {self.status_anterior} -> {self.status_novo}"
