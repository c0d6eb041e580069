import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from fiscal.models import MatrizFiscal
from fiscal.serializers import MatrizFiscalImportSerializer


def _ler_linhas(caminho: str) -> list:
    arquivo = Path(caminho)
    if not arquivo.exists():
        raise CommandError(f"Arquivo não encontrado: {caminho}")

    try:
        payload = json.loads(arquivo.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CommandError(f"Arquivo não é um JSON válido: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("regras")
    if not isinstance(payload, list):
        raise CommandError("Esperado uma lista de regras ou {\"regras\": [...]}.")
    return payload


class Command(BaseCommand):
    help = (
        "Importa regras da matriz fiscal a partir de um arquivo JSON. "
        "Todas as linhas são validadas antes de qualquer gravação."
    )

    def add_arguments(self, parser):
        parser.add_argument("arquivo", type=str, help="Caminho do arquivo JSON com as regras.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Apenas valida, sem gravar no banco.",
        )

    def handle(self, *args, **options):
        linhas = _ler_linhas(options["arquivo"])
        dry_run = options["dry_run"]

        self.stdout.write(
            self.style.NOTICE(f"[importar_matriz_fiscal] Validando {len(linhas)} regra(s).")
        )

        validas = []
        erros = []
        for indice, linha in enumerate(linhas, start=1):
            serializer = MatrizFiscalImportSerializer(data=linha)
            if serializer.is_valid():
                validas.append(serializer.validated_data)
            else:
                erros.append((indice, serializer.errors))

        if erros:
            for indice, detalhe in erros:
                self.stderr.write(f"Linha {indice}: {json.dumps(detalhe, ensure_ascii=False)}")
            raise CommandError(f"{len(erros)} regra(s) inválida(s). Nada foi importado.")

        criadas = 0
        atualizadas = 0

        with transaction.atomic():
            for dados in validas:
                dados = dict(dados)
                regra_id = dados.pop("id", None)
                existente = MatrizFiscal.objects.filter(pk=regra_id).first() if regra_id else None

                if existente is None:
                    if not dry_run:
                        MatrizFiscal.objects.create(**({"id": regra_id} if regra_id else {}), **dados)
                    criadas += 1
                else:
                    for campo, valor in dados.items():
                        setattr(existente, campo, valor)
                    if not dry_run:
                        existente.save()
                    atualizadas += 1

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    "[importar_matriz_fiscal] DRY-RUN habilitado: nenhuma alteração foi persistida."
                )
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"[importar_matriz_fiscal] Concluído. Criadas: {criadas}, Atualizadas: {atualizadas}."
            )
        )
