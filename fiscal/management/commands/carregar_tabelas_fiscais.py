import json
from typing import Any, Dict, Iterable, List, Tuple

import requests
from django.apps import apps
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from fiscal.tabelas import TABELAS, TipoTabela

NCM_URL_PADRAO = (
    "https://portalunico.siscomex.gov.br/classif/api/publico/"
    "nomenclatura/download/json?perfil=PUBLICO"
)


def _baixar_json(url: str) -> Any:
    try:
        resp = requests.get(url, timeout=60)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise CommandError(f"Erro ao requisitar {url}: {exc}") from exc

    try:
        return resp.json()
    except json.JSONDecodeError as exc:
        raise CommandError(f"Resposta de {url} não é um JSON válido: {exc}") from exc


def _extrair_itens(payload: Any, chaves: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Aceita {"<chave>": [...]} (variando maiúsculas/minúsculas) ou a lista pura.
    """
    if isinstance(payload, list):
        return payload

    if isinstance(payload, dict):
        for chave in chaves:
            itens = payload.get(chave)
            if isinstance(itens, list):
                return itens

    raise CommandError(
        f"Estrutura inesperada no JSON: esperado lista ou chave em {list(chaves)}."
    )


def _linhas_ncm(payload: Any) -> List[Tuple[str, str]]:
    """
    Somente NCMs de 8 dígitos (folhas da nomenclatura).
    """
    linhas = []
    for raw in _extrair_itens(payload, ("Nomenclaturas", "nomenclaturas")):
        codigo = "".join(ch for ch in str(raw.get("Codigo") or raw.get("codigo") or "") if ch.isdigit())
        if len(codigo) != 8:
            continue
        descricao = (raw.get("Descricao") or raw.get("descricao") or "").strip()
        linhas.append((codigo, descricao))
    return linhas


def _linhas_cfop(payload: Any) -> List[Tuple[str, str]]:
    linhas = []
    for raw in _extrair_itens(payload, ("list", "List")):
        codigo = "".join(ch for ch in str(raw.get("codigo") or raw.get("Codigo") or "") if ch.isdigit())
        if len(codigo) != 4:
            continue
        descricao = (raw.get("descricao") or raw.get("Descricao") or "").strip()
        linhas.append((codigo, descricao))
    return linhas


class Command(BaseCommand):
    help = (
        "Provisiona as tabelas fiscais de referência (CFOP, CST, CSOSN, NCM) "
        "em CodigoFiscal, opcionalmente baixando NCM/CFOP completos."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--ncm-url",
            type=str,
            nargs="?",
            const=NCM_URL_PADRAO,
            default=None,
            help="Baixa o JSON de NCM (sem valor = URL oficial Siscomex pública).",
        )
        parser.add_argument(
            "--cfop-url",
            type=str,
            default=None,
            metavar="URL",
            help="Baixa a lista completa de CFOP do JSON informado ({\"list\": [...]} ou lista pura).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Simula a execução sem gravar no banco.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        linhas: Dict[str, List[Tuple[str, str]]] = {
            tipo: [(c.codigo, c.descricao) for c in tabela.values()]
            for tipo, tabela in TABELAS.items()
        }

        if options["ncm_url"]:
            self.stdout.write(self.style.NOTICE(f"[carregar_tabelas_fiscais] Baixando NCM de: {options['ncm_url']}"))
            linhas[TipoTabela.NCM] = linhas[TipoTabela.NCM] + _linhas_ncm(_baixar_json(options["ncm_url"]))

        if options["cfop_url"]:
            self.stdout.write(self.style.NOTICE(f"[carregar_tabelas_fiscais] Baixando CFOP de: {options['cfop_url']}"))
            linhas[TipoTabela.CFOP] = linhas[TipoTabela.CFOP] + _linhas_cfop(_baixar_json(options["cfop_url"]))

        CodigoFiscal = apps.get_model("fiscal", "CodigoFiscal")

        created = 0
        updated = 0
        unchanged = 0

        with transaction.atomic():
            for tipo, registros in linhas.items():
                existentes = {c.codigo: c for c in CodigoFiscal.objects.filter(tipo_tabela=tipo)}

                # Download posterior sobrescreve a descrição embarcada
                por_codigo = dict(registros)

                for codigo, descricao in por_codigo.items():
                    atual = existentes.get(codigo)
                    if atual is None:
                        if not dry_run:
                            CodigoFiscal.objects.create(
                                tipo_tabela=tipo, codigo=codigo, descricao=descricao, ativo=True
                            )
                        created += 1
                    elif atual.descricao != descricao or not atual.ativo:
                        atual.descricao = descricao
                        atual.ativo = True
                        if not dry_run:
                            atual.save(update_fields=["descricao", "ativo", "updated_at"])
                        updated += 1
                    else:
                        unchanged += 1

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    "[carregar_tabelas_fiscais] DRY-RUN habilitado: nenhuma alteração foi persistida."
                )
            )

        self.stdout.write(
            self.style.SUCCESS(
                "[carregar_tabelas_fiscais] Concluído. "
                f"Criados: {created}, Atualizados: {updated}, Sem mudança: {unchanged}."
            )
        )
