# fiscal/services/validacao_service.py
"""
Validações da NF-e antes de cada porta do ciclo de vida.

- validate_for_review: checagem estrutural (DRAFT -> PENDING_REVIEW).
- validate_for_transmission: completude fiscal (PENDING_REVIEW ->
  PENDING_TRANSMISSION).

Ambas rodam TODAS as checagens e devolvem a lista completa de violações;
nenhuma levanta exceção por regra de negócio. São funções puras: o mesmo
documento gera sempre o mesmo resultado.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from fiscal.catalogo import NotFound, TaxCodeCatalog
from fiscal.conf import tolerancia_pagamento
from fiscal.services.contexto import OperationDirection
from fiscal.services.emitente import Emitente
from fiscal.services.nfe_documento import ZERO, NfeDocument, NfeLineItem
from fiscal.services.regras import FamiliaIcms, familia_para_regime
from fiscal.tabelas import TipoTabela
from fiscal.tabelas.formas_pagamento import FORMAS_PAGAMENTO
from fiscal.uf import uf_valida

NUMERO_MAXIMO_NFE = 999_999_999
SERIE_MAXIMA = 999


@dataclass(frozen=True)
class Violacao:
    campo: str
    regra: str
    mensagem: str


@dataclass(frozen=True)
class ValidationResult:
    violacoes: Tuple[Violacao, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violacoes

    @property
    def regras(self) -> List[str]:
        return [v.regra for v in self.violacoes]

    def por_campo(self, campo: str) -> List[Violacao]:
        return [v for v in self.violacoes if v.campo == campo]


class _Acumulador:
    def __init__(self):
        self._violacoes: List[Violacao] = []

    def add(self, campo: str, regra: str, mensagem: str) -> None:
        self._violacoes.append(Violacao(campo=campo, regra=regra, mensagem=mensagem))

    def resultado(self) -> ValidationResult:
        return ValidationResult(violacoes=tuple(self._violacoes))


def _digitos(valor) -> str:
    return "".join(ch for ch in str(valor or "") if ch.isdigit())


# ---------------------------------------------------------------------------
# Checagem estrutural
# ---------------------------------------------------------------------------


def _validar_cabecalho(acc: _Acumulador, documento: NfeDocument, emitente: Emitente) -> None:
    cab = documento.cabecalho

    if not (cab.natureza_operacao or "").strip():
        acc.add("cabecalho.natureza_operacao", "CAMPO_OBRIGATORIO", "Natureza da operação não informada.")

    if cab.serie is None or not (0 <= cab.serie <= SERIE_MAXIMA):
        acc.add("cabecalho.serie", "SERIE_INVALIDA", f"Série deve estar entre 0 e {SERIE_MAXIMA}.")

    if cab.numero is None:
        acc.add("cabecalho.numero", "CAMPO_OBRIGATORIO", "Número da NF-e não informado.")
    elif not (1 <= cab.numero <= NUMERO_MAXIMO_NFE):
        acc.add("cabecalho.numero", "NUMERO_INVALIDO", f"Número deve estar entre 1 e {NUMERO_MAXIMO_NFE}.")

    if cab.data_emissao is None:
        acc.add("cabecalho.data_emissao", "CAMPO_OBRIGATORIO", "Data de emissão não informada.")

    for campo in ("frete", "seguro", "outras_despesas", "desconto"):
        if getattr(cab, campo) < ZERO:
            acc.add(f"cabecalho.{campo}", "VALOR_NEGATIVO", f"{campo} não pode ser negativo.")

    dest = cab.destinatario
    if dest is None:
        acc.add("cabecalho.destinatario", "CAMPO_OBRIGATORIO", "Destinatário não informado.")
    else:
        if len(dest.documento_digitos) not in (11, 14):
            acc.add(
                "cabecalho.destinatario.documento",
                "DOCUMENTO_INVALIDO",
                "CPF/CNPJ do destinatário deve ter 11 ou 14 dígitos.",
            )
        if not (dest.nome or "").strip():
            acc.add("cabecalho.destinatario.nome", "CAMPO_OBRIGATORIO", "Nome do destinatário não informado.")
        if not uf_valida(dest.uf):
            acc.add("cabecalho.destinatario.uf", "UF_INVALIDA", f"UF do destinatário inválida: {dest.uf!r}.")

    if len(emitente.cnpj_digitos) != 14:
        acc.add("emitente.cnpj", "DOCUMENTO_INVALIDO", "CNPJ do emitente deve ter 14 dígitos.")
    if not uf_valida(emitente.uf):
        acc.add("emitente.uf", "UF_INVALIDA", f"UF do emitente inválida: {emitente.uf!r}.")


def _validar_codigo(
    acc: _Acumulador,
    catalogo: TaxCodeCatalog,
    tipo: str,
    codigo: str,
    campo: str,
) -> None:
    resultado = catalogo.lookup(tipo, codigo)
    if isinstance(resultado, NotFound):
        acc.add(campo, "CODIGO_NAO_ENCONTRADO", resultado.mensagem)


def _validar_cfop(
    acc: _Acumulador,
    documento: NfeDocument,
    emitente: Emitente,
    item: NfeLineItem,
    campo: str,
) -> None:
    cab = documento.cabecalho
    primeiro = item.cfop[0]

    entrada = cab.direcao == OperationDirection.INBOUND
    digitos_validos = "123" if entrada else "567"
    if primeiro not in digitos_validos:
        acc.add(
            campo,
            "CFOP_DIRECAO_INCOMPATIVEL",
            f"CFOP {item.cfop} incompatível com operação de "
            f"{'entrada' if entrada else 'saída'}.",
        )
        return

    # 3xxx/7xxx são operações com o exterior
    if primeiro in "37":
        return

    dest = cab.destinatario
    if dest is None or not uf_valida(dest.uf) or not uf_valida(emitente.uf):
        return

    mesma_uf = dest.uf == emitente.uf
    esperado = ("1" if entrada else "5") if mesma_uf else ("2" if entrada else "6")
    if primeiro != esperado:
        acc.add(
            campo,
            "CFOP_DESTINO_INCOMPATIVEL",
            f"CFOP {item.cfop} incompatível com operação "
            f"{'interna' if mesma_uf else 'interestadual'} (esperado {esperado}xxx).",
        )


def _validar_item(
    acc: _Acumulador,
    documento: NfeDocument,
    emitente: Emitente,
    catalogo: TaxCodeCatalog,
    indice: int,
    item: NfeLineItem,
) -> None:
    prefixo = f"itens[{indice}]"

    if not (item.product_ref or "").strip():
        acc.add(f"{prefixo}.product_ref", "CAMPO_OBRIGATORIO", "Produto não informado.")

    if item.quantity <= ZERO:
        acc.add(f"{prefixo}.quantity", "QUANTIDADE_INVALIDA", "Quantidade deve ser maior que zero.")

    for campo in ("unit_price", "discount", "freight", "insurance", "other_costs"):
        if getattr(item, campo) < ZERO:
            acc.add(f"{prefixo}.{campo}", "VALOR_NEGATIVO", f"{campo} não pode ser negativo.")

    if item.discount > item.valor_bruto:
        acc.add(
            f"{prefixo}.discount",
            "DESCONTO_MAIOR_QUE_ITEM",
            "Desconto maior que o valor bruto do item.",
        )

    if not item.ncm:
        acc.add(f"{prefixo}.ncm", "CAMPO_OBRIGATORIO", "NCM não informado.")
    else:
        _validar_codigo(acc, catalogo, TipoTabela.NCM, item.ncm, f"{prefixo}.ncm")

    if item.cfop:
        if len(item.cfop) != 4 or not item.cfop.isdigit():
            acc.add(f"{prefixo}.cfop", "CFOP_INVALIDO", f"CFOP mal formado: {item.cfop!r}.")
        else:
            _validar_codigo(acc, catalogo, TipoTabela.CFOP, item.cfop, f"{prefixo}.cfop")
            _validar_cfop(acc, documento, emitente, item, f"{prefixo}.cfop")

    if item.icms is not None:
        tipo_icms = TipoTabela.CSOSN if item.icms.familia == FamiliaIcms.CSOSN else TipoTabela.CST_ICMS
        _validar_codigo(acc, catalogo, tipo_icms, item.icms.codigo, f"{prefixo}.icms")
    if item.pis is not None:
        _validar_codigo(acc, catalogo, TipoTabela.CST_PIS, item.pis.codigo, f"{prefixo}.pis")
    if item.cofins is not None:
        _validar_codigo(acc, catalogo, TipoTabela.CST_COFINS, item.cofins.codigo, f"{prefixo}.cofins")
    if item.ipi is not None:
        _validar_codigo(acc, catalogo, TipoTabela.CST_IPI, item.ipi.codigo, f"{prefixo}.ipi")


def validate_for_review(
    document: NfeDocument,
    *,
    catalog: TaxCodeCatalog,
    emitente: Emitente,
) -> ValidationResult:
    acc = _Acumulador()

    if not document.itens:
        acc.add("itens", "SEM_ITENS", "Documento sem itens.")

    _validar_cabecalho(acc, document, emitente)

    sequencia = [i.sequence_number for i in document.itens]
    if sequencia != list(range(1, len(sequencia) + 1)):
        acc.add(
            "itens",
            "SEQUENCIA_ITENS_INVALIDA",
            f"Numeração dos itens deve ser contínua a partir de 1, recebido {sequencia}.",
        )

    for indice, item in enumerate(document.itens):
        _validar_item(acc, document, emitente, catalog, indice, item)

    if document.itens and document.grand_total < ZERO:
        acc.add("cabecalho.desconto", "TOTAL_NEGATIVO", "Desconto maior que o total da nota.")

    return acc.resultado()


# ---------------------------------------------------------------------------
# Completude fiscal
# ---------------------------------------------------------------------------


def _validar_pagamentos(acc: _Acumulador, documento: NfeDocument) -> None:
    if not documento.pagamentos:
        acc.add("pagamentos", "SEM_PAGAMENTOS", "Nenhum pagamento informado.")
        return

    for indice, pag in enumerate(documento.pagamentos):
        prefixo = f"pagamentos[{indice}]"

        if pag.valor <= ZERO:
            acc.add(f"{prefixo}.valor", "PAGAMENTO_VALOR_INVALIDO", "Valor do pagamento deve ser positivo.")

        forma = FORMAS_PAGAMENTO.get(pag.forma)
        if forma is None:
            acc.add(f"{prefixo}.forma", "FORMA_PAGAMENTO_INVALIDA", f"Forma de pagamento desconhecida: {pag.forma!r}.")
            continue

        if forma.requer_descricao and not (pag.descricao or "").strip():
            acc.add(
                f"{prefixo}.descricao",
                "PAGAMENTO_DESCRICAO_OBRIGATORIA",
                f"Forma {forma.codigo} ({forma.descricao}) exige descrição do meio de pagamento.",
            )

        if forma.requer_cartao:
            cartao = pag.cartao
            if cartao is None:
                acc.add(
                    f"{prefixo}.cartao",
                    "PAGAMENTO_CARTAO_OBRIGATORIO",
                    f"Forma {forma.codigo} ({forma.descricao}) exige dados do cartão.",
                )
                continue
            if len(_digitos(cartao.cnpj_credenciadora)) != 14:
                acc.add(
                    f"{prefixo}.cartao.cnpj_credenciadora",
                    "PAGAMENTO_CARTAO_OBRIGATORIO",
                    "CNPJ da credenciadora deve ter 14 dígitos.",
                )
            if not (cartao.bandeira or "").strip():
                acc.add(f"{prefixo}.cartao.bandeira", "PAGAMENTO_CARTAO_OBRIGATORIO", "Bandeira não informada.")
            if not (cartao.autorizacao or "").strip():
                acc.add(
                    f"{prefixo}.cartao.autorizacao",
                    "PAGAMENTO_CARTAO_OBRIGATORIO",
                    "Número de autorização não informado.",
                )

    diferenca = documento.total_pagamentos - documento.grand_total
    if abs(diferenca) > tolerancia_pagamento():
        acc.add(
            "pagamentos",
            "PAGAMENTOS_NAO_COBREM_TOTAL",
            f"Pagamentos ({documento.total_pagamentos}) não cobrem o total da nota "
            f"({documento.grand_total}).",
        )


def validate_for_transmission(document: NfeDocument, *, emitente: Emitente) -> ValidationResult:
    acc = _Acumulador()

    if not document.itens:
        acc.add("itens", "SEM_ITENS", "Documento sem itens.")

    familia = familia_para_regime(emitente.regime_tributario)

    for indice, item in enumerate(document.itens):
        prefixo = f"itens[{indice}]"
        if not item.cfop:
            acc.add(f"{prefixo}.cfop", "TRATAMENTO_FISCAL_AUSENTE", "Item sem CFOP.")
        for bloco in ("icms", "pis", "cofins"):
            if getattr(item, bloco) is None:
                acc.add(
                    f"{prefixo}.{bloco}",
                    "TRATAMENTO_FISCAL_AUSENTE",
                    f"Item sem tributação de {bloco.upper()}.",
                )
        if item.icms is not None and item.icms.familia != familia:
            acc.add(
                f"{prefixo}.icms",
                "FAMILIA_ICMS_INCOMPATIVEL",
                f"Emitente no regime {emitente.regime_tributario} exige {familia}, "
                f"item traz {item.icms.familia or 'família não informada'}.",
            )

    _validar_pagamentos(acc, document)

    return acc.resultado()
