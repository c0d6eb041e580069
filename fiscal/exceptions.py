# fiscal/exceptions.py
"""
Exceções de programação do núcleo fiscal.

Erros de negócio esperados (código não encontrado, regra ambígua, violações
de validação, rejeição da SEFAZ) NÃO passam por aqui: eles são devolvidos
como valores tipados pelos services. As exceções abaixo indicam uso
incorreto por parte do chamador e devem estourar imediatamente.
"""

from commons.exceptions import BusinessError


class TransicaoInvalidaError(BusinessError):
    """
    Evento não definido para o status atual do documento.
    """

    def __init__(self, mensagem: str, *, status_atual=None, evento=None):
        self.status_atual = status_atual
        self.evento = evento
        super().__init__("TRANSICAO_DE_ESTADO_INVALIDA", mensagem)


class ContextoFiscalInvalidoError(BusinessError):
    """
    TransactionContext malformado (UF inexistente, NCM fora do padrão, tipo errado).
    """

    def __init__(self, mensagem: str, *, campo: str | None = None):
        self.campo = campo
        super().__init__("CONTEXTO_FISCAL_INVALIDO", mensagem)


class RegraFiscalInvalidaError(BusinessError):
    """
    Regra da matriz fiscal construída fora das invariantes
    (CST e CSOSN ao mesmo tempo, nenhum dos dois, alíquota fora de 0..100...).
    """

    def __init__(self, mensagem: str, *, regra_id=None):
        self.regra_id = regra_id
        super().__init__("REGRA_FISCAL_INVALIDA", mensagem)


class DocumentoImutavelError(BusinessError):
    """
    Tentativa de alterar itens, pagamentos ou cabeçalho fora de DRAFT.
    """

    def __init__(self, mensagem: str, *, status_atual=None):
        self.status_atual = status_atual
        super().__init__("DOCUMENTO_IMUTAVEL", mensagem)


class DocumentoNaoEncontradoError(BusinessError):
    def __init__(self, documento_id):
        self.documento_id = documento_id
        super().__init__(
            "NFE_NAO_ENCONTRADA",
            f"Documento NF-e {documento_id} não encontrado.",
        )


class ConcorrenciaError(BusinessError):
    """
    A versão gravada mudou entre a leitura e a escrita do snapshot.
    Outro processo já aplicou uma transição neste documento.
    """

    def __init__(self, documento_id, versao_esperada: int):
        self.documento_id = documento_id
        self.versao_esperada = versao_esperada
        super().__init__(
            "NFE_VERSAO_DESATUALIZADA",
            f"Documento {documento_id} foi alterado por outro processo "
            f"(versão esperada {versao_esperada}).",
        )
