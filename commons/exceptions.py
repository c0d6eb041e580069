# commons/exceptions.py


class BusinessError(Exception):
    """
    Erro base do projeto.

    Todo erro levantado pelos services carrega:
      - code: identificador estável (SCREAMING_SNAKE), usado em testes e logs.
      - message: texto legível para o operador.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"
