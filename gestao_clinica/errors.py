class ClinicaError(Exception):
    """Exceção base do núcleo offline."""


class StorageError(ClinicaError):
    """Falha de leitura/escrita na persistência local."""


class CompressionError(StorageError):
    """Falha ao comprimir ou descomprimir um blob de arquivo."""


class ValidationFailed(ClinicaError):
    """Dados de entrada inválidos para o modelo de domínio."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = errors or []


class RecordNotFound(ClinicaError):
    pass


class SlotUnavailable(ClinicaError):
    """O horário solicitado já atingiu a lotação máxima."""
