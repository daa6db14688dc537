"""
Jerarquía de errores de la migración.

Separa los errores fatales (cortan la ejecución) de los errores por registro
(se cuentan y la migración continúa):

    Fatales:
        StoreConnectionError  → antes de leer o escribir nada
        QueryIssuanceError    → la consulta/agregación no pudo emitirse
        MidStreamReadError    → el cursor falló a mitad de lectura
        ReadTimeoutError      → el servidor superó el tiempo máximo

    Por registro:
        ExtractionError       → documento sin _id
        WriteError            → insert_one falló (ej: clave duplicada)
"""


class EtlError(Exception):
    """Error base de la migración. Conserva la causa original en `cause`."""

    fatal = True

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class StoreConnectionError(EtlError):
    """No se pudo conectar o el ping de liveness falló."""


class QueryIssuanceError(EtlError):
    """La consulta o agregación no pudo emitirse. No se procesó ningún documento."""


class MidStreamReadError(EtlError):
    """
    El cursor falló después de entregar documentos.

    Attributes:
        documents_read: Documentos entregados antes del fallo
    """

    def __init__(self, message, cause=None, documents_read=0):
        super().__init__(message, cause)
        self.documents_read = documents_read


class ReadTimeoutError(MidStreamReadError):
    """El servidor cortó la lectura por exceder maxTimeMS."""


class ExtractionError(EtlError):
    """El documento no tiene la forma mínima requerida (falta _id)."""

    fatal = False


class WriteError(EtlError):
    """
    Falló la inserción de un registro.

    Attributes:
        record_id: id del NormalizedRecord que no se insertó
    """

    fatal = False

    def __init__(self, message, cause=None, record_id=None):
        super().__init__(message, cause)
        self.record_id = record_id
