"""
Registro normalizado de la colección destino y reglas de extracción de campos.

Reglas por campo (documentos sin esquema fijo):
- id:           _id del origen. Obligatorio. str se copia tal cual;
                ObjectId/int se convierten con str(). Ausente → ExtractionError
- product_name: string o "" si falta / no es string
- url:          sources[0].url o "" si sources falta, está vacío, el primer
                elemento no es documento o no tiene url. Solo se mira el índice 0.

Estas funciones son puras: no acceden a la base de datos ni mutan el documento.
"""

from dataclasses import asdict, dataclass

from bson import ObjectId

from errors import ExtractionError


@dataclass(frozen=True)
class NormalizedRecord:
    """Registro de la colección destino (un documento por producto USDA)."""

    id: str
    product_name: str
    url: str

    def to_document(self) -> dict:
        """Documento a insertar. MongoDB genera el _id."""
        return asdict(self)

    @classmethod
    def from_document(cls, doc: dict) -> "NormalizedRecord":
        """Reconstruye un registro leído desde la colección destino."""
        return cls(
            id=require_id(doc, field="id"),
            product_name=text_or_default(doc.get("product_name")),
            url=text_or_default(doc.get("url")),
        )

    def __str__(self):
        return f"id: {self.id} product: {self.product_name} url: {self.url}"


def require_id(doc, field="_id") -> str:
    """
    Extrae el identificador obligatorio del documento como string.

    Raises:
        ExtractionError: Si el campo falta o tiene un tipo no soportado
    """
    value = doc.get(field)

    if isinstance(value, str):
        return value
    # bool es subclase de int y no es un identificador válido
    if isinstance(value, ObjectId) or (
        isinstance(value, int) and not isinstance(value, bool)
    ):
        return str(value)

    if value is None:
        raise ExtractionError(f"Documento sin '{field}'")
    raise ExtractionError(
        f"Campo '{field}' con tipo no soportado: {type(value).__name__}"
    )


def text_or_default(value, default="") -> str:
    """Retorna value si es string, si no el default."""
    return value if isinstance(value, str) else default


def first_source_url(doc) -> str:
    """
    URL del primer elemento de 'sources'.

    Los elementos posteriores se ignoran aunque tengan url. Un subdocumento
    suelto (sources: {url: ...}) cuenta como única fuente, igual que lo lee
    $sources.url en la agregación.
    """
    sources = doc.get("sources")
    if isinstance(sources, dict):
        sources = [sources]
    if not isinstance(sources, list) or not sources:
        return ""

    first = sources[0]
    if not isinstance(first, dict):
        return ""

    return text_or_default(first.get("url"))


def build_record(doc_id, product_name, url) -> NormalizedRecord:
    return NormalizedRecord(id=doc_id, product_name=product_name, url=url)
