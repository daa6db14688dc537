"""
Extractor por cursor: find() con filtro + proyección, extracción en el cliente.

El servidor filtra por procedencia y limita los campos transferidos;
el cliente toma sources[0].url y aplica los defaults de records.py.

Uso (desde pipeline.py):
    extractor = CursorExtractor(cfg)
    cursor = extractor.open_stream(db)
    for doc in cursor:
        record = extractor.extract_data(doc)
"""

from pymongo.errors import PyMongoError

from errors import QueryIssuanceError
from records import build_record, first_source_url, text_or_default
from .base import BaseExtractor

# Solo se transfieren los campos que usa la transformación
PROJECTION = {"_id": 1, "product_name": 1, "sources.url": 1}


class CursorExtractor(BaseExtractor):
    """
    Lectura paginada de la colección origen con find().

    El tamaño de página (find_batch_size) equilibra round-trips contra
    memoria; pymongo pide la siguiente página de forma transparente.
    """

    strategy = "cursor"

    def build_projection(self) -> dict:
        return dict(PROJECTION)

    def open_stream(self, database):
        """
        Emite find() sobre la colección origen.

        find() es perezoso: los errores del servidor aparecen en la primera
        lectura. El pipeline los clasifica como QueryIssuanceError si ocurren
        antes del primer documento.

        Raises:
            QueryIssuanceError: Si pymongo rechaza los argumentos de la consulta
        """
        collection = self.source_collection(database)
        try:
            return collection.find(
                self.build_filter(),
                self.build_projection(),
                batch_size=self.config["find_batch_size"],
            )
        except (PyMongoError, TypeError, ValueError) as e:
            raise QueryIssuanceError(
                f"No se pudo emitir find() sobre '{self.config['source_collection']}': {e}",
                cause=e,
            ) from e

    def extract_data(self, doc):
        return build_record(
            self.get_primary_key_from_doc(doc),
            text_or_default(doc.get("product_name")),
            first_source_url(doc),
        )
