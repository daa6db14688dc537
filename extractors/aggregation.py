"""
Extractor por agregación: la selección del primer url se hace en el servidor.

Pipeline:
    1. $match    filtro de procedencia (mismo que CursorExtractor)
    2. $project  _id, product_name, url := $sources.url
    3. $unwind   url, con índice en 'ind' (preserva arrays vacíos)
    4. $match    ind == 0 (o null para documentos sin url)

DECISIONES DE DISEÑO:
- allowDiskUse: $unwind puede materializar un documento por elemento antes
  del segundo $match; se permite al motor usar disco.
- maxTimeMS: acota agregaciones descontroladas (default 360s).
- preserveNullAndEmptyArrays: con el filtro sin 'sources.url', los documentos
  con sources vacío salen con url "" igual que en CursorExtractor.
- $sources.url descarta los elementos sin url ANTES del $unwind: si sources[0]
  no tiene url pero sources[1] sí, aquí se obtiene la url de sources[1].
- sources como subdocumento suelto: $unwind de un escalar da ind null y se
  emite su url; first_source_url lo trata igual (fuente única).
"""

from pymongo.errors import PyMongoError

from errors import QueryIssuanceError
from records import build_record, text_or_default
from .base import BaseExtractor

INDEX_FIELD = "ind"


class AggregationExtractor(BaseExtractor):
    """
    Lectura vía aggregate(); los documentos llegan ya proyectados y desenrollados.

    Forma de cada documento: {'_id': ..., 'product_name': ..., 'url': ..., 'ind': 0}
    """

    strategy = "aggregation"

    def build_pipeline(self) -> list:
        return [
            {"$match": self.build_filter()},
            {"$project": {"_id": 1, "product_name": 1, "url": "$sources.url"}},
            {
                "$unwind": {
                    "path": "$url",
                    "includeArrayIndex": INDEX_FIELD,
                    "preserveNullAndEmptyArrays": True,
                }
            },
            {"$match": {INDEX_FIELD: {"$in": [0, None]}}},
        ]

    def build_options(self) -> dict:
        return {
            "batchSize": self.config["aggregate_batch_size"],
            "maxTimeMS": self.config["aggregate_max_time_ms"],
            "allowDiskUse": self.config.get("allow_disk_use", True),
        }

    def open_stream(self, database):
        """
        Emite aggregate() sobre la colección origen.

        A diferencia de find(), aggregate() se ejecuta al llamarlo: un fallo
        aquí no deja resultados parciales que rescatar.

        Raises:
            QueryIssuanceError: Si la agregación no pudo emitirse
        """
        collection = self.source_collection(database)
        try:
            return collection.aggregate(self.build_pipeline(), **self.build_options())
        except (PyMongoError, TypeError, ValueError) as e:
            raise QueryIssuanceError(
                f"No se pudo emitir aggregate() sobre '{self.config['source_collection']}': {e}",
                cause=e,
            ) from e

    def extract_data(self, doc):
        return build_record(
            self.get_primary_key_from_doc(doc),
            text_or_default(doc.get("product_name")),
            text_or_default(doc.get("url")),
        )
