"""
Módulo base para extractores de la colección origen.

Define la interfaz común (contrato) que las estrategias de lectura deben
implementar. Esto permite que pipeline.py funcione con cualquier extractor
sin conocer si la selección de campos ocurre en el cliente o en el servidor.

Patrón de diseño: Strategy Pattern
- MigrationPipeline = Contexto (orquestador)
- BaseExtractor = Estrategia abstracta
- CursorExtractor, AggregationExtractor = Estrategias concretas

Flujo de uso:
1. pipeline.py carga dinámicamente un extractor
2. Llama a open_stream() para emitir la consulta (cursor perezoso)
3. Itera el cursor y llama a extract_data() por documento
4. Entrega cada NormalizedRecord al ConcurrentWriter
"""

import re
from abc import ABC, abstractmethod

from records import require_id


def build_source_filter(creator_token: str, require_source_url: bool = True) -> dict:
    """
    Construye el filtro de procedencia evaluado por el servidor.

    - creator contiene la palabra creator_token (case-insensitive, límites de palabra)
    - sources.url existe (si require_source_url)

    Ejemplo:
        >>> build_source_filter('usda')
        {'$and': [{'creator': {'$regex': '\\\\busda\\\\b', '$options': 'i'}},
                  {'sources.url': {'$exists': True}}]}
    """
    clauses = [
        {"creator": {"$regex": rf"\b{re.escape(creator_token)}\b", "$options": "i"}}
    ]
    if require_source_url:
        clauses.append({"sources.url": {"$exists": True}})
    return {"$and": clauses}


class BaseExtractor(ABC):
    """
    Clase abstracta que define la interfaz para estrategias de extracción.

    Attributes:
        config (dict): Configuración de la migración (ver config.get_migration_config)
        strategy (str): Nombre corto de la estrategia, usado en logs
    """

    strategy = "base"

    def __init__(self, migration_config: dict):
        """
        Args:
            migration_config: Copia validada de la configuración de la migración
        """
        self.config = migration_config

    def build_filter(self) -> dict:
        """Filtro de procedencia común a todas las estrategias."""
        return build_source_filter(
            self.config["creator_token"],
            self.config.get("require_source_url", True),
        )

    def source_collection(self, database):
        return database[self.config["source_collection"]]

    def get_primary_key_from_doc(self, doc: dict) -> str:
        """
        Extrae el _id del documento origen como string.

        Raises:
            ExtractionError: Si el documento no tiene _id
        """
        return require_id(doc)

    @abstractmethod
    def open_stream(self, database):
        """
        Emite la consulta contra la colección origen.

        La secuencia retornada es perezosa, finita y de una sola pasada:
        pymongo pide las páginas (batch_size) a medida que se consume.

        Args:
            database: Base de datos de pymongo

        Returns:
            Cursor iterable de documentos (dict)

        Raises:
            QueryIssuanceError: Si la consulta no pudo emitirse
        """
        pass

    @abstractmethod
    def extract_data(self, doc: dict):
        """
        Transforma un documento del cursor en NormalizedRecord.

        Debe aplicar las reglas de records.py: _id obligatorio,
        product_name y url con default "".

        Args:
            doc: Documento tal como lo entrega open_stream()

        Returns:
            NormalizedRecord

        Raises:
            ExtractionError: Si el documento no tiene _id
        """
        pass

    def describe(self) -> str:
        return f"{self.strategy} sobre {self.config['database']}.{self.config['source_collection']}"
