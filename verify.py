"""
verify.py - Lectura de control de la colección destino

Lee la colección destino directamente como NormalizedRecord y los lista con
un contador. Sirve para comprobar a simple vista el resultado de una migración.

Uso:
    python usdamigra.py verify [--limit N]
"""

import sys

from errors import ExtractionError
from pipeline import MigrationStats, iter_documents
from records import NormalizedRecord


def read_target_records(database, migration_config, limit=None):
    """
    Genera los registros de la colección destino.

    Args:
        database: Base de datos de pymongo
        migration_config: Configuración de la migración
        limit: Máximo de documentos (default: verify_limit)

    Yields:
        NormalizedRecord o None si el documento no tiene la forma esperada

    Raises:
        QueryIssuanceError: Si la lectura falla antes del primer documento
        MidStreamReadError: Si la lectura se corta a mitad
    """
    collection = database[migration_config["target_collection"]]
    cursor = collection.find(
        {},
        {"_id": 0},
        batch_size=migration_config["verify_batch_size"],
        limit=limit or migration_config["verify_limit"],
    )

    for doc in iter_documents(cursor, MigrationStats(strategy="verify")):
        try:
            yield NormalizedRecord.from_document(doc)
        except ExtractionError:
            yield None


def verify_target(database, migration_config, limit=None, echo=True):
    """
    Recorre el destino imprimiendo cada registro con su contador.

    Returns:
        tuple: (registros válidos, documentos ilegibles)
    """
    target = migration_config["target_collection"]
    print(f"🔍 Leyendo '{migration_config['database']}.{target}'...")

    counter = 0
    unreadable = 0
    for record in read_target_records(database, migration_config, limit):
        if record is None:
            unreadable += 1
            print(f"   ❌ Documento ilegible en '{target}'", file=sys.stderr)
            continue
        counter += 1
        if echo:
            print(f"{counter} {record}")

    print(f"\n✅ {counter:,} registros válidos, {unreadable:,} ilegibles")
    return counter, unreadable
