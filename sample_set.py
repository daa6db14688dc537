"""
sample_set.py - Muestras de la colección origen para pruebas

- create_test_set: copia los primeros N documentos del origen a una
  colección de pruebas (test_set) dentro de la misma base de datos
- export_collection_sample: exporta N documentos a JSON (Extended JSON)

Uso:
    python usdamigra.py sample [--limit N] [--export]
"""

import sys
from pathlib import Path

from bson.json_util import dumps
from pymongo.errors import PyMongoError

from pipeline import MigrationStats, iter_documents


def create_test_set(database, migration_config, limit=None):
    """
    Copia documentos del origen a la colección de pruebas, uno por uno.

    Los fallos de inserción se reportan y se saltan.

    Args:
        database: Base de datos de pymongo
        migration_config: Configuración de la migración
        limit: Número de documentos (default: test_set_limit)

    Returns:
        tuple: (insertados, fallidos)

    Raises:
        QueryIssuanceError / MidStreamReadError: Si la lectura del origen falla
    """
    limit = limit or migration_config["test_set_limit"]
    source = database[migration_config["source_collection"]]
    target = database[migration_config["test_set_collection"]]

    print(
        f"📥 Copiando {limit:,} documentos de '{migration_config['source_collection']}' "
        f"a '{migration_config['test_set_collection']}'..."
    )

    cursor = source.find({}, limit=limit)

    inserted = 0
    failed = 0
    for doc in iter_documents(cursor, MigrationStats(strategy="sample")):
        try:
            target.insert_one(doc)
            inserted += 1
        except PyMongoError as e:
            failed += 1
            print(f"   ❌ No se pudo copiar {doc.get('_id')!r}: {e}", file=sys.stderr)

    print(f"✅ Copiados {inserted:,} documentos ({failed:,} fallidos)")
    return inserted, failed


def export_collection_sample(database, collection_name, limit=200, samples_dir="samples"):
    """
    Exporta muestra de una colección a JSON en formato Extended JSON.

    Returns:
        Path | None: Archivo generado, o None si la colección está vacía
    """
    collection = database[collection_name]

    print(f"📥 Obteniendo {limit} documentos de '{collection_name}'...")
    cursor = collection.find(limit=limit)
    docs = list(iter_documents(cursor, MigrationStats(strategy="export")))

    if not docs:
        print(f"⚠️  La colección '{collection_name}' está vacía o no existe")
        return None

    samples_dir = Path(samples_dir)
    samples_dir.mkdir(exist_ok=True)

    # bson.json_util mantiene tipos de MongoDB (ObjectId, fechas)
    json_output = dumps(docs, indent=2, ensure_ascii=False)

    filename = samples_dir / f"{collection_name}_sample.json"
    with open(filename, "w", encoding="utf-8") as f:
        f.write(json_output)

    print(f"✅ Exportados {len(docs)} documentos")
    print(f"📄 Archivo: {filename}")
    print(f"📊 Tamaño: {len(json_output) / 1024:.2f} KB")
    return filename
