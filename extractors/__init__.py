"""
Extractores: estrategias de lectura de la colección origen.

Cada extractor implementa la interfaz BaseExtractor y se carga dinámicamente
en runtime según la estrategia seleccionada (ver load_extractor() en
pipeline.py).

Estructura:
    base.py: Clase abstracta BaseExtractor y filtro de procedencia compartido
    cursor.py: find() con filtro + proyección, extracción en el cliente
    aggregation.py: $match → $project → $unwind → $match en el servidor

Interfaz requerida (ver BaseExtractor):
    - open_stream(database)
    - extract_data(doc)

Ambas estrategias producen los mismos NormalizedRecord y alimentan al mismo
ConcurrentWriter.
"""
