"""
Escritura concurrente y acotada en la colección destino.

RESPONSABILIDAD:
- Un insert_one por NormalizedRecord, sin upsert ni reintentos
- Como máximo max_workers inserciones en vuelo; submit() bloquea al lector
  cuando el pool está lleno
- Un fallo de escritura se cuenta y se reporta; no cancela otras escrituras
  ni la lectura
- close() espera a que terminen las escrituras en vuelo (nunca se cancelan)

MongoClient es thread-safe: todos los workers comparten la misma colección.
"""

import sys
import threading
from concurrent.futures import ThreadPoolExecutor

from bson.errors import BSONError
from pymongo.errors import PyMongoError

from errors import WriteError


class ConcurrentWriter:
    """
    Pool fijo de workers que inserta registros en la colección destino.

    Attributes:
        written (int): Inserciones exitosas
        failed (int): Inserciones fallidas
        max_workers (int): Límite de inserciones simultáneas
    """

    def __init__(self, collection, max_workers):
        if max_workers < 1:
            raise ValueError("max_workers debe ser >= 1")

        self.collection = collection
        self.max_workers = max_workers
        self.written = 0
        self.failed = 0

        self._slots = threading.BoundedSemaphore(max_workers)
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="usda-writer"
        )
        self._closed = False

    def write(self, record):
        """
        Inserta un registro de forma síncrona.

        Returns:
            ObjectId: _id generado por MongoDB

        Raises:
            WriteError: Si insert_one falla (ej: DuplicateKeyError, InvalidDocument)
        """
        try:
            result = self.collection.insert_one(record.to_document())
        except (PyMongoError, BSONError) as e:
            raise WriteError(
                f"Error insertando '{record.id}': {e}", cause=e, record_id=record.id
            ) from e
        return result.inserted_id

    def submit(self, record):
        """
        Encola la inserción de un registro.

        Bloquea mientras haya max_workers inserciones en vuelo.

        Returns:
            Future: Resuelve al _id insertado o a None si falló
        """
        if self._closed:
            raise RuntimeError("ConcurrentWriter ya está cerrado")

        self._slots.acquire()
        try:
            future = self._executor.submit(self._insert, record)
        except BaseException:
            self._slots.release()
            raise

        future.add_done_callback(self._release_slot)
        return future

    def close(self):
        """Espera a que terminen todas las inserciones en vuelo."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _insert(self, record):
        try:
            inserted_id = self.write(record)
        except WriteError as e:
            with self._lock:
                self.failed += 1
            print(f"\n   ❌ {e}", file=sys.stderr)
            return None

        with self._lock:
            self.written += 1
        return inserted_id

    def _release_slot(self, future):
        self._slots.release()
