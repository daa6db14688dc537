"""
Funciones helper compartidas para todos los tests.

Proporciona una base de datos MongoDB en memoria (FakeDatabase) suficiente
para el pipeline: evalúa el filtro de procedencia, la proyección de find()
y las etapas de agregación que usan los extractores, pagina los cursores
y permite inyectar fallos de emisión, de lectura y de escritura.
"""

import copy
import os
import re
import sys
import threading
import time
from types import SimpleNamespace

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bson import ObjectId
from bson.errors import InvalidBSON, InvalidDocument
from pymongo.errors import AutoReconnect, DuplicateKeyError, ExecutionTimeout, OperationFailure

import config

_MISSING = object()

# Escenarios de referencia de la migración
SCENARIO_DOCS = [
    {
        "_id": "1",
        "creator": "USDA database",
        "product_name": "Bread",
        "sources": [{"url": "http://a"}],
    },
    {"_id": "2", "creator": "usda", "product_name": "Milk", "sources": []},
    {"creator": "usda", "product_name": "Eggs", "sources": [{"url": "http://b"}]},
]


def make_config(**overrides):
    """Configuración 'usda' con overrides para tests (concurrencia baja por defecto)."""
    values = {"writer_concurrency": 4}
    values.update(overrides)
    return config.get_migration_config("usda", values)


def make_product(index, creator="usda", url=None, **extra):
    doc = {
        "_id": f"p{index}",
        "creator": creator,
        "product_name": f"Producto {index}",
        "sources": [{"url": url or f"http://source/{index}"}],
    }
    doc.update(extra)
    return doc


# =========================================================================
# EVALUACIÓN DE FILTROS Y PROYECCIONES (subconjunto de MongoDB)
# =========================================================================


def resolve_path(doc, path):
    """Valores en 'path' expandiendo arrays, como en los filtros de MongoDB."""
    values = [doc]
    for part in path.split("."):
        found = []
        for value in values:
            if isinstance(value, dict):
                if part in value:
                    found.append(value[part])
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict) and part in item:
                        found.append(item[part])
        values = found

    flat = []
    for value in values:
        if isinstance(value, list):
            flat.extend(value)
        flat.append(value)
    return flat


def _match_condition(values, condition):
    if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            if op == "$exists":
                if bool(values) != bool(arg):
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not any(isinstance(v, str) and re.search(arg, v, flags) for v in values):
                    return False
            elif op == "$in":
                if not values:
                    if None not in arg:
                        return False
                elif not any(v in arg for v in values):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(op)
        return True

    if condition is None and not values:
        return True
    return any(v == condition for v in values)


def matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif not _match_condition(resolve_path(doc, key), condition):
            return False
    return True


def _project_value(value, parts):
    if not parts:
        return value
    if isinstance(value, dict):
        if parts[0] not in value:
            return _MISSING
        inner = _project_value(value[parts[0]], parts[1:])
        return _MISSING if inner is _MISSING else {parts[0]: inner}
    if isinstance(value, list):
        projected = []
        for item in value:
            if isinstance(item, dict):
                inner = _project_value(item, parts)
                projected.append({} if inner is _MISSING else inner)
        return projected
    return _MISSING


def _merge(target, source):
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge(target[key], value)
        else:
            target[key] = value


def project(doc, projection):
    """Proyección de inclusión/exclusión de find()."""
    if not projection:
        return copy.deepcopy(doc)

    if all(not v for v in projection.values()):
        result = copy.deepcopy(doc)
        for key in projection:
            result.pop(key, None)
        return result

    result = {}
    if projection.get("_id", 1) and "_id" in doc:
        result["_id"] = doc["_id"]
    for path, include in projection.items():
        if path == "_id" or not include:
            continue
        parts = path.split(".")
        if parts[0] not in doc:
            continue
        value = _project_value(doc[parts[0]], parts[1:])
        if value is not _MISSING:
            _merge(result, {parts[0]: copy.deepcopy(value)})
    return result


def _expression(doc, expr):
    """Evalúa '$campo.sub' como en $project de agregación."""
    if not (isinstance(expr, str) and expr.startswith("$")):
        return expr
    value = doc
    for part in expr[1:].split("."):
        if isinstance(value, dict):
            value = value.get(part, _MISSING)
        elif isinstance(value, list):
            value = [item[part] for item in value if isinstance(item, dict) and part in item]
        if value is _MISSING:
            return _MISSING
    return value


def run_aggregation(docs, pipeline):
    current = [copy.deepcopy(d) for d in docs]
    for stage in pipeline:
        (name, spec), = stage.items()
        if name == "$match":
            current = [d for d in current if matches(d, spec)]
        elif name == "$project":
            projected = []
            for d in current:
                out = {}
                for key, expr in spec.items():
                    if key == "_id":
                        if expr and "_id" in d:
                            out["_id"] = d["_id"]
                        continue
                    value = d.get(key, _MISSING) if expr in (1, True) else _expression(d, expr)
                    if value is not _MISSING:
                        out[key] = value
                projected.append(out)
            current = projected
        elif name == "$unwind":
            field = spec["path"][1:]
            index_field = spec.get("includeArrayIndex")
            preserve = spec.get("preserveNullAndEmptyArrays", False)
            unwound = []
            for d in current:
                value = d.get(field, _MISSING)
                if isinstance(value, list) and value:
                    for i, item in enumerate(value):
                        out = dict(d)
                        out[field] = item
                        if index_field:
                            out[index_field] = i
                        unwound.append(out)
                elif value is _MISSING or value is None or value == []:
                    if preserve:
                        out = dict(d)
                        if value == []:
                            out.pop(field)
                        if index_field:
                            out[index_field] = None
                        unwound.append(out)
                else:
                    out = dict(d)
                    if index_field:
                        out[index_field] = None
                    unwound.append(out)
            current = unwound
        else:
            raise NotImplementedError(name)
    return current


# =========================================================================
# FAKES DE PYMONGO
# =========================================================================


class FakeCursor:
    """
    Cursor perezoso y de una sola pasada con paginación simulada.

    Igual que pymongo, un InvalidBSON cierra el cursor: la siguiente lectura
    da StopIteration.

    Attributes:
        batches_fetched (int): Páginas pedidas al "servidor"
    """

    def __init__(self, docs, batch_size=0, fail_at=None, fail_error=None, invalid_at=()):
        self._docs = docs
        self._position = 0
        self._batch_size = batch_size or len(docs) or 1
        self._fail_at = fail_at
        self._fail_error = fail_error
        self._invalid_at = set(invalid_at)
        self.batches_fetched = 0
        self.closed = False

    def __iter__(self):
        return self

    @property
    def alive(self):
        return not self.closed

    def __next__(self):
        if self.closed:
            raise StopIteration
        if self._fail_at is not None and self._position == self._fail_at:
            self._fail_at = None
            raise self._fail_error or AutoReconnect("connection closed")
        if self._position >= len(self._docs):
            raise StopIteration
        if self._position % self._batch_size == 0:
            self.batches_fetched += 1

        index = self._position
        self._position += 1
        if index in self._invalid_at:
            self.close()
            raise InvalidBSON(f"documento corrupto en posición {index}")
        return self._docs[index]

    def close(self):
        self.closed = True


class FakeCollection:
    """
    Colección en memoria.

    Inyección de fallos:
        find_error / aggregate_error: excepción al emitir la consulta
        read_fail_at / read_error: excepción al leer la posición N del cursor
        invalid_at: posiciones que producen InvalidBSON
        duplicate_ids: valores de 'id' que insert_one rechaza
        unencodable_ids: valores de 'id' que fallan al codificar a BSON
        insert_delay: segundos que tarda cada insert_one
    """

    def __init__(self, name, docs=None):
        self.name = name
        self.docs = [copy.deepcopy(d) for d in docs or []]
        self.find_calls = []
        self.aggregate_calls = []
        self.last_cursor = None

        self.find_error = None
        self.aggregate_error = None
        self.count_error = None
        self.read_fail_at = None
        self.read_error = None
        self.invalid_at = ()
        self.duplicate_ids = set()
        self.unencodable_ids = set()
        self.insert_delay = 0.0

        self.insert_attempts = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    # --- lectura ---

    def find(self, filter=None, projection=None, batch_size=0, limit=0, **kwargs):
        self.find_calls.append(
            {"filter": filter, "projection": projection, "batch_size": batch_size, "limit": limit}
        )
        if self.find_error is not None:
            raise self.find_error
        selected = [project(d, projection) for d in self.docs if matches(d, filter)]
        if limit:
            selected = selected[:limit]
        self.last_cursor = FakeCursor(
            selected, batch_size, self.read_fail_at, self.read_error, self.invalid_at
        )
        return self.last_cursor

    def aggregate(self, pipeline, **kwargs):
        self.aggregate_calls.append({"pipeline": pipeline, "options": kwargs})
        if self.aggregate_error is not None:
            raise self.aggregate_error
        result = run_aggregation(self.docs, pipeline)
        self.last_cursor = FakeCursor(
            result,
            kwargs.get("batchSize", 0),
            self.read_fail_at,
            self.read_error,
            self.invalid_at,
        )
        return self.last_cursor

    def count_documents(self, filter):
        if self.count_error is not None:
            raise self.count_error
        return sum(1 for d in self.docs if matches(d, filter))

    # --- escritura ---

    def insert_one(self, document):
        with self._lock:
            self.insert_attempts += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.insert_delay:
                time.sleep(self.insert_delay)
            if document.get("id") in self.duplicate_ids:
                raise DuplicateKeyError(f"E11000 duplicate key: {document.get('id')}")
            if document.get("id") in self.unencodable_ids:
                raise InvalidDocument(f"cannot encode object: {document.get('id')!r}")
            stored = copy.deepcopy(document)
            stored.setdefault("_id", ObjectId())
            with self._lock:
                self.docs.append(stored)
            return SimpleNamespace(inserted_id=stored["_id"], acknowledged=True)
        finally:
            with self._lock:
                self.in_flight -= 1

    def drop(self):
        self.docs = []


class FakeDatabase:
    """Base de datos en memoria: crea colecciones al accederlas."""

    def __init__(self, name="off", collections=None):
        self.name = name
        self.collections = {}
        for coll_name, docs in (collections or {}).items():
            self.collections[coll_name] = FakeCollection(coll_name, docs)

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


def make_database(source_docs, **collections):
    """FakeDatabase 'off' con la colección 'products' cargada."""
    all_collections = {"products": source_docs}
    all_collections.update(collections)
    return FakeDatabase("off", all_collections)


def target_rows(database, target="usda"):
    """Documentos del destino sin _id, para comparar contenido."""
    return [{k: v for k, v in d.items() if k != "_id"} for d in database[target].docs]


# Re-export para los tests que simulan errores del servidor
ServerErrors = SimpleNamespace(
    AutoReconnect=AutoReconnect,
    DuplicateKeyError=DuplicateKeyError,
    ExecutionTimeout=ExecutionTimeout,
    OperationFailure=OperationFailure,
    InvalidDocument=InvalidDocument,
)


# =========================================================================
# EJECUCIÓN FUERA DE PYTEST
# =========================================================================


def run_test_functions(title, tests):
    """
    Ejecuta funciones test_* y reporta resultados consolidados.

    Returns:
        bool: True si todos pasaron
    """
    print("=" * 70)
    print(f"🧪 {title}")
    print("=" * 70)

    errors = []
    for test_func in tests:
        try:
            test_func()
        except Exception as e:
            errors.append(f"{test_func.__name__}: {e}")
            print(f"   ❌ {test_func.__name__}: {e}")

    print("\n" + "=" * 70)
    if not errors:
        print("✅ TODOS LOS TESTS PASARON")
        return True

    print(f"❌ {len(errors)} ERRORES ENCONTRADOS")
    for error in errors:
        print(f"   - {error}")
    return False
