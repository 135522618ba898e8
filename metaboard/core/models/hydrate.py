"""
Hydration: resolve deferred and foreign-key fields on records.

Batched hydration
-----------------
If the key being hydrated is one of some model's ``hydration_keys`` and every
record carries the matching ``<key>_id``, the ids are collected and fetched
with a single query::

    hydrate([{"creator_id": 100}, {"creator_id": 101}], "creator")

issues one ``SELECT ... WHERE id IN (100, 101)`` against ``User`` and stores
each user under ``"creator"``.

Simple hydration
----------------
Otherwise Delays stored under the key are forced and replaced by their
values::

    hydrate([{"fish": Delay(lambda: 1)}], "fish")  ->  [{"fish": 1}]

When the key is missing and a method is registered for it (``can_read``,
``can_write``), the method's result for that record is stored instead.

Several keys and nesting
------------------------
::

    hydrate(obj, "a", "b")
    hydrate(obj, ["a", "b"])            # hydrate "a", then "b" inside each a
    hydrate(obj, ["a", ["b", "c"], "e"])

The first item of a list is hydrated normally; the rest are hydrated inside
the value(s) produced for it. Values may be single records or sequences of
records; see the counts helpers at the bottom of this module.

Call graph::

    hydrate <------------------+
      |                        |
    hydrate_many               |
      | (for each form)        |
    hydrate_one                | (recursively)
      |                        |
    str --+-- list/tuple       |
      |          |             |
    hydrate_kw  hydrate_vector-+
      |
    can_batched_hydrate
      |
    no +-- yes
     |      |
    simple  batched
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from metaboard.core.delay import Delay
from metaboard.core.models import interface
from metaboard.core.models.interface import Instance

log = logging.getLogger("metaboard.hydrate")

# shape descriptors
ATOM = "atom"
NIL = "nil"


def hydrate(results: Any, *forms: Any) -> Any:
    """Hydrate a single record or a sequence of records with one or more forms."""
    if not forms:
        raise ValueError("hydrate() needs at least one hydration form")
    for f in forms:
        if not valid_hydration_form(f):
            raise ValueError(f"Invalid hydration form: {f!r}")

    if results is None:
        return None
    if _is_sequential(results):
        if len(results) == 0:
            return results
        return hydrate_many(list(results), *forms)
    return hydrate_many([results], *forms)[0]


# ------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------
def hydrate_many(results: List[Any], *forms: Any) -> List[Any]:
    for f in forms:
        results = hydrate_one(results, f)
    return results


def hydrate_one(results: List[Any], form: Any) -> List[Any]:
    if isinstance(form, str):
        return hydrate_kw(results, form)
    return hydrate_vector(results, form)


def hydrate_vector(results: List[Any], form: Sequence[Any]) -> List[Any]:
    if len(form) < 2:
        raise ValueError(
            f"Replace {list(form)!r} with {form[0]!r}. Lists are for nested hydration; "
            "there's no need to use one when you only have a single key."
        )
    key, nested = form[0], list(form[1:])
    results = hydrate_kw(results, key)
    return counts_apply(results, key, lambda vals: hydrate(vals, *nested))


def hydrate_kw(results: List[Any], key: str) -> List[Any]:
    if can_batched_hydrate(results, key):
        return batched_hydrate(results, key)
    return simple_hydrate(results, key)


# ------------------------------------------------------------
# Simple hydration
# ------------------------------------------------------------
_METHODS: Dict[str, Callable[[Any], Any]] = {
    "can_read": interface.can_read,
    "can_write": interface.can_write,
}


def register_hydration_method(key: str, fn: Callable[[Any], Any]) -> None:
    """Compute ``key`` with fn(record) when a record has no value for it."""
    _METHODS[key] = fn


def simple_hydrate(results: List[Any], key: str) -> List[Any]:
    method = _METHODS.get(key)
    out = []
    for r in results:
        if not isinstance(r, Mapping):
            # None or a scalar reached through nested hydration
            out.append(r)
            continue
        v = r.get(key)
        if isinstance(v, Delay):
            out.append(_assoc(r, key, v.force()))
        elif _falsey(v) and method is not None:
            out.append(_assoc(r, key, method(r)))
        else:
            # may already be hydrated
            out.append(r)
    return out


# ------------------------------------------------------------
# Batched hydration
# ------------------------------------------------------------
def already_hydrated(record: Mapping[str, Any], key: str) -> bool:
    v = record.get(key)
    return not _falsey(v) and not isinstance(v, Delay)


def batched_hydrate(results: List[Any], key: str) -> List[Any]:
    model = hydration_key_to_model()[key]
    source_key = k_to_k_id(key)

    # realized Delays already hold the object; unwrap them
    unwrapped = []
    for r in results:
        v = r.get(key) if isinstance(r, Mapping) else None
        if isinstance(v, Delay) and v.realized:
            r = _assoc(r, key, v.force())
        unwrapped.append(r)

    ids = {
        r.get(source_key)
        for r in unwrapped
        if isinstance(r, Mapping) and not already_hydrated(r, key) and r.get(source_key) is not None
    }
    objs: Dict[Any, Any] = {}
    if ids:
        log.debug("batched hydrate key=%s model=%s ids=%d", key, model.__name__, len(ids))
        objs = {o["id"]: o for o in model.fetch_many(sorted(ids, key=repr))}

    out = []
    for r in unwrapped:
        if not isinstance(r, Mapping) or already_hydrated(r, key):
            out.append(r)
        else:
            out.append(_assoc(r, key, objs.get(r.get(source_key))))
    return out


def can_batched_hydrate(results: List[Any], key: str) -> bool:
    if key not in hydration_key_to_model():
        return False
    source_key = k_to_k_id(key)
    # None slots come from nested hydration over missing values
    present = [r for r in results if r is not None]
    return bool(present) and all(isinstance(r, Mapping) and source_key in r for r in present)


def k_to_k_id(key: str) -> str:
    """``"user" -> "user_id"``"""
    return f"{key}_id"


_KEY_TO_MODEL: Optional[Dict[str, type]] = None
_KEY_TO_MODEL_LOCK = threading.Lock()


def _all_models() -> List[type]:
    from metaboard.core.models import Base

    return [m.class_ for m in Base.registry.mappers]


def hydration_key_to_model() -> Dict[str, type]:
    """
    Map of hydration key -> model class, e.g. ``"creator" -> User``.

    Built once, on first use, from the ``hydration_keys`` of every mapped
    model.
    """
    global _KEY_TO_MODEL
    if _KEY_TO_MODEL is None:
        with _KEY_TO_MODEL_LOCK:
            if _KEY_TO_MODEL is None:
                mapping: Dict[str, type] = {}
                for model in _all_models():
                    keys = getattr(model, "hydration_keys", None) or ()
                    if not all(isinstance(k, str) for k in keys):
                        raise ValueError(f"hydration_keys should be a set of strings. In: {model.__name__}")
                    for k in keys:
                        if k in mapping and mapping[k] is not model:
                            raise ValueError(
                                f"Hydration key {k!r} is claimed by both {mapping[k].__name__} and {model.__name__}"
                            )
                        mapping[k] = model
                _KEY_TO_MODEL = mapping
    return _KEY_TO_MODEL


def valid_hydration_form(form: Any) -> bool:
    if isinstance(form, str):
        return True
    if isinstance(form, (list, tuple)) and form and isinstance(form[0], str):
        return all(valid_hydration_form(f) for f in form[1:])
    return False


# ------------------------------------------------------------
# Counts destructuring
#
# Flatten a sequence of records by a key so a function can be applied across
# all the values at once, then rebuild the original shape:
#
#          +--> counts_of ----------------------------+
#   seq ---+                                          +--> counts_unflatten --> merge --> new seq
#          +--> counts_flatten --> fn(flat values) ---+
# ------------------------------------------------------------
def counts_of(coll: Sequence[Any], key: str) -> List[Any]:
    """
    Shape descriptor of each record's value at key:

    * ``len(v)`` if v is a list or tuple
    * ``"atom"`` if v is any other non-None value
    * ``"nil"``  if the record has key but the value is None
    * ``None``   if the record is not a mapping or lacks key
    """
    out: List[Any] = []
    for x in coll:
        if not isinstance(x, Mapping) or key not in x:
            out.append(None)
            continue
        v = x[key]
        if _is_sequential(v):
            out.append(len(v))
        elif v is not None:
            out.append(ATOM)
        else:
            out.append(NIL)
    return out


def counts_flatten(coll: Sequence[Any], key: str) -> List[Any]:
    """
    >>> counts_flatten([{"a": [{"b": 1}, {"b": 2}]}, {"a": {"b": 3}}], "a")
    [{'b': 1}, {'b': 2}, {'b': 3}]
    """
    if not _is_sequential(coll):
        raise ValueError("counts_flatten expects a sequence of records")
    flat: List[Any] = []
    for x in coll:
        v = x.get(key) if isinstance(x, Mapping) else None
        if _is_sequential(v):
            flat.extend(v)
        else:
            flat.append(v)
    return flat


def counts_unflatten(coll: Sequence[Any], key: str, counts: Sequence[Any]) -> List[Optional[Dict[str, Any]]]:
    """
    >>> counts_unflatten([{"b": 2}, {"b": 4}, {"b": 6}], "a", [2, "atom"])
    [{'a': [{'b': 2}, {'b': 4}]}, {'a': {'b': 6}}]
    """
    coll = list(coll)
    pos = 0
    out: List[Optional[Dict[str, Any]]] = []
    for c in counts:
        if c is None:
            out.append(None)
            pos += 1
        elif c == NIL:
            out.append({key: None})
            pos += 1
        elif c == ATOM:
            out.append({key: coll[pos] if pos < len(coll) else None})
            pos += 1
        else:
            out.append({key: coll[pos:pos + c]})
            pos += c
    return out


def counts_apply(coll: Sequence[Any], key: str, fn: Callable[[List[Any]], Any]) -> List[Any]:
    """
    Apply fn to the values of coll flattened by key, then merge the
    unflattened results back onto coll.

    >>> counts_apply([{"a": [{"b": 1}, {"b": 2}]}, {"a": {"b": 3}}], "a",
    ...              lambda xs: [{"b": x["b"] * 2} for x in xs])
    [{'a': [{'b': 2}, {'b': 4}]}, {'a': {'b': 6}}]
    """
    counts = counts_of(coll, key)
    new_vals = counts_unflatten(fn(counts_flatten(coll, key)) or [], key, counts)
    return [_merge(x, new) for x, new in zip(coll, new_vals)]


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _is_sequential(v: Any) -> bool:
    return isinstance(v, (list, tuple))


def _falsey(v: Any) -> bool:
    return v is None or v is False


def _assoc(record: Mapping[str, Any], key: str, value: Any) -> Dict[str, Any]:
    if isinstance(record, Instance):
        return record.assoc(key, value)
    new = dict(record)
    new[key] = value
    return new


def _merge(record: Any, new: Optional[Mapping[str, Any]]) -> Any:
    if not new:
        return record
    if record is None:
        return dict(new)
    if isinstance(record, Instance):
        return record.merge(new)
    merged = dict(record)
    merged.update(new)
    return merged
