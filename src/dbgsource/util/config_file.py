import configparser
from pathlib import Path
from typing import Any, Iterable, Dict, Type, TypeVar, Union, overload
import logging
from dbgsource.util.type_helpers import as_optional

""" Code for reading keys from a config file """

T = TypeVar("T")

logger = logging.getLogger("dbgsource.util")


def interpret_var_str(t: Type[T], value: str) -> T:
    """Given a string attained from an environment variable or config file, make a best-effort attempt to parse it to an instance of the given type."""
    if t == str or t == Any:
        return value  # type: ignore
    if t == int:
        return int(value)  # type: ignore
    if t == float:
        return float(value)  # type: ignore
    if t == bool:
        return value not in ["False", "false", "0", "no"]  # type: ignore
    if t == Path:
        return Path(value)  # type: ignore
    X = as_optional(t)
    if X is not None:
        if value in ["None", "null", "undefined"]:
            return None  # type: ignore
        else:
            return interpret_var_str(X, value)

    raise NotImplementedError(f"Don't know how to interpret {t}")


@overload
def get_config(path: Path, key: str) -> Any:
    ...


@overload
def get_config(path: Path, key: str, type: Type[T]) -> T:
    ...


@overload
def get_config(path: Path, keys: Iterable[str]) -> Dict[str, Any]:
    ...


@overload
def get_config(path: Path, keys_and_types: Dict[str, Type]) -> Dict[str, Any]:
    ...


def get_config(path: Path, keys, type=Any) -> Any:  # type: ignore
    if isinstance(keys, dict):
        return read_keys_from_config_file(path, keys)
    elif isinstance(keys, list):
        return read_keys_from_config_file(path, keys)
    else:
        if not isinstance(keys, str):
            raise ValueError(f"Expected {keys} to be a string.")
        d = read_keys_from_config_file(path, {keys: type})
        return d.get(keys, None)


def read_keys_from_config_file(
    path: Path, keys: Union[Dict[str, Type], Iterable[str]]
) -> Dict[str, Any]:
    if not path.exists():
        return {}
    cfg = configparser.ConfigParser()
    cfg.read(path)
    o = {}
    if isinstance(keys, dict):
        types = keys
        keys = list(keys.keys())
    else:
        types = {}
        keys = list(keys)
    for key in keys:
        v = cfg.get(cfg.default_section, key, fallback=None)
        if v is None:
            continue
        t = types.get(key, Any)
        try:
            o[key] = interpret_var_str(t, v)
        except (ValueError, NotImplementedError) as e:
            logger.error(f"Invalid config value {key}={v!r} in {path}, expected {t}: {e}")
            continue
    return o


def set_config(path: Path, **kvs):
    cfg = configparser.ConfigParser()
    cfg.read(path)
    for k, v in kvs.items():
        if v is None:
            cfg.remove_option(cfg.default_section, k)
        else:
            cfg.set(cfg.default_section, k, str(v))
    logger.debug(f"Writing {kvs} to {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as fd:
        cfg.write(fd)
