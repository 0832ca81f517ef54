import numpy as np
from typing import Any


def select(*values: Any) -> Any:
    """Ritorna il primo valore diverso da None (None se tutti lo sono)."""
    for value in values:
        if value is not None:
            return value
    return None


def is_sorted(buffer: np.ndarray) -> bool:
    """True se il buffer è non decrescente (vuoto e singolo elemento inclusi)."""
    if buffer.size < 2:
        return True
    return bool(np.all(buffer[1:] >= buffer[:-1]))


def get_nested(data: dict, path: str, default: Any) -> Any:
    """
    Naviga un dict con dot notation.

    Args:
        data: Dizionario da navigare
        path: Percorso in dot notation (es. 'logging.file_enabled')
        default: Valore di default se il percorso non esiste

    Returns:
        Valore trovato o default
    """
    keys = path.split('.')
    current = data

    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default

    return current
