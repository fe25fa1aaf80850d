from functools import reduce


def _lookup(obj, key):
    if isinstance(obj, dict):
        return obj[key]
    try:
        return getattr(obj, key)
    except AttributeError:
        raise KeyError(key)


def get_from_dict(data, path, default=None):
    """Iterate nested dictionaries or models, `default` on any missing step"""
    try:
        value = reduce(_lookup, path, data)
    except (KeyError, TypeError):
        return default
    return default if value is None else value
