from .registry import NamedQuery, NamedQueryRegistry, init_registry
from .substitute import substitute_parameters, find_placeholders
