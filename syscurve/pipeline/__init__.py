from .core import *  # noqa
from .solver import *  # noqa
