from .retention import *
from .structure import *
