from .report import *
from .state import *
