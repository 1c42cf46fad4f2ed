from .console import *
from .log import *
from .path import *
