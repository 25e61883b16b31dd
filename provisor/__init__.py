"""Docker engine provisioner"""

import importlib.metadata

__version__ = importlib.metadata.version(__name__)

__all__ = [
    'Logger',
    'Provisioner',
    'detect_provisioner',
]

from provisor.log import Logger
from provisor.provisioners import Provisioner, detect_provisioner
