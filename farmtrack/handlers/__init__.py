from . import start
from . import time_clock
from . import weekly
from . import export
from . import soil
from . import workers

__all__ = [
    'start',
    'time_clock',
    'weekly',
    'export',
    'soil',
    'workers'
]
