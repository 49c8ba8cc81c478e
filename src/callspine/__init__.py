"""
Callspine - resilient RPC call primitives.

- callspine.core: errors, clocks, logging, settings
- callspine.execution: RetryingCallable, RetrySettings, ErrorClassifier, schedulers
- callspine.mtls: client-certificate channel selection
- callspine.testing: fake clock, recording scheduler and scripted callables
"""

__version__ = "0.1.0"

from callspine.core import *  # noqa
from callspine.execution import *  # noqa
from callspine.mtls import *  # noqa
