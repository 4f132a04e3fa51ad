"""ARM Convergence.

Waits for asynchronous Azure Resource Manager operations to reach a
terminal state, and drives a small set of resource handlers through
their create / read / update / delete lifecycle on top of that poller.
"""

__version__ = "0.1.0"
