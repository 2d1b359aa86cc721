"""Rolling Container Deployer (RCD).

Host-by-host container replacement for services bound to a public port:
 - stop the container(s) currently serving the port
 - create and start a replacement from a declarative config
 - gate progress on a polling health check
 - sweep superseded containers beyond a small rollback buffer

There is no registry of truth: every decision is taken from what the target
Docker daemon reports at the time of the call.
"""

__version__ = "0.1.0"
