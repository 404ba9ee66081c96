#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# pylint: disable=all
"""
Default configuration of gunicorn for pxepilot.

Note that in all gunicorn configuration files, current application
ServeContext instance will be made available under the 'ctx' global
variable. To access, use:

```python
globals().get('ctx')
```

Host locks live in the serving process, keep a single worker and scale
with threads instead.

For more information, see pxepilot.serve.context and pxepilot.serve.app
"""
from pxepilot.serve.context import ServeContext

# --- Preflight check for needed context variable
_ctx: ServeContext = globals().get("ctx", None)
if _ctx is None:
    raise ValueError("Unable to get current application context.")

bind = "127.0.0.1:8080"
workers = 1
threads = 8
# deployments wait on every requested host's controller
timeout = max(30, int(_ctx.config.power_timeout * 4))
