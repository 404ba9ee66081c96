#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Endpoint listing bootloaders of the catalog."""
from flask_restx import Namespace, Resource

from pxepilot.serve.context import get_context
from pxepilot.serve.util import json_response

ns: Namespace = Namespace("bootloaders", description="Known bootloaders.")


@ns.route("", endpoint="bootloaders")
class Bootloaders(Resource):
    """Resource representing every bootloader."""

    @staticmethod
    def get():
        """List bootloaders, sorted by name."""

        return json_response(get_context().catalog.get().bootloaders())
