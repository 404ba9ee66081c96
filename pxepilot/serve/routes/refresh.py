#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Endpoint for refreshing the cached power state of hosts."""
from flask_restx import Namespace, Resource

from pxepilot.logging import get as get_logger
from pxepilot.serve.context import get_context
from pxepilot.serve.util import json_response

ns: Namespace = Namespace(
    "refresh", description="Query live power state of every host."
)
_logger = get_logger("refresh")


@ns.route("", endpoint="refresh")
class Refresh(Resource):
    """Resource triggering a power state refresh."""

    @staticmethod
    def patch():
        """
        Refresh power states, returning hosts refreshed and failed.

        Hosts failing to answer do not fail the request.
        """

        _logger.info("Received request to refresh power states")
        return json_response(get_context().refresher.refresh_all())
