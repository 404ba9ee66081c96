#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Endpoint for working with hosts known to the registry.

Has essentially the same structure as the CLI command "hosts".
"""
import typing as t

from flask import request
from flask_restx import Namespace
from flask_restx.resource import Resource
from pydantic import Field

from pxepilot.errors import DuplicateMacError, DuplicateNameError, HostError
from pxepilot.host import ManagementEndpoint, Mac, PowerState
from pxepilot.logging import get as get_logger
from pxepilot.model import PilotModel
from pxepilot.serve.context import get_context
from pxepilot.serve.util import (
    empty_response,
    error_response,
    host_error_response,
    json_response,
    parse_body,
    repr_request,
)

ns: Namespace = Namespace(
    "hosts", description="Work with hosts known to pxepilot."
)
_logger = get_logger("hosts")


class HostBody(PilotModel):
    """Host registration as sent by clients."""

    name: str
    macs: t.List[Mac] = Field(min_length=1)
    management: t.Optional[ManagementEndpoint] = None


@ns.route("", endpoint="hosts")
class Hosts(Resource):
    """Resource representing every host."""

    @staticmethod
    def get():
        """List all hosts, sorted by name."""

        return json_response(get_context().registry.list())

    @staticmethod
    def post():
        """
        Register a host, or update the one owning the given MACs.

        Configuration and power state of an existing host are kept.
        Returns 400 if the body is invalid or if a MAC or the name already
        belongs to another host.
        """

        body, bad_resp = parse_body(request, HostBody, _logger)
        if body is None:
            return bad_resp

        attrs = {}
        if body.management is not None:
            attrs["management"] = body.management
        try:
            host = get_context().registry.upsert(
                body.macs, body.name, **attrs
            )
        except (DuplicateMacError, DuplicateNameError) as err:
            _logger.warning(
                "Refusing %s: %s", repr_request(request), err
            )
            return error_response(str(err), 400)
        return json_response(host)


@ns.route("/<string:name>", endpoint="host")
@ns.param("name", "Name of the host")
class HostByName(Resource):
    """Resource representing one host."""

    @staticmethod
    def get(name: str):
        """Get the named host."""

        host = get_context().registry.lookup(name)
        if host is None:
            return error_response(f"Host not found: {name}", 404)
        return json_response(host)

    @staticmethod
    def delete(name: str):
        """Remove the named host."""

        if not get_context().registry.remove(name):
            return error_response(f"Host not found: {name}", 404)
        return empty_response()


def _power(name: str, action: str):
    """Run the named power action, mapping host errors onto responses."""

    orchestrator = get_context().orchestrator
    operation: t.Callable[[str], PowerState] = {
        "on": orchestrator.power_on,
        "off": orchestrator.power_off,
        "reboot": orchestrator.reboot,
    }[action]
    _logger.info("Received request to %s host %s", action, name)
    try:
        operation(name)
    except HostError as err:
        _logger.warning("Unable to %s host %s: %s", action, name, err)
        return host_error_response(err)
    return empty_response()


@ns.route("/<string:name>/reboot", endpoint="host_reboot")
@ns.param("name", "Name of the host")
class HostReboot(Resource):
    """Boot a host, power-cycling it if it is running."""

    @staticmethod
    def patch(name: str):
        """Reboot the named host."""

        return _power(name, "reboot")


@ns.route("/<string:name>/on", endpoint="host_on")
@ns.param("name", "Name of the host")
class HostOn(Resource):
    """Power on a host."""

    @staticmethod
    def patch(name: str):
        """Power on the named host."""

        return _power(name, "on")


@ns.route("/<string:name>/off", endpoint="host_off")
@ns.param("name", "Name of the host")
class HostOff(Resource):
    """Power off a host."""

    @staticmethod
    def patch(name: str):
        """Power off the named host."""

        return _power(name, "off")
